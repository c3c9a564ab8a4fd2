"""Tests for the async diagram view and request supersession."""

import asyncio
import math
from unittest.mock import patch

from bowtie_layout.config import LayoutOptions
from bowtie_layout.layout.engine import compute_layout
from bowtie_layout.layout.layered import LayoutError
from bowtie_layout.models.bowtie import Barrier, BowtieDiagram, Consequence, Hazard, Threat, TopEvent
from bowtie_layout.view import RENDER_ERROR_MESSAGE, BowtieDiagramView


def _diagram(diagram_id: str, threat_label: str = "Threat") -> BowtieDiagram:
    return BowtieDiagram(
        id=diagram_id,
        name=diagram_id.title(),
        hazard=Hazard(id="h", label="Hazard"),
        top_event=TopEvent(id="te", label="Top event"),
        threats=[Threat(id="t", label=threat_label)],
        consequences=[Consequence(id="c", label="Consequence")],
        barriers=[Barrier(id="b", label="Barrier", type="preventive", threat_id="t")],
    )


def _delayed_layout(delays: dict):
    async def fake(diagram, options):
        await asyncio.sleep(delays.get(diagram.id, 0))
        return compute_layout(diagram, options)
    return fake


class TestRefresh:
    """Single refresh outcomes."""

    def test_ready_after_successful_layout(self):
        view = BowtieDiagramView()
        graph = asyncio.run(view.refresh(_diagram("first")))
        assert view.status == "ready"
        assert view.error is None
        assert view.graph is graph
        assert {"threat-t", "topEvent-te", "hazard-h"} <= {n.id for n in view.render().nodes}

    def test_layout_error_sets_error_state(self):
        view = BowtieDiagramView()
        asyncio.run(view.refresh(_diagram("first")))
        previous = view.graph

        async def failing(diagram, options):
            raise LayoutError("no coordinates")

        with patch("bowtie_layout.view.layout_bowtie_diagram", failing):
            result = asyncio.run(view.refresh(_diagram("second")))

        assert result is None
        assert view.status == "error"
        assert view.error == RENDER_ERROR_MESSAGE
        assert view.graph is previous

    def test_default_view_level_hides_sub_threats(self):
        diagram = _diagram("nested").model_copy(update={"threats": [
            Threat(id="t", label="Threat", sub_threats=[Threat(id="t1", label="Sub threat", level=1)]),
        ]})
        view = BowtieDiagramView()

        asyncio.run(view.refresh(diagram))
        shallow = {n.id for n in view.graph.nodes}
        asyncio.run(view.refresh(diagram, view_level=math.inf))
        deep = {n.id for n in view.graph.nodes}

        assert "threat-t" in shallow
        assert "threat-t1" not in shallow
        assert "threat-t1" in deep

    def test_view_level_is_forwarded(self):
        seen = []

        async def recording(diagram, options):
            seen.append(options)
            return compute_layout(diagram, options)

        view = BowtieDiagramView()
        with patch("bowtie_layout.view.layout_bowtie_diagram", recording):
            asyncio.run(view.refresh(_diagram("first"), view_level=1))
        assert isinstance(seen[0], LayoutOptions)
        assert seen[0].view_level == 1

    def test_selected_details(self):
        view = BowtieDiagramView()
        asyncio.run(view.refresh(_diagram("first", threat_label="Fatigue")))
        assert view.selected_details() is None
        view.controller.activate("threat-t")
        assert view.selected_details().label == "Fatigue"


class TestSupersession:
    """A slow, older layout never overwrites a newer one."""

    def test_stale_result_is_discarded(self):
        view = BowtieDiagramView()
        older = _diagram("older", threat_label="Old threat")
        newer = _diagram("newer", threat_label="New threat")

        async def run():
            return await asyncio.gather(view.refresh(older), view.refresh(newer))

        with patch("bowtie_layout.view.layout_bowtie_diagram", _delayed_layout({"older": 0.05})):
            old_result, new_result = asyncio.run(run())

        assert old_result is None
        assert new_result is not None
        assert view.status == "ready"
        assert view.diagram.id == "newer"
        threat = next(n for n in view.render().nodes if n.id == "threat-t")
        assert threat.data.label == "New threat"

    def test_stale_failure_does_not_set_error(self):
        view = BowtieDiagramView()

        async def layout(diagram, options):
            if diagram.id == "older":
                await asyncio.sleep(0.05)
                raise LayoutError("late failure")
            return compute_layout(diagram, options)

        async def run():
            await asyncio.gather(view.refresh(_diagram("older")), view.refresh(_diagram("newer")))

        with patch("bowtie_layout.view.layout_bowtie_diagram", layout):
            asyncio.run(run())

        assert view.status == "ready"
        assert view.error is None

    def test_focus_survives_refresh_of_same_graph(self):
        view = BowtieDiagramView()
        asyncio.run(view.refresh(_diagram("first")))
        view.controller.double_activate("threat-t")
        asyncio.run(view.refresh(_diagram("first"), view_level=math.inf))
        assert view.controller.focused_id == "threat-t"
