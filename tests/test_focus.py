"""Tests for focus scoping, inline layout and the focus controller."""

import math

import pytest

from bowtie_layout.config import (
    FOCUS_BARRIER_GAP,
    FOCUS_VERTICAL_GAP,
    FOCUS_VERTICAL_RANGE,
    HAZARD_NODE_HEIGHT,
    HAZARD_VERTICAL_GAP,
    LayoutOptions,
)
from bowtie_layout.focus.controller import (
    FocusController,
    FocusSession,
    PositionChange,
    constrain_position_changes,
)
from bowtie_layout.focus.inline_layout import apply_focus_layout
from bowtie_layout.focus.scope import filter_graph_for_focus
from bowtie_layout.graph.builder import build_bowtie_graph
from bowtie_layout.layout.engine import compute_layout
from bowtie_layout.models.bowtie import Barrier, BowtieDiagram, Consequence, Hazard, Threat, TopEvent
from bowtie_layout.models.graph import Position

THREAT = "threat-t"
CONSEQUENCE = "consequence-c"
B1 = "barrier-preventive-b1"
B2 = "barrier-preventive-b2"
B3 = "barrier-preventive-b3"
M1 = "barrier-mitigative-m1"


def _diagram() -> BowtieDiagram:
    return BowtieDiagram(
        id="focus",
        name="Focus",
        hazard=Hazard(id="h", label="Hazard"),
        top_event=TopEvent(id="te", label="Top event"),
        threats=[Threat(id="t", label="Threat"), Threat(id="t2", label="Other threat")],
        consequences=[Consequence(id="c", label="Consequence"), Consequence(id="c2", label="Other")],
        barriers=[
            Barrier(id="b1", label="B1", type="preventive", threat_id="t", sequence_index=0),
            Barrier(id="b2", label="B2", type="preventive", threat_id="t", sequence_index=1),
            Barrier(id="b3", label="B3", type="preventive", threat_id="t2"),
            Barrier(id="m1", label="M1", type="mitigative", consequence_id="c"),
        ],
    )


@pytest.fixture(scope="module")
def graph():
    diagram = _diagram()
    return build_bowtie_graph(compute_layout(diagram, LayoutOptions(view_level=math.inf)), diagram)


@pytest.fixture
def controller(graph):
    controller = FocusController()
    controller.load_graph(graph)
    return controller


def _node(nodes, node_id):
    return next(n for n in nodes if n.id == node_id)


class TestFocusScope:
    """Which nodes and edges are visible."""

    def test_unfocused_hides_barriers(self, graph):
        scoped = filter_graph_for_focus(graph.nodes, graph.edges, None)
        assert not any(n.type == "barrier" for n in scoped.nodes)
        ids = {n.id for n in scoped.nodes}
        assert all(e.source in ids and e.target in ids for e in scoped.edges)

    def test_threat_focus_keeps_only_its_branch(self, graph):
        scoped = filter_graph_for_focus(graph.nodes, graph.edges, THREAT)
        assert {n.id for n in scoped.nodes} == {"hazard-h", "topEvent-te", THREAT, B1, B2}

    def test_consequence_focus(self, graph):
        scoped = filter_graph_for_focus(graph.nodes, graph.edges, CONSEQUENCE)
        assert {n.id for n in scoped.nodes} == {"hazard-h", "topEvent-te", CONSEQUENCE, M1}

    def test_focus_drops_fallback_edges(self, graph):
        assert any(e.fallback for e in graph.edges)
        scoped = filter_graph_for_focus(graph.nodes, graph.edges, THREAT)
        assert not any(e.fallback for e in scoped.edges)
        assert {(e.source, e.target) for e in scoped.edges} >= {(THREAT, B1), (B1, B2), (B2, "topEvent-te")}

    def test_empty_graph(self):
        scoped = filter_graph_for_focus([], [], THREAT)
        assert scoped.nodes == [] and scoped.edges == []


class TestInlineLayout:
    """Row layout of the focused branch."""

    def _layout(self, graph, focused_id, **kwargs):
        scoped = filter_graph_for_focus(graph.nodes, graph.edges, focused_id)
        return scoped.nodes, apply_focus_layout(scoped.nodes, focused_id, barrier_order=graph.barrier_order, **kwargs)

    def test_barriers_run_left_to_right(self, graph):
        _, result = self._layout(graph, THREAT)
        threat, b1, b2 = (_node(result.nodes, i) for i in (THREAT, B1, B2))
        assert b1.position.x == pytest.approx(threat.position.x + threat.width + FOCUS_BARRIER_GAP)
        assert b2.position.x == pytest.approx(b1.position.x + b1.width + FOCUS_BARRIER_GAP)
        assert b2.position.y >= b1.position.y + b1.height + FOCUS_VERTICAL_GAP

    def test_top_event_stays_put_and_clears_chain(self, graph):
        before, result = self._layout(graph, THREAT)
        top_before = _node(before, "topEvent-te").position
        top = _node(result.nodes, "topEvent-te")
        b2 = _node(result.nodes, B2)
        assert (top.position.x, top.position.y) == pytest.approx((top_before.x, top_before.y))
        assert top.position.x >= b2.position.x + b2.width + FOCUS_BARRIER_GAP - 1e-6

    def test_hazard_is_reanchored(self, graph):
        _, result = self._layout(graph, THREAT)
        top = _node(result.nodes, "topEvent-te")
        hazard = _node(result.nodes, "hazard-h")
        assert hazard.position.y == pytest.approx(top.position.y - HAZARD_NODE_HEIGHT - HAZARD_VERTICAL_GAP)

    def test_inline_positions_match_nodes(self, graph):
        _, result = self._layout(graph, THREAT)
        assert set(result.inline_positions) == {B1, B2}
        for barrier_id, pos in result.inline_positions.items():
            node = _node(result.nodes, barrier_id)
            assert (pos.x, pos.y) == pytest.approx((node.position.x, node.position.y))

    def test_offsets_are_clamped(self, graph):
        _, huge = self._layout(graph, THREAT, barrier_offsets={B1: 10_000})
        _, capped = self._layout(graph, THREAT, barrier_offsets={B1: FOCUS_VERTICAL_RANGE})
        assert _node(huge.nodes, B1).position.y == pytest.approx(_node(capped.nodes, B1).position.y)

    def test_consequence_never_overlaps_chain(self, graph):
        _, result = self._layout(graph, CONSEQUENCE, focus_node_offsets={CONSEQUENCE: Position(x=-5000, y=0)})
        consequence = _node(result.nodes, CONSEQUENCE)
        m1 = _node(result.nodes, M1)
        assert consequence.position.x == pytest.approx(m1.position.x + m1.width + FOCUS_BARRIER_GAP)

    def test_unfocused_is_passthrough(self, graph):
        result = apply_focus_layout(graph.nodes, None)
        assert result.nodes is graph.nodes
        assert result.inline_positions == {}

    def test_input_nodes_are_not_modified(self, graph):
        before = [(n.id, n.position.x, n.position.y) for n in graph.nodes]
        self._layout(graph, THREAT, barrier_offsets={B1: 50})
        assert [(n.id, n.position.x, n.position.y) for n in graph.nodes] == before


class TestFocusTransitions:
    """The Unfocused / Focused state machine."""

    def test_double_activate_focuses_and_selects(self, controller):
        controller.double_activate(THREAT)
        assert controller.focused_id == THREAT
        assert controller.filters.selected_node_id == THREAT
        assert {B1, B2} <= {n.id for n in controller.render().nodes}

    def test_double_activate_focused_node_leaves_focus(self, controller):
        controller.double_activate(THREAT)
        controller.double_activate(THREAT)
        assert controller.focused_id is None
        assert not any(n.type == "barrier" for n in controller.render().nodes)

    def test_switching_focus_resets_session(self, controller):
        controller.double_activate(THREAT)
        controller.barrier_offsets = {B1: 40.0}
        controller.double_activate(CONSEQUENCE)
        assert controller.focused_id == CONSEQUENCE
        assert controller.barrier_offsets == {}

    def test_barriers_and_top_event_cannot_be_focused(self, controller):
        controller.double_activate("topEvent-te")
        controller.double_activate(B1)
        assert controller.focused_id is None

    def test_background_activation_clears_focus_and_selection(self, controller):
        controller.double_activate(THREAT)
        controller.activate_background()
        assert controller.focused_id is None
        assert controller.filters.selected_node_id is None

    def test_exit_focus_keeps_selection(self, controller):
        controller.double_activate(THREAT)
        controller.exit_focus()
        assert controller.focused_id is None
        assert controller.filters.selected_node_id == THREAT

    def test_vanished_focus_node_reverts_to_unfocused(self, controller):
        controller.double_activate(THREAT)
        controller.barrier_offsets = {B1: 30.0}
        diagram = _diagram().model_copy(update={
            "threats": [Threat(id="t2", label="Other threat")],
            "barriers": [Barrier(id="b3", label="B3", type="preventive", threat_id="t2")],
        })
        rebuilt = build_bowtie_graph(compute_layout(diagram, LayoutOptions(view_level=math.inf)), diagram)
        controller.load_graph(rebuilt)
        assert controller.session is None
        assert controller.barrier_offsets == {}
        assert controller.focus_node_offsets == {}
        assert controller.filters.selected_node_id is None

    def test_focus_label(self, controller):
        assert controller.focus_label is None
        controller.double_activate(CONSEQUENCE)
        assert controller.focus_label == "Consequence"


class TestDragConstraints:
    """Position-change handling."""

    def test_barrier_x_is_locked_to_latest_layout(self, controller):
        controller.double_activate(THREAT)
        for dx, dy in [(300, 0), (-120, 20), (55, -10)]:
            layout_x = controller.inline_positions[B1].x
            current = _node(controller.render().nodes, B1).position
            controller.apply_position_changes([PositionChange(B1, current.x + dx, current.y + dy)])
            assert _node(controller.render().nodes, B1).position.x == pytest.approx(layout_x)

    def test_barrier_vertical_drag_accumulates(self, controller):
        controller.double_activate(THREAT)
        start = _node(controller.render().nodes, B1).position
        controller.apply_position_changes([PositionChange(B1, start.x, start.y + 50)])
        assert controller.barrier_offsets[B1] == pytest.approx(50)
        moved = _node(controller.render().nodes, B1).position
        assert moved.y == pytest.approx(start.y + 50)

        controller.apply_position_changes([PositionChange(B1, moved.x, moved.y + 10)])
        assert controller.barrier_offsets[B1] == pytest.approx(60)

    def test_barrier_offset_is_clamped(self, controller):
        controller.double_activate(THREAT)
        start = _node(controller.render().nodes, B1).position
        controller.apply_position_changes([PositionChange(B1, start.x, start.y + 1000)])
        assert controller.barrier_offsets[B1] == FOCUS_VERTICAL_RANGE

    def test_focused_threat_cannot_pass_anchor(self, controller):
        controller.double_activate(THREAT)
        anchor = controller.session.anchor_position
        controller.apply_position_changes([PositionChange(THREAT, anchor.x + 200, anchor.y)])
        assert controller.focus_node_offsets.get(THREAT, Position()).x == 0

    def test_focused_threat_offsets_accumulate(self, controller):
        controller.double_activate(THREAT)
        last = controller.session.last_known_position
        controller.apply_position_changes([PositionChange(THREAT, last.x - 30, last.y)])
        last = controller.session.last_known_position
        controller.apply_position_changes([PositionChange(THREAT, last.x - 20, last.y)])
        assert controller.focus_node_offsets[THREAT].x == pytest.approx(-50)

    def test_unfocused_drag_is_copy_on_write(self, controller):
        before = controller.raw_nodes
        original = _node(before, THREAT).position
        controller.apply_position_changes([PositionChange(THREAT, 5, 7)])
        assert (_node(controller.raw_nodes, THREAT).position.x, _node(controller.raw_nodes, THREAT).position.y) == (5, 7)
        assert _node(before, THREAT).position == original
        assert controller.raw_nodes is not before

    def test_top_event_drags_are_ignored(self, controller):
        before = _node(controller.raw_nodes, "topEvent-te").position
        controller.apply_position_changes([PositionChange("topEvent-te", 0, 0)])
        assert _node(controller.raw_nodes, "topEvent-te").position == before


class TestConstrainPositionChanges:
    """The pure constraint function."""

    def test_anchor_clamp_only_applies_to_focused_threat(self, graph):
        other = _node(graph.nodes, "threat-t2")
        session = FocusSession(focused_id=THREAT, anchor_position=Position(x=10, y=0))
        changes = constrain_position_changes(
            [PositionChange(THREAT, 500, 1), PositionChange(other.id, 500, 1)],
            graph.nodes,
            session,
        )
        assert (changes[0].x, changes[0].y) == (10, 1)
        assert changes[1].x == 500

    def test_barrier_without_inline_position_uses_node_x(self, graph):
        barrier = _node(graph.nodes, B3)
        [change] = constrain_position_changes([PositionChange(B3, barrier.position.x + 99, 3)], graph.nodes)
        assert change.x == barrier.position.x
        assert change.y == 3
