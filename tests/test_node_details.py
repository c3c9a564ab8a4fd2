import json
import math
from pathlib import Path

import pytest

from bowtie_layout.config import LayoutOptions
from bowtie_layout.graph.barrier_meta import describe_barrier_mechanism, describe_barrier_type
from bowtie_layout.graph.builder import build_bowtie_graph
from bowtie_layout.graph.details import get_node_details
from bowtie_layout.layout.engine import compute_layout
from bowtie_layout.models.bowtie import BowtieDiagram

SAMPLE_PATH = Path(__file__).resolve().parent.parent / "data" / "sample" / "highway_bowtie.json"


@pytest.fixture(scope="module")
def sample():
    diagram = BowtieDiagram.model_validate(json.loads(SAMPLE_PATH.read_text(encoding="utf-8")))
    graph = build_bowtie_graph(compute_layout(diagram, LayoutOptions(view_level=math.inf)), diagram)
    return diagram, graph


class TestNodeDetails:
    """Inspector details for each node kind."""

    def test_threat_details_list_children(self, sample):
        diagram, graph = sample
        details = get_node_details(graph.node("threat-threat-distracted-driving"), diagram)
        assert details.kind == "threat"
        assert details.severity == "high"
        assert details.severity_level == 3
        assert details.tags == ["Handheld phone use", "In-cab tasks while moving"]

    def test_barrier_details(self, sample):
        diagram, graph = sample
        details = get_node_details(graph.node("barrier-mitigative-barrier-rollover-response"), diagram)
        assert details.kind == "barrier"
        assert details.barrier_type == "Mitigative barrier"
        assert details.mechanism == "Active human + hardware"
        assert details.mechanism_color == "#a16207"
        assert details.owner == "Emergency Coordinator"
        assert details.related == "Vehicle roll-over"

    def test_hazard_and_top_event(self, sample):
        diagram, graph = sample
        hazard = get_node_details(graph.node("hazard-hazard-vehicle-highway"), diagram)
        top = get_node_details(graph.node("topEvent-top-event-loss-of-control"), diagram)
        assert hazard.label == "Driving a commercial vehicle on a highway"
        assert top.severity == "high"

    def test_nothing_selected(self, sample):
        diagram, _ = sample
        assert get_node_details(None, diagram) is None


class TestBarrierMeta:
    def test_known_mechanism(self):
        assert describe_barrier_mechanism("passiveHardware")["label"] == "Passive hardware"

    def test_unknown_mechanism(self):
        assert describe_barrier_mechanism("telepathy") is None
        assert describe_barrier_mechanism(None) is None

    def test_barrier_type_label(self):
        assert describe_barrier_type("preventive") == "Preventive barrier"
        assert describe_barrier_type("mitigative") == "Mitigative barrier"
