import json
import math
from pathlib import Path

from bowtie_layout.app.utils import (
    EDGE_COLUMNS,
    NODE_COLUMNS,
    build_view,
    edges_frame,
    issues_frame,
    load_diagrams,
    nodes_frame,
)
from bowtie_layout.validation.diagram_validator import ValidationIssue

SAMPLE_DIR = Path(__file__).resolve().parent.parent / "data" / "sample"


def test_load_diagrams_returns_empty_when_no_data(tmp_path):
    # Given an empty directory
    data_dir = tmp_path / "diagrams"
    data_dir.mkdir()

    # When loading diagrams
    diagrams = load_diagrams(data_dir)

    # Then
    assert diagrams == {}


def test_load_diagrams_missing_directory(tmp_path):
    assert load_diagrams(tmp_path / "nowhere") == {}


def test_load_diagrams_returns_correct_data(tmp_path):
    # Given a directory with one diagram
    data_dir = tmp_path / "diagrams"
    data_dir.mkdir()
    diagram = {
        "id": "d1",
        "name": "Crane lift",
        "topEvent": {"id": "te", "label": "Dropped load"},
        "threats": [{"id": "t", "label": "Rigging failure"}],
    }
    (data_dir / "d1.json").write_text(json.dumps(diagram), encoding="utf-8")

    # When loading diagrams
    diagrams = load_diagrams(data_dir)

    # Then
    assert list(diagrams) == ["Crane lift"]
    assert diagrams["Crane lift"].threats[0].label == "Rigging failure"


def test_load_diagrams_skips_broken_files(tmp_path):
    """A malformed file is skipped and the rest still load."""
    data_dir = tmp_path / "diagrams"
    data_dir.mkdir()
    (data_dir / "broken.json").write_text("{", encoding="utf-8")
    (data_dir / "ok.json").write_text(json.dumps({"id": "ok", "name": "Ok"}), encoding="utf-8")

    # When loading diagrams
    diagrams = load_diagrams(data_dir)

    # Then - should load without raising
    assert list(diagrams) == ["Ok"]


def test_sample_diagram_builds_frames():
    # Given the bundled sample
    diagrams = load_diagrams(SAMPLE_DIR)
    diagram = next(iter(diagrams.values()))

    # When building a view
    view = build_view(diagram, math.inf)
    graph = view.render()

    # Then
    assert view.status == "ready"
    nodes = nodes_frame(graph)
    edges = edges_frame(graph)
    assert list(nodes.columns) == NODE_COLUMNS
    assert list(edges.columns) == EDGE_COLUMNS
    assert len(nodes) == len(graph.nodes)
    assert "barrier" not in set(nodes["type"])


def test_empty_frames_keep_columns():
    assert list(nodes_frame(None).columns) == NODE_COLUMNS
    assert edges_frame(None).empty


def test_issues_frame_puts_errors_first():
    issues = [
        ValidationIssue(id="diagram.empty", message="Nothing to show", severity="warning"),
        ValidationIssue(id="threat.t.label", message="Missing label", severity="error", related_id="t"),
        ValidationIssue(id="barrier.b.link", message="No link", severity="error", related_id="b"),
    ]

    df = issues_frame(issues)

    assert list(df["id"]) == ["barrier.b.link", "threat.t.label", "diagram.empty"]
