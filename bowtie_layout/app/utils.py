import asyncio
import logging
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from bowtie_layout.ingestion.loader import load_diagram
from bowtie_layout.models.bowtie import BowtieDiagram
from bowtie_layout.models.graph import BowtieGraph
from bowtie_layout.validation.diagram_validator import ValidationIssue
from bowtie_layout.view import BowtieDiagramView

# Configure logger
logger = logging.getLogger(__name__)

NODE_COLUMNS = ["id", "type", "label", "severity", "x", "y", "width", "height", "highlighted", "dimmed"]
EDGE_COLUMNS = ["id", "source", "target", "fallback"]
ISSUE_COLUMNS = ["severity", "id", "message", "related_id"]


def load_diagrams(data_dir: Path) -> Dict[str, BowtieDiagram]:
    """Loads every diagram JSON file in a directory, keyed by display name."""
    diagrams: Dict[str, BowtieDiagram] = {}
    if not data_dir.exists():
        return diagrams

    for file_path in sorted(data_dir.glob("*.json")):
        try:
            diagram = load_diagram(file_path)
        except ValueError as e:
            logger.warning(f"Failed to load diagram from {file_path}: {e}")
            continue
        diagrams[diagram.name or file_path.stem] = diagram
    return diagrams


def build_view(diagram: BowtieDiagram, view_level: float) -> BowtieDiagramView:
    """Runs one layout pass synchronously for script-style callers."""
    view = BowtieDiagramView()
    asyncio.run(view.refresh(diagram, view_level=view_level))
    return view


def nodes_frame(graph: Optional[BowtieGraph]) -> pd.DataFrame:
    if graph is None or not graph.nodes:
        return pd.DataFrame(columns=NODE_COLUMNS)
    rows: List[dict] = []
    for node in graph.nodes:
        rows.append({
            "id": node.id,
            "type": node.type,
            "label": node.data.label,
            "severity": getattr(node.data, "severity", None),
            "x": node.position.x,
            "y": node.position.y,
            "width": node.width,
            "height": node.height,
            "highlighted": node.data.highlighted,
            "dimmed": node.data.dimmed,
        })
    return pd.DataFrame(rows, columns=NODE_COLUMNS)


def edges_frame(graph: Optional[BowtieGraph]) -> pd.DataFrame:
    if graph is None or not graph.edges:
        return pd.DataFrame(columns=EDGE_COLUMNS)
    return pd.DataFrame(
        [{"id": e.id, "source": e.source, "target": e.target, "fallback": e.fallback} for e in graph.edges],
        columns=EDGE_COLUMNS,
    )


def issues_frame(issues: List[ValidationIssue]) -> pd.DataFrame:
    """Validation issues, errors first."""
    if not issues:
        return pd.DataFrame(columns=ISSUE_COLUMNS)
    df = pd.DataFrame([issue.model_dump() for issue in issues], columns=ISSUE_COLUMNS)
    df["_rank"] = (df["severity"] != "error").astype(int)
    return df.sort_values(["_rank", "id"], kind="stable").drop(columns="_rank").reset_index(drop=True)
