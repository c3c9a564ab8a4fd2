"""Which nodes and edges are visible for a given focus."""
from dataclasses import dataclass, field
from typing import Optional

from bowtie_layout.models.graph import BarrierNodeData, RenderEdge, RenderNode


@dataclass
class ScopedGraph:
    """Nodes and edges left after focus scoping."""

    nodes: list[RenderNode] = field(default_factory=list)
    edges: list[RenderEdge] = field(default_factory=list)


def _guards(barrier: RenderNode, focus: RenderNode) -> bool:
    data = barrier.data
    if not isinstance(data, BarrierNodeData):
        return False
    if focus.type == "threat":
        return data.related_threat_id == focus.domain_id
    if focus.type == "consequence":
        return data.related_consequence_id == focus.domain_id
    return False


def filter_graph_for_focus(
    nodes: list[RenderNode],
    edges: list[RenderEdge],
    focused_id: Optional[str],
) -> ScopedGraph:
    """Restrict the graph to the overview or to one focused branch.

    Without focus every node except the barriers is kept. With focus only the
    hazard, the top event, the focused node and the barriers guarding it
    remain, and fallback shortcuts are dropped since the chain is drawn.
    """
    if not nodes:
        return ScopedGraph()

    if not focused_id:
        kept = [n for n in nodes if n.type != "barrier"]
        kept_ids = {n.id for n in kept}
        return ScopedGraph(
            nodes=kept,
            edges=[e for e in edges if e.source in kept_ids and e.target in kept_ids],
        )

    focus = next((n for n in nodes if n.id == focused_id), None)
    allowed: set[str] = {focused_id}
    for node in nodes:
        if node.type in ("hazard", "topEvent"):
            allowed.add(node.id)
        elif node.type == "barrier" and focus is not None and _guards(node, focus):
            allowed.add(node.id)

    kept = [n for n in nodes if n.id in allowed]
    kept_ids = {n.id for n in kept}
    return ScopedGraph(
        nodes=kept,
        edges=[
            e for e in edges
            if e.source in kept_ids and e.target in kept_ids and not e.fallback
        ],
    )
