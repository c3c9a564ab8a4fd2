"""LayoutNodes + diagram -> decorated render nodes and causal edges."""
import logging
from typing import Optional

from bowtie_layout.config import (
    DEFAULT_BARRIER_NODE_HEIGHT,
    DEFAULT_BARRIER_NODE_WIDTH,
    HAZARD_NODE_HEIGHT,
    HAZARD_NODE_WIDTH,
    HAZARD_VERTICAL_GAP,
    TOP_EVENT_NODE_WIDTH,
)
from bowtie_layout.graph.presentation import derive_severity_level
from bowtie_layout.models.bowtie import BowtieDiagram, Hazard
from bowtie_layout.models.graph import (
    BarrierNodeData,
    BowtieGraph,
    ConsequenceNodeData,
    HazardNodeData,
    Position,
    RenderEdge,
    RenderNode,
    ThreatNodeData,
    TopEventNodeData,
)
from bowtie_layout.models.index import DiagramIndex
from bowtie_layout.models.layout import LayoutNode, node_id

logger = logging.getLogger(__name__)


def _node_data(layout_node: LayoutNode, diagram: BowtieDiagram, index: DiagramIndex):
    label = layout_node.label
    key = layout_node.domain_id

    if layout_node.type == "threat":
        threat = index.threats.get(key)
        if threat is None:
            return ThreatNodeData(label=label, level=layout_node.level)
        return ThreatNodeData(
            label=threat.label or label,
            description=threat.description,
            level=threat.level,
            severity=threat.severity,
            severity_level=derive_severity_level(threat.severity, threat.level),
            has_children=bool(index.threats.children_of(threat.id)),
            appearance=threat.appearance,
        )

    if layout_node.type == "consequence":
        consequence = index.consequences.get(key)
        if consequence is None:
            return ConsequenceNodeData(label=label, level=layout_node.level)
        return ConsequenceNodeData(
            label=consequence.label or label,
            description=consequence.description,
            level=consequence.level,
            severity=consequence.severity,
            severity_level=derive_severity_level(consequence.severity, consequence.level),
            has_children=bool(index.consequences.children_of(consequence.id)),
            appearance=consequence.appearance,
        )

    if layout_node.type == "barrier":
        barrier = index.barriers.get(key)
        if barrier is None:
            return BarrierNodeData(label=label, barrier_type=layout_node.barrier_type or "preventive")
        return BarrierNodeData(
            label=barrier.label or label,
            description=barrier.description,
            barrier_type=layout_node.barrier_type or "preventive",
            effectiveness=barrier.effectiveness,
            related_threat_id=barrier.threat_id,
            related_consequence_id=barrier.consequence_id,
            owner=barrier.owner,
            mechanism=barrier.mechanism,
        )

    if layout_node.type == "topEvent":
        top_event = diagram.top_event
        if top_event is None:
            return TopEventNodeData(label=label)
        return TopEventNodeData(
            label=top_event.label or label,
            description=top_event.description,
            severity=top_event.severity,
        )

    if layout_node.type == "hazard":
        hazard = diagram.hazard
        return HazardNodeData(
            label=(hazard.label if hazard else "") or label,
            description=hazard.description if hazard else None,
        )

    raise ValueError(f"Unknown layout node type: {layout_node.type!r}")


def _render_node(layout_node: LayoutNode, diagram: BowtieDiagram, index: DiagramIndex) -> RenderNode:
    node = RenderNode(
        id=layout_node.id,
        type=layout_node.type,
        domain_id=layout_node.domain_id,
        position=Position(x=layout_node.x, y=layout_node.y),
        width=layout_node.width,
        height=layout_node.height,
        draggable=layout_node.type != "topEvent",
        data=_node_data(layout_node, diagram, index),
    )
    if layout_node.type == "barrier":
        node = node.model_copy(update={
            "lock_x": True,
            "width": DEFAULT_BARRIER_NODE_WIDTH,
            "height": DEFAULT_BARRIER_NODE_HEIGHT,
        })
    return node


def hazard_node(hazard: Hazard, top_event: RenderNode) -> RenderNode:
    """Hazard node centred above the top event."""
    top_width = top_event.width or TOP_EVENT_NODE_WIDTH
    return RenderNode(
        id=node_id("hazard", hazard.id),
        type="hazard",
        domain_id=hazard.id,
        position=Position(
            x=top_event.position.x + (top_width - HAZARD_NODE_WIDTH) / 2,
            y=top_event.position.y - HAZARD_NODE_HEIGHT - HAZARD_VERTICAL_GAP,
        ),
        width=HAZARD_NODE_WIDTH,
        height=HAZARD_NODE_HEIGHT,
        draggable=False,
        source_position="bottom",
        target_position="top",
        data=HazardNodeData(label=hazard.label, description=hazard.description),
    )


class _EdgeSet:
    """Edges keyed by (source, target); the first request for a pair wins."""

    def __init__(self, node_ids: set[str]):
        self.node_ids = node_ids
        self.edges: list[RenderEdge] = []
        self._seen: set[tuple[str, str]] = set()

    def add(self, edge: RenderEdge) -> None:
        if edge.source not in self.node_ids or edge.target not in self.node_ids:
            return
        key = (edge.source, edge.target)
        if key in self._seen:
            return
        self._seen.add(key)
        self.edges.append(edge)

    def connect_through(self, chain: list[LayoutNode], start: str, end: str) -> None:
        direct_id = f"edge-{start}-{end}"
        if not chain:
            self.add(RenderEdge(id=direct_id, source=start, target=end))
            return

        previous = start
        for barrier in chain:
            self.add(RenderEdge(id=f"edge-{previous}-{barrier.id}", source=previous, target=barrier.id))
            previous = barrier.id
        self.add(RenderEdge(id=f"edge-{previous}-{end}", source=previous, target=end))
        self.add(RenderEdge(id=direct_id, source=start, target=end, fallback=True))


def compute_barrier_order(layout_nodes: list[LayoutNode]) -> dict[str, int]:
    """Chain position of every barrier node within its parent's group."""
    groups: dict[tuple[Optional[str], str], list[LayoutNode]] = {}
    for node in layout_nodes:
        if node.type != "barrier" or not node.parent_id:
            continue
        groups.setdefault((node.barrier_type, node.parent_id), []).append(node)

    order: dict[str, int] = {}
    for group in groups.values():
        ranked = sorted(group, key=lambda n: (
            n.sequence_index is None,
            n.sequence_index if n.sequence_index is not None else 0,
            n.y,
            n.x,
        ))
        for position, node in enumerate(ranked):
            order[node.id] = position
    return order


def build_edges(layout_nodes: list[LayoutNode], diagram: BowtieDiagram, node_ids: set[str]) -> list[RenderEdge]:
    """Causal and hierarchy edges between the nodes in *node_ids*."""
    edges = _EdgeSet(node_ids)
    top_id = node_id("topEvent", diagram.top_event.id) if diagram.top_event else None
    by_id = {n.id: n for n in layout_nodes}

    preventive: dict[str, list[LayoutNode]] = {}
    mitigative: dict[str, list[LayoutNode]] = {}
    for node in layout_nodes:
        if node.type != "barrier" or not node.parent_id:
            continue
        if node.barrier_type == "preventive":
            preventive.setdefault(node_id("threat", node.parent_id), []).append(node)
        elif node.barrier_type == "mitigative":
            mitigative.setdefault(node_id("consequence", node.parent_id), []).append(node)
    for chain in (*preventive.values(), *mitigative.values()):
        chain.sort(key=lambda n: n.y)

    for node in layout_nodes:
        if node.type == "threat":
            if top_id:
                edges.connect_through(preventive.get(node.id, []), node.id, top_id)
            if node.parent_id:
                parent = node_id("threat", node.parent_id)
                edges.add(RenderEdge(id=f"edge-{node.id}-{parent}", source=node.id, target=parent))
        elif node.type == "consequence":
            if top_id:
                edges.connect_through(mitigative.get(node.id, []), top_id, node.id)
            if node.parent_id:
                parent = node_id("consequence", node.parent_id)
                edges.add(RenderEdge(id=f"edge-{node.id}-{parent}", source=node.id, target=parent))

    if diagram.hazard is not None and top_id and top_id in by_id:
        hazard_id = node_id("hazard", diagram.hazard.id)
        edges.add(RenderEdge(
            id=f"edge-{hazard_id}-topEvent",
            source=hazard_id,
            target=top_id,
            source_handle="bottom",
            target_handle="top",
        ))
    return edges.edges


def build_bowtie_graph(layout_nodes: list[LayoutNode], diagram: BowtieDiagram) -> BowtieGraph:
    """Decorate *layout_nodes* and derive the edge set.

    Deterministic: the same inputs always produce the same nodes and edges.
    """
    index = DiagramIndex(diagram)
    nodes = [_render_node(n, diagram, index) for n in layout_nodes]

    if diagram.hazard is not None and diagram.top_event is not None:
        top = next((n for n in nodes if n.type == "topEvent"), None)
        if top is not None:
            nodes.append(hazard_node(diagram.hazard, top))

    edges = build_edges(layout_nodes, diagram, {n.id for n in nodes})
    logger.debug(f"Built graph for {diagram.id!r}: {len(nodes)} nodes, {len(edges)} edges")
    return BowtieGraph(nodes=nodes, edges=edges, barrier_order=compute_barrier_order(layout_nodes))
