"""Bowtie diagram -> positioned LayoutNodes.

The layered layout places the three columns (threats, top event,
consequences); the post-processing passes then align the primary columns on
the top event and stack each barrier group next to the element it guards.
"""
import asyncio
import logging
import math
from typing import Optional, TypeVar, Union

from bowtie_layout.config import (
    BARRIER_HORIZONTAL_GAP,
    BARRIER_VERTICAL_GAP,
    DEFAULT_BARRIER_NODE_HEIGHT,
    DEFAULT_BARRIER_NODE_WIDTH,
    DEFAULT_PARENT_NODE_HEIGHT,
    DEFAULT_PARENT_NODE_WIDTH,
    PRIMARY_NODE_VERTICAL_GAP,
    TOP_EVENT_NODE_HEIGHT,
    TOP_EVENT_NODE_WIDTH,
    LayoutOptions,
)
from bowtie_layout.layout.layered import (
    LayeredEdge,
    LayeredGraph,
    LayeredNode,
    LayeredOptions,
    LayoutError,
    flatten,
    layout_graph,
)
from bowtie_layout.models.bowtie import Barrier, BowtieDiagram, Consequence, Threat
from bowtie_layout.models.index import DiagramIndex, Hierarchy
from bowtie_layout.models.layout import LayoutNode, node_id

logger = logging.getLogger(__name__)

E = TypeVar("E", Threat, Consequence)


def filter_by_level(hierarchy: Hierarchy[E], view_level: float) -> list[E]:
    """Elements visible at drill-down depth *view_level*.

    Walks down from the roots: a node is kept while its level is within the
    view level, and its children are only visited while it is strictly
    shallower than the view level. Elements whose parent chain never reaches
    a root are not visited.
    """
    visible: list[E] = []
    seen: set[str] = set()

    def collect(items: list[E]) -> None:
        for item in items:
            if item.id in seen or item.level > view_level:
                continue
            seen.add(item.id)
            visible.append(item)
            if item.level < view_level:
                collect(hierarchy.children_of(item.id))

    collect(hierarchy.roots())
    return visible


def _barrier_child(barrier: Barrier, parent_id: str, index: int) -> LayeredNode:
    sequence = barrier.sequence_index if barrier.sequence_index is not None else index
    return LayeredNode(
        id=node_id("barrier", barrier.id, barrier.type),
        label=barrier.label,
        width=DEFAULT_BARRIER_NODE_WIDTH,
        height=DEFAULT_BARRIER_NODE_HEIGHT,
        properties={
            "type": "barrier",
            "domain_id": barrier.id,
            "barrier_type": barrier.type,
            "parent_id": parent_id,
            "sequence_index": sequence,
        },
    )


def _element_node(element: Union[Threat, Consequence], kind: str, barriers: list[Barrier]) -> LayeredNode:
    return LayeredNode(
        id=node_id(kind, element.id),
        label=element.label,
        width=DEFAULT_PARENT_NODE_WIDTH,
        height=DEFAULT_PARENT_NODE_HEIGHT,
        properties={
            "type": kind,
            "domain_id": element.id,
            "level": element.level,
            "parent_id": element.parent_id,
        },
        children=[_barrier_child(b, element.id, i) for i, b in enumerate(barriers)],
    )


def build_layered_graph(
    diagram: BowtieDiagram,
    options: LayoutOptions,
    index: Optional[DiagramIndex] = None,
) -> LayeredGraph:
    """Three-column compound graph for the visible part of *diagram*."""
    index = index or DiagramIndex(diagram)
    visible_threats = filter_by_level(index.threats, options.view_level)
    visible_consequences = filter_by_level(index.consequences, options.view_level)

    children: list[LayeredNode] = []
    edges: list[LayeredEdge] = []
    top_id = node_id("topEvent", diagram.top_event.id) if diagram.top_event else None

    for threat in visible_threats:
        barriers = index.preventive_barriers(threat.id)
        node = _element_node(threat, "threat", barriers)
        children.append(node)
        if top_id is None:
            continue
        edges.append(LayeredEdge(f"edge-{node.id}-topEvent", node.id, top_id))
        for barrier_node in node.children:
            edges.append(LayeredEdge(f"edge-{node.id}-{barrier_node.id}", node.id, barrier_node.id))
            edges.append(LayeredEdge(f"edge-{barrier_node.id}-topEvent", barrier_node.id, top_id))

    if diagram.top_event is not None:
        children.append(LayeredNode(
            id=top_id,
            label=diagram.top_event.label,
            width=TOP_EVENT_NODE_WIDTH,
            height=TOP_EVENT_NODE_HEIGHT,
            properties={"type": "topEvent", "domain_id": diagram.top_event.id},
        ))
    else:
        logger.warning(f"Diagram {diagram.id!r} has no top event; laying out the remaining elements only")

    for consequence in visible_consequences:
        barriers = index.mitigative_barriers(consequence.id)
        node = _element_node(consequence, "consequence", barriers)
        children.append(node)
        if top_id is None:
            continue
        edges.append(LayeredEdge(f"edge-topEvent-{node.id}", top_id, node.id))
        for barrier_node in node.children:
            edges.append(LayeredEdge(f"edge-topEvent-{barrier_node.id}", top_id, barrier_node.id))
            edges.append(LayeredEdge(f"edge-{barrier_node.id}-{node.id}", barrier_node.id, node.id))

    return LayeredGraph(
        id="root",
        children=children,
        edges=edges,
        options=LayeredOptions(
            direction=options.direction,
            node_spacing=options.spacing.vertical,
            layer_spacing=options.spacing.horizontal,
        ),
    )


def to_layout_nodes(graph: LayeredGraph) -> list[LayoutNode]:
    """Flatten a positioned compound graph into absolute LayoutNodes."""
    nodes: list[LayoutNode] = []
    for layered, abs_x, abs_y in flatten(graph):
        props = layered.properties
        if not props.get("type"):
            continue
        if abs_x is None or abs_y is None:
            raise LayoutError(f"No coordinates computed for node {layered.id!r}")
        nodes.append(LayoutNode(
            id=layered.id,
            type=props["type"],
            label=layered.label,
            level=props.get("level") or 0,
            domain_id=props["domain_id"],
            parent_id=props.get("parent_id"),
            barrier_type=props.get("barrier_type"),
            sequence_index=props.get("sequence_index"),
            x=abs_x,
            y=abs_y,
            width=layered.width or 100,
            height=layered.height or 50,
        ))
    return nodes


def compact_primary_nodes(nodes: list[LayoutNode]) -> list[LayoutNode]:
    """Re-stack top-level threats and consequences around the top event's centre."""
    top_event = next((n for n in nodes if n.type == "topEvent"), None)
    anchor_y = top_event.center_y if top_event else None
    updates: dict[str, float] = {}

    for column_type in ("threat", "consequence"):
        column = [n for n in nodes if n.type == column_type and not n.parent_id]
        if not column:
            continue
        total_height = (
            sum(n.height or DEFAULT_PARENT_NODE_HEIGHT for n in column)
            + PRIMARY_NODE_VERTICAL_GAP * (len(column) - 1)
        )
        anchor = anchor_y if anchor_y is not None else sum(n.center_y for n in column) / len(column)
        current_y = anchor - total_height / 2
        for node in sorted(column, key=lambda n: n.y):
            updates[node.id] = current_y
            current_y += (node.height or DEFAULT_PARENT_NODE_HEIGHT) + PRIMARY_NODE_VERTICAL_GAP

    return [n.model_copy(update={"y": updates[n.id]}) if n.id in updates else n for n in nodes]


def _sequence_key(node: LayoutNode) -> tuple:
    if node.sequence_index is not None:
        return (0, node.sequence_index, node.y)
    return (1, 0, node.y)


def distribute_barriers(nodes: list[LayoutNode]) -> list[LayoutNode]:
    """Stack each barrier group beside its parent, in chain order."""
    parents = {(n.type, n.domain_id): n for n in nodes if n.type in ("threat", "consequence")}
    groups: dict[tuple[str, str], list[LayoutNode]] = {}

    for node in nodes:
        if node.type != "barrier" or not node.parent_id:
            continue
        parent_type = "threat" if node.barrier_type == "preventive" else "consequence"
        key = (parent_type, node.parent_id)
        if key not in parents:
            continue
        groups.setdefault(key, []).append(node)

    placed: dict[str, tuple[float, float]] = {}
    for key, group in groups.items():
        parent = parents[key]
        parent_width = parent.width or DEFAULT_PARENT_NODE_WIDTH
        ordered = sorted(group, key=_sequence_key)
        total_height = (
            sum(b.height or DEFAULT_BARRIER_NODE_HEIGHT for b in ordered)
            + BARRIER_VERTICAL_GAP * (len(ordered) - 1)
        )
        current_y = parent.center_y - total_height / 2
        for barrier in ordered:
            barrier_width = barrier.width or DEFAULT_BARRIER_NODE_WIDTH
            if key[0] == "threat":
                x = parent.x - BARRIER_HORIZONTAL_GAP - barrier_width
            else:
                x = parent.x + parent_width + BARRIER_HORIZONTAL_GAP
            placed[barrier.id] = (x, current_y)
            current_y += (barrier.height or DEFAULT_BARRIER_NODE_HEIGHT) + BARRIER_VERTICAL_GAP

    return [
        n.model_copy(update={"x": placed[n.id][0], "y": placed[n.id][1]}) if n.id in placed else n
        for n in nodes
    ]


def compute_layout(diagram: BowtieDiagram, options: Optional[LayoutOptions] = None) -> list[LayoutNode]:
    """Synchronous layout pass: layered placement followed by compaction."""
    opts = options or LayoutOptions()
    graph = build_layered_graph(diagram, opts)
    try:
        positioned = layout_graph(graph)
    except LayoutError:
        raise
    except Exception as e:
        raise LayoutError(f"Layered layout failed: {e}") from e

    nodes = to_layout_nodes(positioned)
    nodes = distribute_barriers(compact_primary_nodes(nodes))
    level = "all" if math.isinf(opts.view_level) else int(opts.view_level)
    logger.info(f"Laid out {diagram.id!r} at view level {level}: {len(nodes)} nodes")
    return nodes


async def layout_bowtie_diagram(
    diagram: BowtieDiagram,
    options: Optional[LayoutOptions] = None,
) -> list[LayoutNode]:
    """Lay out *diagram* without blocking the event loop.

    Raises:
        LayoutError: If the layered layout cannot produce coordinates.
    """
    try:
        return await asyncio.to_thread(compute_layout, diagram, options)
    except LayoutError as e:
        logger.error(f"Layout error for diagram {diagram.id!r}: {e}")
        raise
