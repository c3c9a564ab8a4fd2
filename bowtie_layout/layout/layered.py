"""Layered (Sugiyama-style) layout for compound graphs.

Phases, applied to every container (the root graph and every node that has
children), innermost containers first:

  1. Edge lifting    -- edges between descendants become edges between the
                        container's direct children; self-loops are dropped.
  2. Layer assignment -- longest path from the sources of the lifted DAG.
  3. Ordering         -- one barycenter sweep, seeded with insertion order.
  4. Placement        -- layers become columns (direction RIGHT or LEFT),
                         nodes are stacked inside a column and every column is
                         centred on the tallest one.

Child coordinates are relative to their parent, as in ELK's output; use
``flatten`` to turn them into absolute positions.
"""
from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Literal, Optional

import networkx as nx

from bowtie_layout.config import COMPOUND_PADDING

logger = logging.getLogger(__name__)


class LayoutError(RuntimeError):
    """The layered layout could not produce coordinates."""


@dataclass
class LayeredOptions:
    direction: Literal["RIGHT", "LEFT"] = "RIGHT"
    node_spacing: float = 100.0
    layer_spacing: float = 200.0
    padding: float = COMPOUND_PADDING


@dataclass
class LayeredNode:
    id: str
    width: float
    height: float
    label: str = ""
    properties: dict[str, Any] = field(default_factory=dict)
    children: list[LayeredNode] = field(default_factory=list)
    x: Optional[float] = None
    y: Optional[float] = None
    # footprint used for spacing; grows to fit laid-out children
    extent_width: Optional[float] = None
    extent_height: Optional[float] = None


@dataclass
class LayeredEdge:
    id: str
    source: str
    target: str


@dataclass
class LayeredGraph:
    id: str
    children: list[LayeredNode] = field(default_factory=list)
    edges: list[LayeredEdge] = field(default_factory=list)
    options: LayeredOptions = field(default_factory=LayeredOptions)


def _owner_map(nodes: list[LayeredNode]) -> dict[str, str]:
    """Map every descendant id to the id of its ancestor among *nodes*."""
    owners: dict[str, str] = {}

    def visit(node: LayeredNode, top: str) -> None:
        owners[node.id] = top
        for child in node.children:
            visit(child, top)

    for node in nodes:
        visit(node, node.id)
    return owners


def _lift_edges(nodes: list[LayeredNode], edges: list[LayeredEdge]) -> nx.DiGraph:
    owners = _owner_map(nodes)
    graph: nx.DiGraph = nx.DiGraph()
    for node in nodes:
        graph.add_node(node.id)
    for edge in edges:
        src = owners.get(edge.source)
        tgt = owners.get(edge.target)
        if src is None or tgt is None or src == tgt:
            continue
        graph.add_edge(src, tgt)
    return graph


def assign_layers(graph: nx.DiGraph) -> dict[str, int]:
    """Longest-path layering. Raises LayoutError when the graph has a cycle."""
    try:
        order = list(nx.topological_sort(graph))
    except nx.NetworkXUnfeasible as e:
        raise LayoutError(f"Graph contains a cycle: {e}") from e

    layers: dict[str, int] = {node: 0 for node in graph.nodes}
    for node in order:
        for succ in graph.successors(node):
            layers[succ] = max(layers[succ], layers[node] + 1)
    return layers


def order_layers(graph: nx.DiGraph, layers: dict[str, int]) -> list[list[str]]:
    """Order nodes within each layer by the barycenter of their predecessors."""
    layer_count = (max(layers.values()) + 1) if layers else 0
    ordering: list[list[str]] = [[] for _ in range(layer_count)]
    for node in graph.nodes:
        ordering[layers[node]].append(node)

    for index in range(1, layer_count):
        position = {node: pos for layer in ordering[:index] for pos, node in enumerate(layer)}
        current = ordering[index]

        def barycenter(node: str, fallback: int) -> float:
            preds = [position[p] for p in graph.predecessors(node) if p in position]
            return sum(preds) / len(preds) if preds else float(fallback)

        keyed = [(barycenter(node, pos), pos, node) for pos, node in enumerate(current)]
        ordering[index] = [node for _, _, node in sorted(keyed)]
    return ordering


def _extent(node: LayeredNode) -> tuple[float, float]:
    return (
        node.extent_width if node.extent_width is not None else node.width,
        node.extent_height if node.extent_height is not None else node.height,
    )


def _place(
    nodes: list[LayeredNode],
    edges: list[LayeredEdge],
    options: LayeredOptions,
) -> tuple[float, float]:
    """Lay out *nodes* in place and return the width/height they occupy."""
    if not nodes:
        return 0.0, 0.0

    for node in nodes:
        if node.children:
            inner_w, inner_h = _place(node.children, edges, options)
            node.extent_width = max(node.width, inner_w + 2 * options.padding)
            node.extent_height = max(node.height, inner_h + 2 * options.padding)
            for child in node.children:
                child.x = (child.x or 0.0) + options.padding
                child.y = (child.y or 0.0) + options.padding

    graph = _lift_edges(nodes, edges)
    layers = assign_layers(graph)
    ordering = order_layers(graph, layers)
    by_id = {node.id: node for node in nodes}

    column_widths = [max(_extent(by_id[n])[0] for n in layer) for layer in ordering]
    column_heights = [
        sum(_extent(by_id[n])[1] for n in layer) + options.node_spacing * (len(layer) - 1)
        for layer in ordering
    ]
    total_height = max(column_heights)
    total_width = sum(column_widths) + options.layer_spacing * (len(ordering) - 1)

    column_x = 0.0
    for index, layer in enumerate(ordering):
        y = (total_height - column_heights[index]) / 2
        for node_id in layer:
            node = by_id[node_id]
            width, height = _extent(node)
            x = column_x + (column_widths[index] - width) / 2
            if options.direction == "LEFT":
                x = total_width - x - width
            node.x = x
            node.y = y
            y += height + options.node_spacing
        column_x += column_widths[index] + options.layer_spacing

    return total_width, total_height


def layout_graph(graph: LayeredGraph) -> LayeredGraph:
    """Return a positioned copy of *graph*.

    Raises:
        LayoutError: If the graph cannot be layered or a node ends up without
            coordinates.
    """
    positioned = copy.deepcopy(graph)
    _place(positioned.children, positioned.edges, positioned.options)
    for child in positioned.children:
        child.x = (child.x or 0.0) + positioned.options.padding
        child.y = (child.y or 0.0) + positioned.options.padding

    for node, _, _ in flatten(positioned):
        if node.x is None or node.y is None:
            raise LayoutError(f"No coordinates computed for node {node.id!r}")
    logger.debug(f"Layered layout of {positioned.id!r}: {len(positioned.children)} top-level nodes")
    return positioned


def flatten(graph: LayeredGraph) -> Iterator[tuple[LayeredNode, float, float]]:
    """Yield ``(node, absolute_x, absolute_y)`` for every node, parents first."""

    def visit(node: LayeredNode, offset_x: float, offset_y: float):
        if node.x is None or node.y is None:
            yield node, None, None
            return
        abs_x = node.x + offset_x
        abs_y = node.y + offset_y
        yield node, abs_x, abs_y
        for child in node.children:
            yield from visit(child, abs_x, abs_y)

    for child in graph.children:
        yield from visit(child, 0.0, 0.0)
