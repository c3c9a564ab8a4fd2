"""Inline re-layout of a focused branch.

The focused threat (or consequence) and the top event become the two ends of
a single row; the barriers guarding the branch are laid out left to right
between them, each shifted by the vertical offset the user dragged it to.
"""
from dataclasses import dataclass, field
from typing import Optional

from bowtie_layout.config import (
    DEFAULT_BARRIER_NODE_HEIGHT,
    DEFAULT_BARRIER_NODE_WIDTH,
    DEFAULT_PARENT_NODE_HEIGHT,
    DEFAULT_PARENT_NODE_WIDTH,
    FOCUS_BARRIER_GAP,
    FOCUS_VERTICAL_GAP,
    FOCUS_VERTICAL_RANGE,
    HAZARD_NODE_HEIGHT,
    HAZARD_NODE_WIDTH,
    HAZARD_VERTICAL_GAP,
    TOP_EVENT_NODE_WIDTH,
)
from bowtie_layout.models.graph import Position, RenderNode


@dataclass
class FocusLayoutResult:
    nodes: list[RenderNode]
    inline_positions: dict[str, Position] = field(default_factory=dict)


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _barrier_sort_key(node: RenderNode, barrier_order: dict[str, int]) -> tuple:
    order = barrier_order.get(node.id)
    if order is not None:
        return (0, order, node.position.x)
    return (1, 0, node.position.x)


def apply_focus_layout(
    nodes: list[RenderNode],
    focused_id: Optional[str],
    barrier_offsets: Optional[dict[str, float]] = None,
    barrier_order: Optional[dict[str, int]] = None,
    focus_node_offsets: Optional[dict[str, Position]] = None,
) -> FocusLayoutResult:
    """Lay the focused branch out as one row; other inputs are returned unchanged.

    Args:
        nodes: Scoped nodes (see ``filter_graph_for_focus``).
        focused_id: Render id of the focused threat or consequence.
        barrier_offsets: Accumulated vertical drag per barrier id.
        barrier_order: Chain index per barrier id.
        focus_node_offsets: Accumulated (dx, dy) drag of the focused node.

    Returns:
        New node list plus the inline position of every barrier, expressed
        in the same coordinate space as the returned nodes.
    """
    if not focused_id:
        return FocusLayoutResult(nodes=nodes)
    barrier_offsets = barrier_offsets or {}
    barrier_order = barrier_order or {}
    focus_node_offsets = focus_node_offsets or {}

    barriers = [n for n in nodes if n.type == "barrier"]
    focus = next((n for n in nodes if n.id == focused_id), None)
    top_event = next((n for n in nodes if n.type == "topEvent"), None)
    if not barriers or focus is None or top_event is None:
        return FocusLayoutResult(nodes=nodes)

    positions: dict[str, Position] = {n.id: n.position.model_copy() for n in nodes}
    threat_focus = focus.type == "threat"
    start, end = (focus, top_event) if threat_focus else (top_event, focus)
    focus_offset = focus_node_offsets.get(focused_id, Position())

    start_pos = positions[start.id]
    if threat_focus:
        start_pos.x += focus_offset.x
        start_pos.y += focus_offset.y
    start_width = start.width or DEFAULT_PARENT_NODE_WIDTH
    start_height = start.height or DEFAULT_PARENT_NODE_HEIGHT
    baseline = start_pos.y + start_height / 2

    previous_right = start_pos.x + start_width
    previous_bottom = start_pos.y - start_height / 2
    inline: dict[str, Position] = {}

    for barrier in sorted(barriers, key=lambda n: _barrier_sort_key(n, barrier_order)):
        width = barrier.width or DEFAULT_BARRIER_NODE_WIDTH
        height = barrier.height or DEFAULT_BARRIER_NODE_HEIGHT
        offset = clamp(barrier_offsets.get(barrier.id, 0.0), -FOCUS_VERTICAL_RANGE, FOCUS_VERTICAL_RANGE)
        top = max(baseline - height / 2 + offset, previous_bottom + FOCUS_VERTICAL_GAP)

        pos = positions[barrier.id]
        pos.x = previous_right + FOCUS_BARRIER_GAP
        pos.y = top
        inline[barrier.id] = pos.model_copy()
        previous_right = pos.x + width
        previous_bottom = pos.y + height

    end_pos = positions[end.id]
    end_height = end.height or DEFAULT_PARENT_NODE_HEIGHT
    end_offset = Position() if threat_focus else focus_offset
    end_pos.y = baseline - end_height / 2 + end_offset.y
    end_pos.x = max(end_pos.x + end_offset.x, previous_right + FOCUS_BARRIER_GAP)

    top_pos = positions[top_event.id]
    hazard = next((n for n in nodes if n.type == "hazard"), None)
    if hazard is not None:
        top_width = top_event.width or TOP_EVENT_NODE_WIDTH
        positions[hazard.id].x = top_pos.x + (top_width - (hazard.width or HAZARD_NODE_WIDTH)) / 2
        positions[hazard.id].y = top_pos.y - (hazard.height or HAZARD_NODE_HEIGHT) - HAZARD_VERTICAL_GAP

    # keep the top event where the overview put it
    shift_x = top_event.position.x - top_pos.x
    shift_y = top_event.position.y - top_pos.y
    if shift_x or shift_y:
        for pos in positions.values():
            pos.x += shift_x
            pos.y += shift_y
        for pos in inline.values():
            pos.x += shift_x
            pos.y += shift_y

    laid_out = [n.moved_to(positions[n.id].x, positions[n.id].y) for n in nodes]
    return FocusLayoutResult(nodes=laid_out, inline_positions=inline)
