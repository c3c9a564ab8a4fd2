"""Focus state machine, drag handling and the per-session offset maps."""
import logging
from dataclasses import dataclass
from typing import Optional

from bowtie_layout.config import FOCUS_VERTICAL_RANGE
from bowtie_layout.focus.inline_layout import apply_focus_layout, clamp
from bowtie_layout.focus.scope import filter_graph_for_focus
from bowtie_layout.graph.presentation import FilterState, SeverityFilter, apply_presentation
from bowtie_layout.models.graph import BowtieGraph, Position, RenderEdge, RenderNode

logger = logging.getLogger(__name__)

FOCUSABLE_TYPES = ("threat", "consequence")


@dataclass
class FocusSession:
    """State owned by one focus session; replaced whole on every transition."""

    focused_id: str
    anchor_position: Optional[Position] = None
    last_known_position: Optional[Position] = None


@dataclass
class PositionChange:
    """A node moved to (x, y) by the user."""

    id: str
    x: float
    y: float


def constrain_position_changes(
    changes: list[PositionChange],
    nodes: list[RenderNode],
    session: Optional[FocusSession] = None,
    inline_positions: Optional[dict[str, Position]] = None,
) -> list[PositionChange]:
    """Apply the drag rules to *changes*, returning new change objects.

    Barriers keep the x of the most recent layout pass (the inline position
    during focus, otherwise the node's own x). The focused threat cannot be
    dragged right of where it sat when the focus session began.
    """
    inline_positions = inline_positions or {}
    by_id = {n.id: n for n in nodes}
    constrained = []

    for change in changes:
        node = by_id.get(change.id)
        if node is None:
            constrained.append(change)
            continue
        x = change.x
        if node.type == "barrier":
            layout_pos = inline_positions.get(node.id, node.position)
            x = layout_pos.x
        if (
            session is not None
            and node.id == session.focused_id
            and node.type == "threat"
            and session.anchor_position is not None
        ):
            x = min(x, session.anchor_position.x)
        constrained.append(PositionChange(id=change.id, x=x, y=change.y))
    return constrained


class FocusController:
    """Owns the rendered view of one laid-out graph.

    Holds the raw graph from the last successful build, the filter state and
    the focus session; every mutation recomputes :attr:`view`.
    """

    def __init__(self):
        self.raw_nodes: list[RenderNode] = []
        self.base_edges: list[RenderEdge] = []
        self.barrier_order: dict[str, int] = {}
        self.filters = FilterState()
        self.session: Optional[FocusSession] = None
        self.barrier_offsets: dict[str, float] = {}
        self.focus_node_offsets: dict[str, Position] = {}
        self.inline_positions: dict[str, Position] = {}
        self.view = BowtieGraph()

    @property
    def focused_id(self) -> Optional[str]:
        return self.session.focused_id if self.session else None

    @property
    def focus_label(self) -> Optional[str]:
        if self.session is None:
            return None
        node = next((n for n in self.raw_nodes if n.id == self.session.focused_id), None)
        return node.data.label if node else None

    # -- graph ------------------------------------------------------------

    def load_graph(self, graph: BowtieGraph) -> None:
        """Swap in a freshly built graph, dropping state that refers to vanished nodes."""
        self.raw_nodes = list(graph.nodes)
        self.base_edges = list(graph.edges)
        self.barrier_order = dict(graph.barrier_order)
        ids = {n.id for n in self.raw_nodes}

        if self.session is not None and self.session.focused_id not in ids:
            logger.debug(f"Focused node {self.session.focused_id!r} vanished; leaving focus")
            self._set_focus(None)
        if self.filters.selected_node_id and self.filters.selected_node_id not in ids:
            self.filters = self.filters.model_copy(update={"selected_node_id": None})
        self._update_view()

    # -- focus transitions --------------------------------------------------

    def _set_focus(self, focused_id: Optional[str]) -> None:
        self.session = FocusSession(focused_id=focused_id) if focused_id else None
        self.barrier_offsets = {}
        self.focus_node_offsets = {}
        self.inline_positions = {}

    def double_activate(self, node_id: str) -> None:
        """Toggle focus on a threat or consequence."""
        if self.session is not None and node_id == self.session.focused_id:
            self._set_focus(None)
            self._update_view()
            return
        node = next((n for n in self.raw_nodes if n.id == node_id), None)
        if node is None or node.type not in FOCUSABLE_TYPES:
            return
        self._set_focus(node_id)
        self.filters = self.filters.model_copy(update={"selected_node_id": node_id})
        self._update_view()

    def activate(self, node_id: str) -> None:
        """Single activation selects a node."""
        if not any(n.id == node_id for n in self.raw_nodes):
            return
        self.filters = self.filters.model_copy(update={"selected_node_id": node_id})
        self._update_view()

    def activate_background(self) -> None:
        self._set_focus(None)
        self.filters = self.filters.model_copy(update={"selected_node_id": None})
        self._update_view()

    def exit_focus(self) -> None:
        self._set_focus(None)
        self._update_view()

    # -- filters ------------------------------------------------------------

    def set_filter_text(self, text: str) -> None:
        self.filters = self.filters.model_copy(update={"text": text})
        self._update_view()

    def set_severity_filter(self, severity: SeverityFilter) -> None:
        self.filters = FilterState(
            text=self.filters.text,
            severity=severity,
            selected_node_id=self.filters.selected_node_id,
        )
        self._update_view()

    # -- dragging -----------------------------------------------------------

    def apply_position_changes(self, changes: list[PositionChange]) -> None:
        """Apply user drags against the latest node arrays."""
        draggable = {n.id for n in self.raw_nodes if n.draggable}
        changes = [c for c in changes if c.id in draggable]
        if not changes:
            return
        changes = constrain_position_changes(
            changes, self.raw_nodes, self.session, self.inline_positions
        )

        session_moves: dict[str, PositionChange] = {}
        raw_moves: dict[str, PositionChange] = {}
        for change in changes:
            # without an inline chain the focused node is moved like any other
            if self.session is not None and self.inline_positions and (
                change.id == self.session.focused_id or change.id in self.inline_positions
            ):
                session_moves[change.id] = change
            else:
                raw_moves[change.id] = change

        if raw_moves:
            self.raw_nodes = [
                n.moved_to(raw_moves[n.id].x, raw_moves[n.id].y) if n.id in raw_moves else n
                for n in self.raw_nodes
            ]
        if session_moves:
            self._accumulate_offsets(session_moves)
        self._update_view()

    def _accumulate_offsets(self, moves: dict[str, PositionChange]) -> None:
        barrier_offsets = dict(self.barrier_offsets)
        for node_id, change in moves.items():
            inline = self.inline_positions.get(node_id)
            if inline is None:
                continue
            current = barrier_offsets.get(node_id, 0.0)
            barrier_offsets[node_id] = clamp(
                current + change.y - inline.y, -FOCUS_VERTICAL_RANGE, FOCUS_VERTICAL_RANGE
            )
        self.barrier_offsets = barrier_offsets

        focused_id = self.session.focused_id
        change = moves.get(focused_id)
        last = self.session.last_known_position
        if change is None or last is None:
            return
        dx = change.x - last.x
        dy = change.y - last.y
        if dx or dy:
            current = self.focus_node_offsets.get(focused_id, Position())
            self.focus_node_offsets = {
                **self.focus_node_offsets,
                focused_id: Position(x=current.x + dx, y=current.y + dy),
            }

    # -- rendering ----------------------------------------------------------

    def _update_view(self) -> None:
        focused_id = self.focused_id
        scoped = filter_graph_for_focus(self.raw_nodes, self.base_edges, focused_id)
        result = apply_focus_layout(
            scoped.nodes,
            focused_id,
            self.barrier_offsets,
            self.barrier_order,
            self.focus_node_offsets,
        )
        self.inline_positions = result.inline_positions

        if self.session is not None:
            focus_node = next((n for n in result.nodes if n.id == focused_id), None)
            if focus_node is not None:
                position = focus_node.position.model_copy()
                if self.session.anchor_position is None:
                    self.session.anchor_position = position
                self.session.last_known_position = position

        self.view = BowtieGraph(
            nodes=apply_presentation(result.nodes, self.filters),
            edges=scoped.edges,
            barrier_order=self.barrier_order,
        )

    def render(self) -> BowtieGraph:
        return self.view
