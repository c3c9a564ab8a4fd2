from .controller import FocusController, FocusSession, PositionChange, constrain_position_changes
from .inline_layout import FocusLayoutResult, apply_focus_layout
from .scope import ScopedGraph, filter_graph_for_focus

__all__ = [
    "FocusController",
    "FocusSession",
    "PositionChange",
    "constrain_position_changes",
    "FocusLayoutResult",
    "apply_focus_layout",
    "ScopedGraph",
    "filter_graph_for_focus",
]
