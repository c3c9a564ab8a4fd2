from .engine import (
    compact_primary_nodes,
    compute_layout,
    distribute_barriers,
    filter_by_level,
    layout_bowtie_diagram,
)
from .layered import LayoutError

__all__ = [
    "compact_primary_nodes",
    "compute_layout",
    "distribute_barriers",
    "filter_by_level",
    "layout_bowtie_diagram",
    "LayoutError",
]
