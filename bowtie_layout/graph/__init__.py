from .builder import build_bowtie_graph, compute_barrier_order
from .details import NodeDetails, get_node_details
from .presentation import FilterState, apply_presentation, derive_severity_level

__all__ = [
    "build_bowtie_graph",
    "compute_barrier_order",
    "NodeDetails",
    "get_node_details",
    "FilterState",
    "apply_presentation",
    "derive_severity_level",
]
