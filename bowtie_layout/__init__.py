"""Bow-tie hazard diagram layout and graph construction."""

from .layout import LayoutError, layout_bowtie_diagram
from .graph import build_bowtie_graph
from .view import BowtieDiagramView

__all__ = ["LayoutError", "layout_bowtie_diagram", "build_bowtie_graph", "BowtieDiagramView"]
