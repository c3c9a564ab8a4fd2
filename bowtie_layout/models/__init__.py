"""Data models for the bowtie layout engine."""

from .bowtie import Appearance, Barrier, BowtieDiagram, Consequence, Hazard, Threat, TopEvent
from .graph import BowtieGraph, Position, RenderEdge, RenderNode
from .index import DiagramIndex
from .layout import LayoutNode, node_id

__all__ = [
    "Appearance",
    "Barrier",
    "BowtieDiagram",
    "Consequence",
    "Hazard",
    "Threat",
    "TopEvent",
    "BowtieGraph",
    "Position",
    "RenderEdge",
    "RenderNode",
    "DiagramIndex",
    "LayoutNode",
    "node_id",
]
