"""Render graph models handed to the drawing layer."""
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

from .bowtie import Appearance, Severity
from .layout import NodeType


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class _NodeData(BaseModel):
    label: str = ""
    description: Optional[str] = None
    selected: bool = False
    highlighted: bool = False
    dimmed: bool = False


class ThreatNodeData(_NodeData):
    kind: Literal["threat"] = "threat"
    level: int = 0
    severity: Optional[Severity] = None
    severity_level: Optional[int] = None
    has_children: bool = False
    appearance: Optional[Appearance] = None


class ConsequenceNodeData(_NodeData):
    kind: Literal["consequence"] = "consequence"
    level: int = 0
    severity: Optional[Severity] = None
    severity_level: Optional[int] = None
    has_children: bool = False
    appearance: Optional[Appearance] = None


class BarrierNodeData(_NodeData):
    kind: Literal["barrier"] = "barrier"
    barrier_type: Literal["preventive", "mitigative"] = "preventive"
    effectiveness: Optional[str] = None
    related_threat_id: Optional[str] = None
    related_consequence_id: Optional[str] = None
    owner: Optional[str] = None
    mechanism: Optional[str] = None


class TopEventNodeData(_NodeData):
    kind: Literal["topEvent"] = "topEvent"
    severity: Optional[Severity] = None


class HazardNodeData(_NodeData):
    kind: Literal["hazard"] = "hazard"


NodeData = Annotated[
    Union[ThreatNodeData, ConsequenceNodeData, BarrierNodeData, TopEventNodeData, HazardNodeData],
    Field(discriminator="kind"),
]


class RenderNode(BaseModel):
    """A decorated, positioned node."""

    id: str
    type: NodeType
    domain_id: str
    position: Position = Field(default_factory=Position)
    width: float = 0.0
    height: float = 0.0
    draggable: bool = True
    lock_x: bool = Field(False, description="Only vertical drags are honoured")
    source_position: Literal["left", "right", "top", "bottom"] = "right"
    target_position: Literal["left", "right", "top", "bottom"] = "left"
    data: NodeData

    def moved_to(self, x: float, y: float) -> "RenderNode":
        return self.model_copy(update={"position": Position(x=x, y=y)})


class RenderEdge(BaseModel):
    id: str
    source: str
    target: str
    type: str = "bowtie"
    fallback: bool = Field(False, description="Direct shortcut that a full barrier chain also covers")
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None


class BowtieGraph(BaseModel):
    """Nodes and edges ready to draw, plus the per-parent barrier chain order."""

    nodes: list[RenderNode] = Field(default_factory=list)
    edges: list[RenderEdge] = Field(default_factory=list)
    barrier_order: dict[str, int] = Field(default_factory=dict)

    def node(self, node_id: str) -> Optional[RenderNode]:
        return next((n for n in self.nodes if n.id == node_id), None)
