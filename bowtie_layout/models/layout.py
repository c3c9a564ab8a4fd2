from typing import Literal, Optional

from pydantic import BaseModel, Field

NodeType = Literal["threat", "consequence", "barrier", "topEvent", "hazard"]


def node_id(node_type: NodeType, domain_id: str, barrier_type: Optional[str] = None) -> str:
    """Build the render id for a diagram element.

    The prefix keeps ids unique across node types; it is never parsed back.
    """
    if node_type == "barrier":
        return f"barrier-{barrier_type}-{domain_id}"
    return f"{node_type}-{domain_id}"


class LayoutNode(BaseModel):
    """A positioned node produced by one layout pass."""

    id: str = Field(..., description="Type-prefixed node id, unique within the layout")
    type: NodeType
    label: str = ""
    level: int = 0
    domain_id: str = Field(..., description="Id of the diagram element this node draws")
    parent_id: Optional[str] = Field(
        None,
        description="Domain id of the parent threat/consequence (hierarchy parent, or a barrier's owner)",
    )
    barrier_type: Optional[Literal["preventive", "mitigative"]] = None
    sequence_index: Optional[int] = None
    x: float = 0.0
    y: float = 0.0
    width: float = 0.0
    height: float = 0.0

    @property
    def center_y(self) -> float:
        return self.y + self.height / 2
