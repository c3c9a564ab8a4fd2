"""Inspector-panel details for a selected node."""
from typing import Literal, Optional

from pydantic import BaseModel, Field

from bowtie_layout.graph.barrier_meta import describe_barrier_mechanism, describe_barrier_type
from bowtie_layout.graph.presentation import derive_severity_level
from bowtie_layout.models.bowtie import BowtieDiagram
from bowtie_layout.models.graph import RenderNode
from bowtie_layout.models.index import DiagramIndex


class NodeDetails(BaseModel):
    """
    Everything the inspector shows for one node.
    """
    id: str = Field(..., description="Render node id")
    kind: Literal["threat", "consequence", "barrier", "topEvent", "hazard"]
    label: str = ""
    description: Optional[str] = None
    severity: Optional[str] = None
    severity_level: Optional[int] = Field(None, description="1-4 from severity, else the hierarchy level")
    level: Optional[int] = None
    barrier_type: Optional[str] = Field(None, description="Human readable barrier type")
    effectiveness: Optional[str] = None
    mechanism: Optional[str] = Field(None, description="Human readable barrier mechanism")
    mechanism_color: Optional[str] = Field(None, description="Display colour of the barrier mechanism")
    owner: Optional[str] = None
    related: Optional[str] = Field(None, description="Label of the threat or consequence a barrier guards")
    tags: list[str] = Field(default_factory=list, description="Labels of direct children")


def get_node_details(
    node: Optional[RenderNode],
    diagram: BowtieDiagram,
    index: Optional[DiagramIndex] = None,
) -> Optional[NodeDetails]:
    """Look up *node* in *diagram*; None when nothing is selected or it is unknown."""
    if node is None:
        return None
    index = index or DiagramIndex(diagram)

    if node.type == "threat":
        threat = index.threats.get(node.domain_id)
        if threat is None:
            return None
        return NodeDetails(
            id=node.id,
            kind="threat",
            label=threat.label,
            description=threat.description,
            severity=threat.severity,
            severity_level=derive_severity_level(threat.severity, threat.level),
            level=threat.level,
            tags=[child.label for child in index.threats.children_of(threat.id)],
        )

    if node.type == "consequence":
        consequence = index.consequences.get(node.domain_id)
        if consequence is None:
            return None
        return NodeDetails(
            id=node.id,
            kind="consequence",
            label=consequence.label,
            description=consequence.description,
            severity=consequence.severity,
            severity_level=derive_severity_level(consequence.severity, consequence.level),
            level=consequence.level,
            tags=[child.label for child in index.consequences.children_of(consequence.id)],
        )

    if node.type == "barrier":
        barrier = index.barriers.get(node.domain_id)
        if barrier is None:
            return None
        if barrier.type == "preventive":
            linked = index.threats.get(barrier.threat_id)
        else:
            linked = index.consequences.get(barrier.consequence_id)
        mechanism = describe_barrier_mechanism(barrier.mechanism)
        return NodeDetails(
            id=node.id,
            kind="barrier",
            label=barrier.label,
            description=barrier.description,
            barrier_type=describe_barrier_type(barrier.type),
            effectiveness=barrier.effectiveness,
            mechanism=mechanism["label"] if mechanism else None,
            mechanism_color=mechanism["color"] if mechanism else None,
            owner=barrier.owner,
            related=linked.label if linked else None,
        )

    if node.type == "topEvent":
        top_event = diagram.top_event
        if top_event is None or top_event.id != node.domain_id:
            return None
        return NodeDetails(
            id=node.id,
            kind="topEvent",
            label=top_event.label,
            description=top_event.description,
            severity=top_event.severity,
            severity_level=derive_severity_level(top_event.severity),
        )

    if node.type == "hazard":
        hazard = diagram.hazard
        if hazard is None or hazard.id != node.domain_id:
            return None
        return NodeDetails(id=node.id, kind="hazard", label=hazard.label, description=hazard.description)

    return None
