from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Severity = Literal["low", "medium", "high", "critical"]
BarrierType = Literal["preventive", "mitigative"]
BARRIER_TYPES: tuple[str, ...] = ("preventive", "mitigative")


class _BowtieModel(BaseModel):
    # JSON payloads use camelCase (parentId, subThreats, topEvent, ...)
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Appearance(_BowtieModel):
    """
    Presentation hints passed through untouched to the render layer.
    """
    background: Optional[str] = None
    border_color: Optional[str] = None
    text_color: Optional[str] = None
    shadow_color: Optional[str] = None


class Hazard(_BowtieModel):
    """
    The hazard at the root of the causal chain.
    """
    id: str = Field("", description="Unique identifier for the hazard")
    label: str = Field("", description="Short name of the hazard")
    description: Optional[str] = Field(None, description="Detailed description")


class TopEvent(_BowtieModel):
    """
    The central undesired event every threat leads to.
    """
    id: str = Field("", description="Unique identifier for the top event")
    label: str = Field("", description="Short name of the top event")
    description: Optional[str] = Field(None, description="Detailed description")
    severity: Optional[Severity] = Field(None, description="Severity rating")


class Threat(_BowtieModel):
    """
    Represents a potential cause or threat in the Bowtie diagram.
    """
    id: str = Field("", description="Unique identifier for the threat")
    label: str = Field("", description="Short name of the threat")
    description: Optional[str] = Field(None, description="Detailed description")
    level: int = Field(0, ge=0, description="Drill-down depth (0 = top level)")
    parent_id: Optional[str] = Field(None, description="Id of the parent threat")
    severity: Optional[Severity] = Field(None, description="Severity rating")
    appearance: Optional[Appearance] = None
    sub_threats: list["Threat"] = Field(default_factory=list, description="Nested sub-threats")


class Consequence(_BowtieModel):
    """
    Represents a consequence (outcome) in the Bowtie diagram.
    """
    id: str = Field("", description="Unique identifier for the consequence")
    label: str = Field("", description="Short name of the consequence")
    description: Optional[str] = Field(None, description="Detailed description")
    level: int = Field(0, ge=0, description="Drill-down depth (0 = top level)")
    parent_id: Optional[str] = Field(None, description="Id of the parent consequence")
    severity: Optional[Severity] = Field(None, description="Severity rating")
    appearance: Optional[Appearance] = None
    sub_consequences: list["Consequence"] = Field(
        default_factory=list, description="Nested sub-consequences"
    )


class Barrier(_BowtieModel):
    """
    Represents a barrier (control) in the Bowtie diagram.

    ``type`` is a plain string defaulting to "" so that a missing or malformed
    value is reported by the validator instead of failing to parse.
    """
    id: str = Field("", description="Unique identifier for the barrier")
    label: str = Field("", description="Name of the barrier")
    description: Optional[str] = Field(None, description="Detailed description")
    type: str = Field("", description="preventive (left side) or mitigative (right side)")
    effectiveness: Optional[Literal["low", "medium", "high"]] = Field(
        None, description="Rated effectiveness of the barrier"
    )
    threat_id: Optional[str] = Field(None, description="Threat a preventive barrier blocks")
    consequence_id: Optional[str] = Field(None, description="Consequence a mitigative barrier limits")
    owner: Optional[str] = Field(None, description="Role responsible for the barrier")
    mechanism: Optional[str] = Field(None, description="activeHuman, activeHardware, passiveHardware or hybrid")
    sequence_index: Optional[int] = Field(None, ge=0, description="Position in the barrier chain")


class BowtieDiagram(_BowtieModel):
    """
    Represents the full Bowtie diagram structure.
    """
    id: str = Field("", description="Diagram identifier")
    name: str = Field("", description="Display name of the diagram")
    hazard: Optional[Hazard] = Field(None, description="The primary hazard")
    top_event: Optional[TopEvent] = Field(None, description="The top event (loss of control)")
    threats: list[Threat] = Field(default_factory=list, description="List of threats")
    consequences: list[Consequence] = Field(default_factory=list, description="List of consequences")
    barriers: list[Barrier] = Field(default_factory=list, description="List of barriers")
