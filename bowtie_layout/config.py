"""Layout configuration: tunable geometry constants and option models."""
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Tunable constants
# ---------------------------------------------------------------------------
DEFAULT_PARENT_NODE_WIDTH: float = 180
DEFAULT_PARENT_NODE_HEIGHT: float = 80
DEFAULT_BARRIER_NODE_WIDTH: float = 240
DEFAULT_BARRIER_NODE_HEIGHT: float = 120
TOP_EVENT_NODE_WIDTH: float = 200
TOP_EVENT_NODE_HEIGHT: float = 100
HAZARD_NODE_WIDTH: float = 240
HAZARD_NODE_HEIGHT: float = 150

HAZARD_VERTICAL_GAP: float = 40
BARRIER_HORIZONTAL_GAP: float = 80
BARRIER_VERTICAL_GAP: float = 32
PRIMARY_NODE_VERTICAL_GAP: float = 48

FOCUS_BARRIER_GAP: float = 48
FOCUS_VERTICAL_RANGE: float = 140
FOCUS_VERTICAL_GAP: float = 16

COMPOUND_PADDING: float = 12


class Spacing(BaseModel):
    """Gaps fed to the layered layout."""

    horizontal: float = Field(200, gt=0, description="Gap between layers (columns)")
    vertical: float = Field(100, gt=0, description="Gap between nodes in the same layer")


class LayoutOptions(BaseModel):
    """Options for a single layout pass."""

    model_config = ConfigDict(populate_by_name=True)

    view_level: float = Field(
        0,
        ge=0,
        alias="viewLevel",
        description="Deepest drill-down level to show; math.inf shows everything",
    )
    spacing: Spacing = Field(default_factory=Spacing)
    direction: Literal["RIGHT", "LEFT"] = Field(
        "RIGHT", description="Principal direction of the layered layout"
    )
