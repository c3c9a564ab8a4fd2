"""Selection, highlight and dimming flags derived from the active filters."""
from typing import Literal, Optional

from pydantic import BaseModel, Field

from bowtie_layout.models.graph import (
    ConsequenceNodeData,
    RenderNode,
    ThreatNodeData,
    TopEventNodeData,
)

SeverityFilter = Literal["all", "low", "medium", "high", "critical"]

SEVERITY_SCALE: dict[str, int] = {
    "low": 1,
    "medium": 2,
    "high": 3,
    "critical": 4,
}


def derive_severity_level(severity: Optional[str], fallback: Optional[int] = None) -> Optional[int]:
    if severity and severity in SEVERITY_SCALE:
        return SEVERITY_SCALE[severity]
    return fallback


class FilterState(BaseModel):
    text: str = Field("", description="Case-insensitive substring matched against label and description")
    severity: SeverityFilter = Field("all", description="'low' matches exactly, other levels match that level and above")
    selected_node_id: Optional[str] = None


def matches_severity(severity: Optional[str], severity_filter: SeverityFilter) -> bool:
    if severity_filter == "all" or severity not in SEVERITY_SCALE:
        return False
    value = SEVERITY_SCALE[severity]
    if severity_filter == "low":
        return value == SEVERITY_SCALE["low"]
    return value >= SEVERITY_SCALE[severity_filter]


def node_severity(node: RenderNode) -> Optional[str]:
    if isinstance(node.data, (ThreatNodeData, ConsequenceNodeData, TopEventNodeData)):
        return node.data.severity
    return None


def apply_presentation(nodes: list[RenderNode], filters: FilterState) -> list[RenderNode]:
    """Return copies of *nodes* with selected/highlighted/dimmed flags set."""
    needle = filters.text.strip().lower()
    severity_active = filters.severity != "all"
    filter_active = bool(needle) or severity_active

    decorated = []
    for node in nodes:
        haystack = f"{node.data.label} {node.data.description or ''}".lower()
        matches_text = bool(needle) and needle in haystack
        severity = node_severity(node)
        matched = matches_text or matches_severity(severity, filters.severity)

        selected = filters.selected_node_id == node.id
        highlighted = selected or (filter_active and matched)
        data = node.data.model_copy(update={
            "selected": selected,
            "highlighted": highlighted,
            "dimmed": filter_active and not highlighted,
        })
        decorated.append(node.model_copy(update={"data": data}))
    return decorated
