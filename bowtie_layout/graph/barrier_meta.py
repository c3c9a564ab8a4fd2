"""Display metadata for barrier mechanisms and types."""
from typing import Optional

BARRIER_MECHANISM_META: dict[str, dict[str, str]] = {
    "activeHuman": {"label": "Active human", "color": "#dc2626"},
    "activeHardware": {"label": "Active hardware", "color": "#0ea5e9"},
    "passiveHardware": {"label": "Passive hardware", "color": "#10b981"},
    "hybrid": {"label": "Active human + hardware", "color": "#a16207"},
}


def describe_barrier_mechanism(mechanism: Optional[str]) -> Optional[dict[str, str]]:
    if not mechanism:
        return None
    return BARRIER_MECHANISM_META.get(mechanism)


def describe_barrier_type(barrier_type: Optional[str]) -> str:
    return "Mitigative barrier" if barrier_type == "mitigative" else "Preventive barrier"
