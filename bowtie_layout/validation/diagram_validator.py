"""Referential-integrity and connectivity checks for bowtie diagrams.

Validation is advisory: problems are returned as a list of issues and never
raised, so callers can still lay out and render a best-effort graph.
"""
import logging
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ValidationError

from bowtie_layout.models.bowtie import BARRIER_TYPES, Barrier, BowtieDiagram
from bowtie_layout.models.index import Hierarchy, iter_nesting_conflicts

logger = logging.getLogger(__name__)


class ValidationIssue(BaseModel):
    id: str
    message: str
    severity: Literal["error", "warning"]
    related_id: Optional[str] = None


def _has_label(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def _safe_label(label: Optional[str], fallback: str) -> str:
    return (label or "").strip() or fallback


class _IdRegistry:
    """Single flat namespace for every id in the diagram."""

    def __init__(self, issues: list[ValidationIssue]):
        self._owners: dict[str, str] = {}
        self._issues = issues

    def register(self, element_id: Optional[str], kind: str, label: Optional[str]) -> bool:
        if not element_id:
            self._issues.append(ValidationIssue(
                id=f"{kind}.missingId",
                message=f'{kind} "{label or "unnamed"}" is missing a stable id.',
                severity="error",
            ))
            return False
        if element_id in self._owners:
            self._issues.append(ValidationIssue(
                id=f"{kind}.duplicateId",
                message=f'Id "{element_id}" is reused by {self._owners[element_id]} and {kind}.',
                severity="error",
                related_id=element_id,
            ))
            return False
        self._owners[element_id] = kind
        return True


def _check_hierarchy(
    hierarchy: Hierarchy,
    nested: list,
    kind: str,
    registry: _IdRegistry,
    issues: list[ValidationIssue],
) -> None:
    prefix = kind.lower()
    for element in hierarchy.elements:
        registry.register(element.id, kind, element.label)
        name = _safe_label(element.label, element.id)
        if not _has_label(element.label):
            issues.append(ValidationIssue(
                id=f"{prefix}.{element.id}.label",
                message=f'{kind} "{name}" is missing a label.',
                severity="error",
                related_id=element.id,
            ))

        if element.parent_id:
            if element.parent_id not in hierarchy:
                issues.append(ValidationIssue(
                    id=f"{prefix}.{element.id}.parent",
                    message=f'{kind} "{name}" references missing parent "{element.parent_id}".',
                    severity="error",
                    related_id=element.id,
                ))
            elif not hierarchy.is_connected(element):
                issues.append(ValidationIssue(
                    id=f"{prefix}.{element.id}.disconnected",
                    message=f'{kind} "{name}" is not connected to the top event due to a broken hierarchy.',
                    severity="error",
                    related_id=element.id,
                ))

    for child, container in iter_nesting_conflicts(nested):
        issues.append(ValidationIssue(
            id=f"{prefix}.{child.id}.nesting",
            message=(
                f'{kind} "{_safe_label(child.label, child.id)}" is nested under "{container.id}" '
                f'but declares parent "{child.parent_id}".'
            ),
            severity="error",
            related_id=child.id,
        ))


def _check_barrier_link(
    barrier: Barrier,
    name: str,
    side: str,
    hierarchy: Hierarchy,
    issues: list[ValidationIssue],
) -> None:
    # side is "threat" for preventive barriers and "consequence" for mitigative ones
    other = "consequence" if side == "threat" else "threat"
    linked_id = barrier.threat_id if side == "threat" else barrier.consequence_id
    other_id = barrier.consequence_id if side == "threat" else barrier.threat_id
    barrier_kind = "Preventive" if side == "threat" else "Mitigative"

    if not linked_id:
        issues.append(ValidationIssue(
            id=f"barrier.{barrier.id}.link",
            message=f'{barrier_kind} barrier "{name}" must reference a {side}Id.',
            severity="error",
            related_id=barrier.id,
        ))
    if other_id or not linked_id:
        issues.append(ValidationIssue(
            id=f"barrier.{barrier.id}.linkType",
            message=(
                f'{barrier_kind} barrier "{name}" must reference only a {side}Id, not a {other}Id.'
            ),
            severity="error",
            related_id=barrier.id,
        ))
    if not linked_id:
        return

    target = hierarchy.get(linked_id)
    if target is None:
        issues.append(ValidationIssue(
            id=f"barrier.{barrier.id}.{side}Missing",
            message=f'Barrier "{name}" references missing {side} "{linked_id}".',
            severity="error",
            related_id=barrier.id,
        ))
    elif not hierarchy.is_connected(target):
        issues.append(ValidationIssue(
            id=f"barrier.{barrier.id}.{side}Disconnected",
            message=(
                f'Barrier "{name}" is attached to {side} "{linked_id}" '
                f"that is not connected to the top event."
            ),
            severity="error",
            related_id=barrier.id,
        ))


def validate_bowtie_diagram(
    diagram: Union[BowtieDiagram, dict[str, Any], None],
) -> list[ValidationIssue]:
    """Check a diagram for integrity problems.

    Args:
        diagram: A parsed diagram, a raw JSON-like dict, or None.

    Returns:
        Every issue found; an empty list means the diagram is sound.
    """
    if diagram is None:
        return [ValidationIssue(
            id="diagram.missing",
            message="Diagram payload is missing.",
            severity="error",
        )]

    if isinstance(diagram, dict):
        try:
            diagram = BowtieDiagram.model_validate(diagram)
        except ValidationError as e:
            issues = []
            for err in e.errors():
                loc = " -> ".join(str(x) for x in err["loc"])
                issues.append(ValidationIssue(
                    id="diagram.schema",
                    message=f"{loc}: {err['msg']}",
                    severity="error",
                ))
            return issues

    issues: list[ValidationIssue] = []
    registry = _IdRegistry(issues)

    if diagram.hazard is None:
        issues.append(ValidationIssue(
            id="hazard.absent",
            message="Each bowtie diagram must define a hazard node.",
            severity="error",
        ))
    else:
        registry.register(diagram.hazard.id, "Hazard", diagram.hazard.label)
        if not _has_label(diagram.hazard.label):
            issues.append(ValidationIssue(
                id="hazard.label",
                message="Hazard label cannot be empty.",
                severity="error",
            ))

    if diagram.top_event is None:
        issues.append(ValidationIssue(
            id="topEvent.absent",
            message="Diagram must define a top event.",
            severity="error",
        ))
    else:
        registry.register(diagram.top_event.id, "TopEvent", diagram.top_event.label)
        if not _has_label(diagram.top_event.label):
            issues.append(ValidationIssue(
                id="topEvent.label",
                message="Top event label cannot be empty.",
                severity="error",
            ))

    threats = Hierarchy(diagram.threats)
    consequences = Hierarchy(diagram.consequences)

    if not len(threats) and not len(consequences):
        issues.append(ValidationIssue(
            id="diagram.empty",
            message="Diagram should define at least one threat or consequence.",
            severity="warning",
        ))

    _check_hierarchy(threats, diagram.threats, "Threat", registry, issues)
    _check_hierarchy(consequences, diagram.consequences, "Consequence", registry, issues)

    for barrier in diagram.barriers:
        registry.register(barrier.id, "Barrier", barrier.label)
        name = _safe_label(barrier.label, barrier.id)

        if not _has_label(barrier.label):
            issues.append(ValidationIssue(
                id=f"barrier.{barrier.id}.label",
                message=f'Barrier "{name}" is missing a label.',
                severity="error",
                related_id=barrier.id,
            ))

        if barrier.type not in BARRIER_TYPES:
            issues.append(ValidationIssue(
                id=f"barrier.{barrier.id}.type",
                message=f'Barrier "{name}" must be preventive or mitigative.',
                severity="error",
                related_id=barrier.id,
            ))
            continue

        if barrier.type == "preventive":
            _check_barrier_link(barrier, name, "threat", threats, issues)
        else:
            _check_barrier_link(barrier, name, "consequence", consequences, issues)

    errors = sum(1 for issue in issues if issue.severity == "error")
    logger.debug(f"Validated diagram {diagram.id!r}: {errors} errors, {len(issues) - errors} warnings")
    return issues
