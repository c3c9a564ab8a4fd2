"""Load bowtie diagrams from JSON files, HTTP endpoints or relational rows."""
import json
import logging
from collections import Counter
from pathlib import Path
from typing import Any, Optional, Union

import requests
from pydantic import BaseModel, Field, ValidationError

from bowtie_layout.models.bowtie import Barrier, BowtieDiagram, Consequence, Hazard, Threat, TopEvent

logger = logging.getLogger(__name__)

USER_AGENT = "BowtieDiagramLayout/0.1 (diagram viewer)"


def load_diagram(path: Union[str, Path]) -> BowtieDiagram:
    """
    Reads a diagram from a JSON file.

    Accepts either the diagram document itself or a relational detail
    document (one with ``bowtie`` and ``barrier_connections`` keys).

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the file is not valid JSON or not a diagram.
    """
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ValueError(f"{path}: invalid JSON ({e})") from e
    return _parse_payload(payload, source=str(path))


def fetch_diagram(
    url: str,
    session: Optional[requests.Session] = None,
    timeout: float = 30,
) -> BowtieDiagram:
    """
    Downloads a diagram document over HTTP.

    Raises:
        requests.HTTPError: On a non-2xx response.
        ValueError: If the body is not a diagram.
    """
    if session is None:
        session = requests.Session()
        session.headers["User-Agent"] = USER_AGENT

    logger.info(f"Fetching diagram from {url}")
    resp = session.get(url, timeout=timeout)
    resp.raise_for_status()
    try:
        payload = resp.json()
    except ValueError as e:
        raise ValueError(f"{url}: response is not JSON ({e})") from e
    return _parse_payload(payload, source=url)


def _parse_payload(payload: Any, source: str) -> BowtieDiagram:
    if not isinstance(payload, dict):
        raise ValueError(f"{source}: expected a JSON object, got {type(payload).__name__}")
    try:
        if "bowtie" in payload and "barrier_connections" in payload:
            return assemble_diagram(payload)
        return BowtieDiagram.model_validate(payload)
    except ValidationError as e:
        raise ValueError(f"{source}: not a bowtie diagram ({e.error_count()} errors)") from e


# ---------------------------------------------------------------------------
# Relational rows
# ---------------------------------------------------------------------------

class _Row(BaseModel):
    id: str
    name: str = ""
    description: Optional[str] = None


class HazardRow(_Row):
    pass


class BowtieRow(_Row):
    hazard_id: Optional[str] = None


class TopEventRow(_Row):
    severity: Optional[str] = None


class ThreatRow(_Row):
    threat_order: int = 0
    severity: Optional[str] = None
    parent_threat_id: Optional[str] = None
    level: int = 0


class ConsequenceRow(_Row):
    consequence_order: int = 0
    severity: Optional[str] = None
    parent_consequence_id: Optional[str] = None
    level: int = 0


class BarrierRow(_Row):
    barrier_order: int = 0
    effectiveness: Optional[str] = None
    owner: Optional[str] = None
    mechanism: Optional[str] = None


class BarrierConnectionRow(BaseModel):
    barrier_id: str
    threat_id: Optional[str] = None
    consequence_id: Optional[str] = None
    sequence_order: int = Field(0, ge=0)


class HazardDetail(BaseModel):
    """Rows describing one hazard's bowtie, as stored relationally."""

    hazard: HazardRow
    bowtie: BowtieRow
    top_event: TopEventRow
    threats: list[ThreatRow] = Field(default_factory=list)
    consequences: list[ConsequenceRow] = Field(default_factory=list)
    barriers: list[BarrierRow] = Field(default_factory=list)
    barrier_connections: list[BarrierConnectionRow] = Field(default_factory=list)


def _severity(value: Optional[str]) -> Optional[str]:
    return value if value in ("low", "medium", "high", "critical") else None


def _barriers_from_connections(detail: HazardDetail) -> list[Barrier]:
    rows = {row.id: row for row in detail.barriers}
    connections = sorted(detail.barrier_connections, key=lambda c: c.sequence_order)
    uses = Counter(c.barrier_id for c in connections)
    barriers: list[Barrier] = []

    for connection in connections:
        row = rows.get(connection.barrier_id)
        if row is None:
            logger.warning(f"Skipping connection to unknown barrier {connection.barrier_id!r}")
            continue
        if connection.threat_id:
            barrier_type, owner_id = "preventive", connection.threat_id
        elif connection.consequence_id:
            barrier_type, owner_id = "mitigative", connection.consequence_id
        else:
            logger.warning(f"Skipping connection for barrier {row.id!r}: no threat or consequence")
            continue

        # a shared barrier appears once per element it guards
        barrier_id = row.id if uses[row.id] == 1 else f"{row.id}:{owner_id}"
        barriers.append(Barrier(
            id=barrier_id,
            label=row.name,
            description=row.description,
            type=barrier_type,
            effectiveness=row.effectiveness if row.effectiveness in ("low", "medium", "high") else None,
            threat_id=connection.threat_id if barrier_type == "preventive" else None,
            consequence_id=connection.consequence_id if barrier_type == "mitigative" else None,
            owner=row.owner,
            mechanism=row.mechanism,
            sequence_index=connection.sequence_order,
        ))
    return barriers


def assemble_diagram(detail: Union[HazardDetail, dict]) -> BowtieDiagram:
    """
    Joins relational hazard rows into a single diagram.

    Threats and consequences keep their stored order; each barrier
    connection becomes one barrier linked to its threat (preventive) or
    consequence (mitigative), ordered by ``sequence_order``.
    """
    if not isinstance(detail, HazardDetail):
        detail = HazardDetail.model_validate(detail)

    threats = [
        Threat(
            id=row.id,
            label=row.name,
            description=row.description,
            level=row.level,
            parent_id=row.parent_threat_id,
            severity=_severity(row.severity),
        )
        for row in sorted(detail.threats, key=lambda r: r.threat_order)
    ]
    consequences = [
        Consequence(
            id=row.id,
            label=row.name,
            description=row.description,
            level=row.level,
            parent_id=row.parent_consequence_id,
            severity=_severity(row.severity),
        )
        for row in sorted(detail.consequences, key=lambda r: r.consequence_order)
    ]

    diagram = BowtieDiagram(
        id=detail.bowtie.id,
        name=detail.bowtie.name or detail.hazard.name,
        hazard=Hazard(id=detail.hazard.id, label=detail.hazard.name, description=detail.hazard.description),
        top_event=TopEvent(
            id=detail.top_event.id,
            label=detail.top_event.name,
            description=detail.top_event.description,
            severity=_severity(detail.top_event.severity),
        ),
        threats=threats,
        consequences=consequences,
        barriers=_barriers_from_connections(detail),
    )
    logger.info(
        f"Assembled diagram {diagram.id!r}: {len(threats)} threats, "
        f"{len(consequences)} consequences, {len(diagram.barriers)} barriers"
    )
    return diagram
