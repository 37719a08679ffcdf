"""Audit entities.

Two append-only targets share one write path: the compact audit log and the
richer audit report. Both rows are chained by checksum.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class AuditEntry:
    """Compact audit log row.

    Attributes:
        audit_id: Unique identifier (``AUD_#####``).
        actor_id: User who performed the action, or ``SYSTEM``.
        sheet: Subject table the action touched.
        action: Action keyword (e.g. ``CREATE_USER``).
        target_id: Identifier of the affected record.
        details: Decoded JSON detail payload.
    """

    audit_id: str
    actor_id: str
    sheet: str
    action: str
    target_id: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    created_at: str | None = None
    previous_hash: str | None = None
    checksum: str | None = None


@dataclass
class AuditReportEntry:
    """Enriched audit report row.

    Attributes:
        audit_id: Unique identifier (``AUDR_#####``).
        entity: Entity type (e.g. ``User``, ``Role``).
        entity_id: Identifier of the affected entity.
        action: Report action keyword (e.g. ``ACTIVATE``).
        actor_id: User who performed the action.
        summary: Human-readable one-line summary.
        scope: Scope under which the action was authorized.
    """

    audit_id: str
    entity: str
    entity_id: str
    action: str
    actor_id: str
    summary: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    scope: str = "GLOBAL"
    created_at: str | None = None
    previous_hash: str | None = None
    checksum: str | None = None


@dataclass
class AuditEvent:
    """A single privileged action to be written to both audit targets.

    ``report_action`` is None for events that only belong in the compact
    log (e.g. ``LOGIN_FAILED``).
    """

    actor_id: str
    sheet: str
    action: str
    target_id: str = ""
    details: dict[str, Any] = field(default_factory=dict)
    entity: str = "User"
    report_action: str | None = None
    summary: str = ""
    scope: str = "GLOBAL"
