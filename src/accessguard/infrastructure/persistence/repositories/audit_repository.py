"""Append-only repositories for the two audit targets.

Both repositories chain each new row to the previous one via checksum.
Rows are never updated or removed.
"""

import json
from typing import Any

from accessguard.domain.entities.audit_entry import AuditEntry, AuditReportEntry
from accessguard.infrastructure.persistence.audit_checksum import AuditChecksum
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import (
    AUDIT_LOG,
    AUDIT_REPORT,
    blank_to_none,
    to_cell,
)


def encode_details(details: dict[str, Any] | None) -> str:
    """Serialize a detail payload to JSON text."""
    if not details:
        return "{}"
    return json.dumps(details, default=str, ensure_ascii=False)


def decode_details(raw: str | None) -> dict[str, Any]:
    """Parse a stored detail payload; non-JSON text is kept under ``raw``."""
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except ValueError:
        return {"raw": raw}
    return value if isinstance(value, dict) else {"value": value}


class _ChainedAuditRepository(SheetRepository):
    key_field = "Audit_Id"

    def _latest_checksum(self) -> str | None:
        rows = self._rows()
        if not rows:
            return None
        return rows[-1].get("Checksum") or None

    def _append_chained(self, row: dict[str, Any]) -> tuple[str | None, str]:
        cells = {header: to_cell(row.get(header)) for header in self.headers}
        previous_hash = self._latest_checksum()
        checksum = AuditChecksum.calculate(cells, previous_hash)
        cells["Previous_Hash"] = previous_hash or ""
        cells["Checksum"] = checksum
        self._append(cells)
        return previous_hash, checksum

    def find_chain_break(self) -> str | None:
        """Return the id of the first row that fails verification, or None."""
        return AuditChecksum.find_break(self._rows(), self.key_field)


class AuditLogRepository(_ChainedAuditRepository):
    """Repository for the compact SYS_Audit_Log sheet."""

    sheet = AUDIT_LOG

    @staticmethod
    def to_entity(row: dict[str, str]) -> AuditEntry:
        """Convert a sheet row to an AuditEntry."""
        return AuditEntry(
            audit_id=row.get("Audit_Id", ""),
            actor_id=row.get("User_Id", ""),
            sheet=row.get("Sheet", ""),
            action=row.get("Action", ""),
            target_id=row.get("Target_Id", ""),
            details=decode_details(row.get("Details")),
            created_at=blank_to_none(row.get("Created_At")),
            previous_hash=blank_to_none(row.get("Previous_Hash")),
            checksum=blank_to_none(row.get("Checksum")),
        )

    def create(self, entry: AuditEntry) -> AuditEntry:
        """Append an entry, filling in its chain fields."""
        entry.previous_hash, entry.checksum = self._append_chained(
            {
                "Audit_Id": entry.audit_id,
                "User_Id": entry.actor_id,
                "Sheet": entry.sheet,
                "Action": entry.action,
                "Target_Id": entry.target_id,
                "Details": encode_details(entry.details),
                "Created_At": entry.created_at,
            }
        )
        return entry

    def list_all(self) -> list[AuditEntry]:
        """Get every entry, oldest first."""
        return [self.to_entity(row) for row in self._rows() if row.get("Audit_Id")]


class AuditReportRepository(_ChainedAuditRepository):
    """Repository for the enriched SYS_Audit_Report sheet."""

    sheet = AUDIT_REPORT

    @staticmethod
    def to_entity(row: dict[str, str]) -> AuditReportEntry:
        """Convert a sheet row to an AuditReportEntry."""
        return AuditReportEntry(
            audit_id=row.get("Audit_Id", ""),
            entity=row.get("Entity", ""),
            entity_id=row.get("Entity_Id", ""),
            action=row.get("Action", ""),
            actor_id=row.get("Actor_Id", ""),
            summary=row.get("Summary", ""),
            details=decode_details(row.get("Details")),
            scope=row.get("Scope", "") or "GLOBAL",
            created_at=blank_to_none(row.get("Created_At")),
            previous_hash=blank_to_none(row.get("Previous_Hash")),
            checksum=blank_to_none(row.get("Checksum")),
        )

    def create(self, entry: AuditReportEntry) -> AuditReportEntry:
        """Append an entry, filling in its chain fields."""
        entry.previous_hash, entry.checksum = self._append_chained(
            {
                "Audit_Id": entry.audit_id,
                "Entity": entry.entity,
                "Entity_Id": entry.entity_id,
                "Action": entry.action,
                "Actor_Id": entry.actor_id,
                "Summary": entry.summary,
                "Details": encode_details(entry.details),
                "Scope": entry.scope or "GLOBAL",
                "Created_At": entry.created_at,
            }
        )
        return entry

    def list_all(self) -> list[AuditReportEntry]:
        """Get every entry, oldest first."""
        return [self.to_entity(row) for row in self._rows() if row.get("Audit_Id")]
