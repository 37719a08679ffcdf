"""Audit log service.

One call records a privileged action to both audit targets: the compact log
(always) and the enriched report (when the action has a report keyword).
Both writes are best-effort and logged on failure; a deployment can make the
report write mandatory, in which case a failure is raised to the caller.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from accessguard.core.clock import Clock
from accessguard.core.logging import get_logger
from accessguard.domain.entities.audit_entry import AuditEntry, AuditEvent, AuditReportEntry
from accessguard.domain.exceptions import AuditWriteError
from accessguard.domain.services.id_generator import SequenceIdGenerator
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import (
    AuditLogRepository,
    AuditReportRepository,
)
from accessguard.infrastructure.persistence.schema import (
    AUDIT_ID_PREFIX,
    AUDIT_LOG,
    AUDIT_REPORT,
    AUDIT_REPORT_ID_PREFIX,
)

logger = get_logger(__name__)


@dataclass
class AuditLogFilters:
    """Filters for compact log queries."""

    user_id: Optional[str] = None
    action: Optional[str] = None
    target_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: Optional[int] = None


class AuditLogService:
    """Service writing and reading the two audit targets."""

    # Detail keys that are always masked
    SENSITIVE_KEYS = {
        "password",
        "password_hash",
        "temporary_password",
        "auth_token",
        "new_password",
    }

    def __init__(
        self,
        log_repository: AuditLogRepository,
        report_repository: AuditReportRepository,
        id_generator: SequenceIdGenerator,
        locks: LockManager,
        clock: Clock,
        report_mandatory: bool = False,
    ) -> None:
        """Initialize the audit log service.

        Args:
            log_repository: Compact log repository.
            report_repository: Enriched report repository.
            id_generator: Generator for AUD/AUDR ids.
            locks: Lock manager serializing appends per target.
            clock: Clock for entry timestamps.
            report_mandatory: Raise AuditWriteError when the report write fails.
        """
        self.log_repository = log_repository
        self.report_repository = report_repository
        self.id_generator = id_generator
        self.locks = locks
        self.clock = clock
        self.report_mandatory = report_mandatory

    def record(self, event: AuditEvent) -> Optional[AuditEntry]:
        """Write an event to the compact log and, if applicable, the report.

        Args:
            event: The action to record.

        Returns:
            The compact log entry, or None if that write failed.

        Raises:
            AuditWriteError: If the report write fails and reports are mandatory.
        """
        details = self._mask(event.details)
        entry = self._write_log(event, details)
        if event.report_action:
            self._write_report(event, details)
        return entry

    def log(
        self,
        actor_id: str,
        sheet: str,
        action: str,
        target_id: str = "",
        details: Optional[dict[str, Any]] = None,
    ) -> Optional[AuditEntry]:
        """Write a compact-log-only event."""
        return self.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=sheet,
                action=action,
                target_id=target_id,
                details=details or {},
            )
        )

    def _write_log(self, event: AuditEvent, details: dict[str, Any]) -> Optional[AuditEntry]:
        try:
            with self.locks.hold(AUDIT_LOG):
                entry = AuditEntry(
                    audit_id=self.id_generator.next_id(AUDIT_ID_PREFIX, AUDIT_LOG),
                    actor_id=event.actor_id,
                    sheet=event.sheet,
                    action=event.action,
                    target_id=event.target_id,
                    details=details,
                    created_at=self.clock.now_iso(),
                )
                return self.log_repository.create(entry)
        except Exception as e:
            logger.error(
                "Failed to write audit log entry",
                action=event.action,
                target_id=event.target_id,
                error=str(e),
                exc_info=True,
            )
            return None

    def _write_report(self, event: AuditEvent, details: dict[str, Any]) -> Optional[AuditReportEntry]:
        try:
            with self.locks.hold(AUDIT_REPORT):
                entry = AuditReportEntry(
                    audit_id=self.id_generator.next_id(AUDIT_REPORT_ID_PREFIX, AUDIT_REPORT),
                    entity=event.entity,
                    entity_id=event.target_id,
                    action=event.report_action or event.action,
                    actor_id=event.actor_id,
                    summary=event.summary,
                    details=details,
                    scope=event.scope or "GLOBAL",
                    created_at=self.clock.now_iso(),
                )
                return self.report_repository.create(entry)
        except Exception as e:
            logger.error(
                "Failed to write audit report entry",
                action=event.report_action,
                entity_id=event.target_id,
                mandatory=self.report_mandatory,
                error=str(e),
                exc_info=True,
            )
            if self.report_mandatory:
                raise AuditWriteError(event.report_action or event.action, e) from e
            return None

    def _mask(self, details: Optional[dict[str, Any]]) -> dict[str, Any]:
        if not details:
            return {}
        return {
            key: ("***" if key.lower() in self.SENSITIVE_KEYS and value not in (None, "") else value)
            for key, value in details.items()
        }

    def get_logs(self, filters: Optional[AuditLogFilters] = None) -> list[AuditEntry]:
        """Query the compact log, newest first.

        Args:
            filters: Optional filters; dates compare against Created_At.

        Returns:
            Matching entries, newest first, truncated to ``filters.limit``.
        """
        filters = filters or AuditLogFilters()
        matches = []
        for entry in reversed(self.log_repository.list_all()):
            if filters.user_id and entry.actor_id != filters.user_id:
                continue
            if filters.action and entry.action != filters.action:
                continue
            if filters.target_id and entry.target_id != filters.target_id:
                continue
            if filters.date_from or filters.date_to:
                occurred = self.clock.parse(entry.created_at)
                if occurred is None:
                    continue
                if filters.date_from and occurred < self._aware(filters.date_from):
                    continue
                if filters.date_to and occurred > self._aware(filters.date_to):
                    continue
            matches.append(entry)
            if filters.limit and len(matches) >= filters.limit:
                break
        return matches

    def get_user_audit_trail(self, user_id: str, limit: int = 50) -> list[AuditEntry]:
        """Get entries where the user is the actor or the target, newest first."""
        trail = [
            entry
            for entry in reversed(self.log_repository.list_all())
            if entry.actor_id == user_id or entry.target_id == user_id
        ]
        return trail[:limit] if limit else trail

    def get_report(
        self,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditReportEntry]:
        """Query the audit report, newest first."""
        matches = [
            entry
            for entry in reversed(self.report_repository.list_all())
            if (not entity or entry.entity == entity)
            and (not entity_id or entry.entity_id == entity_id)
            and (not action or entry.action == action)
        ]
        return matches[:limit] if limit else matches

    def verify_chain(self) -> dict[str, Optional[str]]:
        """Verify both checksum chains.

        Returns:
            Mapping of target sheet to the id of its first broken row, or
            None for an intact chain.
        """
        result = {
            AUDIT_LOG: self.log_repository.find_chain_break(),
            AUDIT_REPORT: self.report_repository.find_chain_break(),
        }
        if any(result.values()):
            logger.warning("Audit chain verification failed", breaks=result)
        return result

    def _aware(self, value: datetime) -> datetime:
        return value if value.tzinfo else value.replace(tzinfo=self.clock.tz)
