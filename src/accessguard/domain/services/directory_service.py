"""Read-side queries over users, sessions and the audit trail.

Listing applies the caller's VIEW_USERS scope row by row: a DEPARTMENT grant
only sees its own department, a SELF grant only sees the caller. Password
hashes never leave this layer.
"""

from dataclasses import asdict, dataclass
from typing import Any, Optional

from accessguard.core.logging import get_logger
from accessguard.domain.entities.audit_entry import AuditEntry, AuditReportEntry
from accessguard.domain.entities.permission import PermissionContext, PermissionKey, Scope
from accessguard.domain.entities.session import Session
from accessguard.domain.entities.user import User
from accessguard.domain.exceptions import NotFoundError
from accessguard.domain.services.audit_log_service import AuditLogFilters, AuditLogService
from accessguard.domain.services.permission_evaluator import PermissionEvaluator
from accessguard.domain.services.role_service import RoleService
from accessguard.domain.services.session_service import SessionService
from accessguard.domain.services.user_property_service import UserPropertyService
from accessguard.infrastructure.persistence.repositories import (
    PermissionCatalogRepository,
    RoleRepository,
    UserRepository,
)
from accessguard.infrastructure.persistence.schema import SHEET_HEADERS, USERS, to_cell

logger = get_logger(__name__)

EXPORT_HEADERS: tuple[str, ...] = tuple(h for h in SHEET_HEADERS[USERS] if h != "Password_Hash")

# Scopes that see every row without a per-row check
_UNRESTRICTED_SCOPES = {Scope.GLOBAL.value, Scope.LIMITED.value}


def _target_context(user: User) -> PermissionContext:
    return PermissionContext(target_user_id=user.user_id, target_department=user.department or None)


@dataclass
class UserFilters:
    """Filters for user listings."""

    is_active: Optional[bool] = None
    role_id: Optional[str] = None
    department: Optional[str] = None
    search: Optional[str] = None

    def matches(self, user: User) -> bool:
        if self.is_active is not None and user.is_active != self.is_active:
            return False
        if self.role_id and user.role_id != self.role_id:
            return False
        if self.department and user.department.strip().lower() != self.department.strip().lower():
            return False
        if self.search:
            needle = self.search.strip().lower()
            haystack = " ".join((user.full_name, user.username, user.email)).lower()
            if needle not in haystack:
                return False
        return True


class DirectoryService:
    """Queries over the identity store and the audit trail."""

    def __init__(
        self,
        users: UserRepository,
        roles: RoleRepository,
        catalog: PermissionCatalogRepository,
        evaluator: PermissionEvaluator,
        role_service: RoleService,
        sessions: SessionService,
        properties: UserPropertyService,
        audit: AuditLogService,
    ) -> None:
        self.users = users
        self.roles = roles
        self.catalog = catalog
        self.evaluator = evaluator
        self.role_service = role_service
        self.sessions = sessions
        self.properties = properties
        self.audit = audit

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(self, actor_id: str, filters: Optional[UserFilters] = None) -> list[User]:
        """List the users the actor may view.

        Raises:
            PermissionDeniedError: If the actor holds no usable VIEW_USERS grant.
        """
        decision = self.evaluator.require(
            actor_id,
            PermissionKey.VIEW_USERS,
            PermissionContext(target_user_id=actor_id),
        )
        filters = filters or UserFilters()

        visible = []
        for user in self.users.list_all():
            if not filters.matches(user):
                continue
            if decision.scope not in _UNRESTRICTED_SCOPES and not self.evaluator.evaluate(
                actor_id,
                PermissionKey.VIEW_USERS,
                PermissionContext(target_user_id=user.user_id),
            ):
                continue
            visible.append(user)
        return visible

    def get_user(self, user_id: str, actor_id: str) -> User:
        """Get one user the actor may view.

        Raises:
            NotFoundError: If the user does not exist.
            PermissionDeniedError: If the user is outside the actor's scope.
        """
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        self.evaluator.require(actor_id, PermissionKey.VIEW_USERS, _target_context(user))
        return user

    def get_user_profile(self, user_id: str, actor_id: str) -> dict[str, Any]:
        """Get a user with sessions, properties and effective permissions.

        The audit trail is included only when the actor also holds
        VIEW_AUDIT for that user.
        """
        user = self.get_user(user_id, actor_id)
        trail: list[dict[str, Any]] = []
        if self.evaluator.evaluate(actor_id, PermissionKey.VIEW_AUDIT, _target_context(user)):
            trail = [asdict(entry) for entry in self.audit.get_user_audit_trail(user_id)]

        return {
            "user": user.to_public_dict(),
            "sessions": [
                s.to_public_dict() for s in self.sessions.list_sessions(user_id, include_revoked=True)
            ],
            "properties": {
                prop.key: prop.value for prop in self.properties.list_for_user(user_id) if prop.value
            },
            "permissions": self._safe_role_permissions(user.role_id),
            "audit_trail": trail,
        }

    def list_user_sessions(
        self, user_id: str, actor_id: str, include_revoked: bool = False
    ) -> list[Session]:
        """List a user's sessions, newest first."""
        self.get_user(user_id, actor_id)
        return self.sessions.list_sessions(user_id, include_revoked=include_revoked)

    def export_users_directory(self, actor_id: str) -> dict[str, Any]:
        """Export every user as header + rows, without password hashes.

        Raises:
            PermissionDeniedError: If the actor lacks EXPORT_USERS.
        """
        self.evaluator.require(actor_id, PermissionKey.EXPORT_USERS)
        rows = []
        for user in self.users.list_all():
            record = self.users.to_row(user)
            rows.append([to_cell(record[header]) for header in EXPORT_HEADERS])

        self.audit.log(actor_id, USERS, "EXPORT_USERS", "", {"count": len(rows)})
        logger.info("User directory exported", actor_id=actor_id, count=len(rows))
        return {"headers": list(EXPORT_HEADERS), "rows": rows}

    def get_overview(self, actor_id: str) -> dict[str, int]:
        """Get headline counts for the identity store.

        Raises:
            PermissionDeniedError: If the actor lacks VIEW_USERS.
        """
        self.evaluator.require(
            actor_id,
            PermissionKey.VIEW_USERS,
            PermissionContext(target_user_id=actor_id),
        )
        users = self.users.list_all()
        active = sum(1 for u in users if u.is_active)
        return {
            "total_users": len(users),
            "active_users": active,
            "inactive_users": len(users) - active,
            "roles": len(self.roles.list_all()),
            "permissions": len(self.catalog.list_all()),
            "pending_password_resets": self.properties.count_pending_password_resets(),
        }

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def get_audit_logs(
        self, actor_id: str, filters: Optional[AuditLogFilters] = None
    ) -> list[AuditEntry]:
        """Query the compact audit log. Requires VIEW_AUDIT."""
        self.evaluator.require(actor_id, PermissionKey.VIEW_AUDIT)
        return self.audit.get_logs(filters)

    def get_user_audit_trail(self, user_id: str, actor_id: str, limit: int = 50) -> list[AuditEntry]:
        """Get the actions performed by or on a user. Requires VIEW_AUDIT."""
        self.evaluator.require(
            actor_id, PermissionKey.VIEW_AUDIT, PermissionContext(target_user_id=user_id)
        )
        return self.audit.get_user_audit_trail(user_id, limit=limit)

    def get_audit_report(
        self,
        actor_id: str,
        entity: Optional[str] = None,
        entity_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditReportEntry]:
        """Query the audit report. Requires VIEW_AUDIT."""
        self.evaluator.require(actor_id, PermissionKey.VIEW_AUDIT)
        return self.audit.get_report(entity=entity, entity_id=entity_id, action=action, limit=limit)

    def verify_audit(self, actor_id: str) -> dict[str, Optional[str]]:
        """Verify both audit checksum chains. Requires VIEW_AUDIT."""
        self.evaluator.require(actor_id, PermissionKey.VIEW_AUDIT)
        return self.audit.verify_chain()

    def _safe_role_permissions(self, role_id: str) -> dict[str, dict[str, Any]]:
        try:
            return self.role_service.get_role_permissions(role_id)
        except NotFoundError:
            return {}
