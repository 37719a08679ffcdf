"""Role catalog and permission matrix management.

Catalog mutations are gated on ASSIGN_ROLE evaluated as if the superuser
role were being assigned, so LIMITED grants cannot reshape the matrix.
"""

import re
from typing import Any, Optional

from accessguard.core.clock import Clock
from accessguard.core.logging import get_logger
from accessguard.domain.entities.audit_entry import AuditEvent
from accessguard.domain.entities.permission import (
    PermissionContext,
    PermissionDefinition,
    PermissionGrant,
    PermissionKey,
    Scope,
)
from accessguard.domain.entities.role import Role
from accessguard.domain.exceptions import ConflictError, NotFoundError, ValidationError
from accessguard.domain.services.audit_log_service import AuditLogService
from accessguard.domain.services.permission_evaluator import PermissionEvaluator
from accessguard.domain.services.permission_seeder import PermissionSeeder
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import (
    PermissionCatalogRepository,
    RolePermissionRepository,
    RoleRepository,
)
from accessguard.infrastructure.persistence.schema import ROLE_PERMISSIONS, ROLES

logger = get_logger(__name__)

ROLE_ID_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]{1,49}$")


class RoleService:
    """Service for roles, the permission catalog and the grant matrix."""

    def __init__(
        self,
        roles: RoleRepository,
        grants: RolePermissionRepository,
        catalog: PermissionCatalogRepository,
        evaluator: PermissionEvaluator,
        seeder: PermissionSeeder,
        audit: AuditLogService,
        locks: LockManager,
        clock: Clock,
        superuser_role_id: str = "Admin",
    ) -> None:
        self.roles = roles
        self.grants = grants
        self.catalog = catalog
        self.evaluator = evaluator
        self.seeder = seeder
        self.audit = audit
        self.locks = locks
        self.clock = clock
        self.superuser_role_id = superuser_role_id

    def list_roles(self) -> list[Role]:
        """Get every role."""
        return self.roles.list_all()

    def get_role(self, role_id: str) -> Role:
        """Get a role by id.

        Raises:
            NotFoundError: If the role does not exist.
        """
        role = self.roles.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role", str(role_id))
        return role

    def list_permission_catalog(self) -> list[PermissionDefinition]:
        """Get the permission catalog."""
        return self.catalog.list_all()

    def create_role(
        self,
        role_id: str,
        actor_id: str,
        title: str = "",
        description: str = "",
        is_system: bool = False,
    ) -> Role:
        """Create a custom role with no grants.

        Raises:
            PermissionDeniedError: If the actor may not manage the catalog.
            ValidationError: If the role id is malformed.
            ConflictError: If the role already exists.
        """
        self._require_catalog_admin(actor_id)
        role_id = (role_id or "").strip()
        if not ROLE_ID_PATTERN.match(role_id):
            raise ValidationError(
                "role_id",
                "Role id must start with a letter and contain only letters, digits or underscores",
            )

        with self.locks.hold(ROLES):
            if self.roles.exists(role_id):
                raise ConflictError(f"Role already exists: {role_id}", field="role_id")
            now = self.clock.now_iso()
            role = Role(
                role_id=role_id,
                title=(title or "").strip(),
                description=description or "",
                is_system=bool(is_system),
                created_at=now,
                created_by=actor_id,
                updated_at=now,
                updated_by=actor_id,
            )
            self.roles.create(role)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=ROLES,
                action="CREATE_ROLE",
                target_id=role_id,
                details={"title": role.title},
                entity="Role",
                report_action="CREATE",
                summary="Role created",
            )
        )
        logger.info("Role created", role_id=role_id, actor_id=actor_id)
        return role

    def set_permission(
        self,
        role_id: str,
        permission_key: PermissionKey | str,
        actor_id: str,
        scope: Scope | str = Scope.GLOBAL,
        allowed: bool = True,
        constraints: str = "",
    ) -> PermissionGrant:
        """Create or replace the grant for (role, permission).

        Raises:
            PermissionDeniedError: If the actor may not manage the catalog.
            NotFoundError: If the role does not exist.
            ValidationError: If the permission key or scope is unknown.
        """
        decision = self._require_catalog_admin(actor_id)
        key = PermissionKey.parse(permission_key)
        if key is None:
            raise ValidationError("permission_key", f"Unknown permission: {permission_key}")
        parsed_scope = Scope.parse(scope)
        if parsed_scope is None:
            raise ValidationError("scope", f"Unknown scope: {scope}")
        self.get_role(role_id)

        # Make sure defaults exist first; otherwise the first explicit grant
        # would suppress seeding of the whole matrix
        self.seeder.seed_grants()

        with self.locks.hold(ROLE_PERMISSIONS):
            now = self.clock.now_iso()
            existing = self.grants.get(role_id, key)
            grant = PermissionGrant(
                role_id=role_id,
                permission_key=key,
                scope=parsed_scope,
                allowed=bool(allowed),
                constraints=constraints or "",
                created_at=existing.created_at if existing else now,
                created_by=existing.created_by if existing else actor_id,
                updated_at=now,
                updated_by=actor_id,
            )
            if existing is None or not self.grants.update(grant):
                self.grants.create(grant)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=ROLE_PERMISSIONS,
                action="UPDATE_PERMISSION" if existing else "CREATE_PERMISSION",
                target_id=RolePermissionRepository.grant_id(role_id, key),
                details=grant.to_dict(),
                entity="Role",
                report_action="MAP_ROLE_PERMISSION",
                summary=f"{key.value} {'granted' if grant.allowed else 'denied'} to {role_id}",
                scope=decision.scope or "GLOBAL",
            )
        )
        logger.info(
            "Permission mapped",
            role_id=role_id,
            permission=key.value,
            scope=parsed_scope.value,
            allowed=grant.allowed,
        )
        return grant

    def clone_role_permissions(self, source_role_id: str, target_role_id: str, actor_id: str) -> int:
        """Copy every grant of one role onto another.

        Existing grants of the target for the same keys are overwritten;
        other target grants are left alone.

        Returns:
            Number of grants copied.

        Raises:
            ValidationError: If source and target are the same role.
            NotFoundError: If either role does not exist.
        """
        self._require_catalog_admin(actor_id)
        if source_role_id == target_role_id:
            raise ValidationError("target_role_id", "Source and target roles must differ")
        self.get_role(source_role_id)
        self.get_role(target_role_id)
        self.seeder.seed_grants()

        copied = 0
        with self.locks.hold(ROLE_PERMISSIONS):
            now = self.clock.now_iso()
            for source in self.grants.list_for_role(source_role_id):
                existing = self.grants.get(target_role_id, source.permission_key)
                grant = PermissionGrant(
                    role_id=target_role_id,
                    permission_key=source.permission_key,
                    scope=source.scope,
                    allowed=source.allowed,
                    constraints=source.constraints,
                    created_at=existing.created_at if existing else now,
                    created_by=existing.created_by if existing else actor_id,
                    updated_at=now,
                    updated_by=actor_id,
                )
                if existing is None or not self.grants.update(grant):
                    self.grants.create(grant)
                copied += 1

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=ROLE_PERMISSIONS,
                action="CLONE_ROLE_PERMISSIONS",
                target_id=target_role_id,
                details={"source_role_id": source_role_id, "copied": copied},
                entity="Role",
                report_action="MAP_ROLE_PERMISSION",
                summary=f"Permissions cloned from {source_role_id}",
            )
        )
        logger.info(
            "Role permissions cloned",
            source_role_id=source_role_id,
            target_role_id=target_role_id,
            copied=copied,
        )
        return copied

    def get_permission_matrix(self, actor_id: str) -> dict[str, Any]:
        """Build the role x permission matrix.

        Returns:
            Dictionary with ``roles``, ``permissions`` and ``matrix``
            (role id -> permission key -> grant dict or None).

        Raises:
            PermissionDeniedError: If the actor lacks VIEW_AUDIT.
        """
        self.evaluator.require(actor_id, PermissionKey.VIEW_AUDIT)
        self.seeder.seed_grants()

        roles = self.roles.list_all()
        grants = {(g.role_id, g.permission_key): g for g in self.grants.list_all()}
        matrix: dict[str, dict[str, Optional[dict[str, Any]]]] = {}
        for role in roles:
            row: dict[str, Optional[dict[str, Any]]] = {}
            for key in PermissionKey:
                grant = grants.get((role.role_id, key))
                row[key.value] = grant.to_dict() if grant else None
            matrix[role.role_id] = row

        return {
            "roles": [role.role_id for role in roles],
            "permissions": [key.value for key in PermissionKey],
            "matrix": matrix,
        }

    def get_role_permissions(self, role_id: str) -> dict[str, dict[str, Any]]:
        """Get the effective grants held by a role, keyed by permission."""
        self.get_role(role_id)
        if role_id == self.superuser_role_id:
            return {
                key.value: {"scope": Scope.GLOBAL.value, "allowed": True} for key in PermissionKey
            }
        self.seeder.seed_grants()
        return {
            grant.permission_key.value: {
                "scope": grant.scope.value if grant.scope else None,
                "allowed": grant.allowed,
            }
            for grant in self.grants.list_for_role(role_id)
        }

    def _require_catalog_admin(self, actor_id: str):
        return self.evaluator.require(
            actor_id,
            PermissionKey.ASSIGN_ROLE,
            PermissionContext(new_role_id=self.superuser_role_id),
        )
