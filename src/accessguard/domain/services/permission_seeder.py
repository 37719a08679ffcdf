"""Default roles, permission catalog and grant matrix.

Seeding is idempotent: roles and catalog entries are only added when
missing, and the grant matrix is only written into an empty sheet.
"""

from accessguard.core.clock import Clock
from accessguard.core.logging import get_logger
from accessguard.domain.entities.permission import (
    PermissionDefinition,
    PermissionGrant,
    PermissionKey,
    Scope,
)
from accessguard.domain.entities.role import Role
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import (
    PermissionCatalogRepository,
    RolePermissionRepository,
    RoleRepository,
)
from accessguard.infrastructure.persistence.schema import (
    PERMISSIONS,
    ROLE_PERMISSIONS,
    ROLES,
    SYSTEM_ACTOR,
)

logger = get_logger(__name__)

HR_MANAGER_ROLE = "HR_Manager"
MANAGER_ROLE = "Manager"
BASIC_USER_ROLE = "Basic_User"

PERMISSION_DEFINITIONS: tuple[PermissionDefinition, ...] = (
    PermissionDefinition(PermissionKey.VIEW_USERS, "View users", "List and view user records"),
    PermissionDefinition(PermissionKey.CREATE_USER, "Create user", "Create new user accounts"),
    PermissionDefinition(PermissionKey.EDIT_USER, "Edit user", "Modify user details"),
    PermissionDefinition(
        PermissionKey.ASSIGN_ROLE, "Assign role", "Change a user's role", "Roles"
    ),
    PermissionDefinition(
        PermissionKey.DEACTIVATE_USER, "Deactivate user", "Activate or deactivate users"
    ),
    PermissionDefinition(PermissionKey.DELETE_USER, "Delete user", "Archive user accounts"),
    PermissionDefinition(
        PermissionKey.RESET_PASSWORD, "Reset password", "Issue password resets", "Security"
    ),
    PermissionDefinition(
        PermissionKey.VIEW_AUDIT, "View audit", "Read the audit log and report", "Security"
    ),
    PermissionDefinition(
        PermissionKey.IMPERSONATE, "Impersonate", "Open a session as another user", "Security"
    ),
    PermissionDefinition(
        PermissionKey.EXPORT_USERS, "Export users", "Export the user directory"
    ),
)

# (key, scope) pairs granted and allowed per role
_HR_MANAGER_GRANTS: tuple[tuple[PermissionKey, Scope], ...] = (
    (PermissionKey.VIEW_USERS, Scope.GLOBAL),
    (PermissionKey.CREATE_USER, Scope.GLOBAL),
    (PermissionKey.EDIT_USER, Scope.GLOBAL),
    (PermissionKey.DEACTIVATE_USER, Scope.GLOBAL),
    (PermissionKey.RESET_PASSWORD, Scope.GLOBAL),
    (PermissionKey.ASSIGN_ROLE, Scope.LIMITED),
    (PermissionKey.VIEW_AUDIT, Scope.LIMITED),
)

_MANAGER_GRANTS: tuple[tuple[PermissionKey, Scope], ...] = (
    (PermissionKey.VIEW_USERS, Scope.DEPARTMENT),
    (PermissionKey.EDIT_USER, Scope.DEPARTMENT),
    (PermissionKey.DEACTIVATE_USER, Scope.DEPARTMENT),
)


def default_roles(superuser_role_id: str) -> list[Role]:
    """Return the built-in roles."""
    return [
        Role(superuser_role_id, "Administrator", "Full system access", is_system=True),
        Role(HR_MANAGER_ROLE, "HR Manager", "Manages user accounts", is_system=True),
        Role(MANAGER_ROLE, "Manager", "Manages users within a department", is_system=True),
        Role(BASIC_USER_ROLE, "Basic User", "Standard access", is_system=True),
    ]


def default_grants(superuser_role_id: str) -> list[PermissionGrant]:
    """Return the default permission matrix.

    The superuser row is informational: the evaluator bypasses the matrix
    for that role entirely.
    """
    grants = [PermissionGrant(superuser_role_id, key, Scope.GLOBAL) for key in PermissionKey]
    grants += [PermissionGrant(HR_MANAGER_ROLE, key, scope) for key, scope in _HR_MANAGER_GRANTS]
    grants += [PermissionGrant(MANAGER_ROLE, key, scope) for key, scope in _MANAGER_GRANTS]
    grants.append(
        PermissionGrant(BASIC_USER_ROLE, PermissionKey.VIEW_USERS, Scope.SELF, allowed=False)
    )
    return grants


class PermissionSeeder:
    """Writes the built-in roles, catalog and grant matrix."""

    def __init__(
        self,
        roles: RoleRepository,
        grants: RolePermissionRepository,
        catalog: PermissionCatalogRepository,
        locks: LockManager,
        clock: Clock,
        superuser_role_id: str = "Admin",
    ) -> None:
        self.roles = roles
        self.grants = grants
        self.catalog = catalog
        self.locks = locks
        self.clock = clock
        self.superuser_role_id = superuser_role_id

    def seed_roles(self) -> int:
        """Add any missing built-in roles.

        Returns:
            Number of roles added.
        """
        added = 0
        with self.locks.hold(ROLES):
            now = self.clock.now_iso()
            for role in default_roles(self.superuser_role_id):
                if self.roles.exists(role.role_id):
                    continue
                role.created_at = role.updated_at = now
                role.created_by = role.updated_by = SYSTEM_ACTOR
                self.roles.create(role)
                added += 1
        if added:
            logger.info("Default roles seeded", added=added)
        return added

    def seed_catalog(self) -> int:
        """Add any missing permission catalog entries.

        Returns:
            Number of catalog entries added.
        """
        added = 0
        with self.locks.hold(PERMISSIONS):
            now = self.clock.now_iso()
            for definition in PERMISSION_DEFINITIONS:
                if not self.catalog.has(definition.key):
                    self.catalog.create(definition, SYSTEM_ACTOR, now)
                    added += 1
        if added:
            logger.info("Permission catalog seeded", added=added)
        return added

    def seed_grants(self) -> int:
        """Write the default matrix if, and only if, the grant sheet is empty.

        Returns:
            Number of grants written (0 when the sheet was already populated).
        """
        if not self.grants.is_empty():
            return 0

        with self.locks.hold(ROLE_PERMISSIONS):
            # Re-check under the lock; another writer may have seeded meanwhile
            if not self.grants.is_empty():
                return 0
            now = self.clock.now_iso()
            grants = default_grants(self.superuser_role_id)
            for grant in grants:
                grant.created_at = grant.updated_at = now
                grant.created_by = grant.updated_by = SYSTEM_ACTOR
                self.grants.create(grant)

        logger.info("Default permission matrix seeded", grants=len(grants))
        return len(grants)

    def seed_all(self) -> dict[str, int]:
        """Seed roles, catalog and grants."""
        return {
            "roles": self.seed_roles(),
            "permissions": self.seed_catalog(),
            "grants": self.seed_grants(),
        }
