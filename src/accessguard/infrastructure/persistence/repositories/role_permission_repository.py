"""Repository for the role x permission grant matrix."""

from typing import Any

from accessguard.domain.entities.permission import PermissionGrant, PermissionKey, Scope
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import (
    ROLE_PERMISSIONS,
    blank_to_none,
    to_boolean,
)


class RolePermissionRepository(SheetRepository):
    """Repository for SYS_Role_Permissions rows.

    Rows are keyed by a synthetic ``Grant_Id`` of the form
    ``<role>::<permission>`` so that the (role, permission) pair can be
    updated in place. When the sheet holds duplicate rows for one pair the
    last row is authoritative.
    """

    sheet = ROLE_PERMISSIONS
    key_field = "Grant_Id"

    @staticmethod
    def grant_id(role_id: str, permission_key: PermissionKey) -> str:
        """Build the row key for a (role, permission) pair."""
        return f"{role_id}::{permission_key.value}"

    @staticmethod
    def to_entity(row: dict[str, str]) -> PermissionGrant | None:
        """Convert a sheet row to a grant, or None for unknown permission keys."""
        key = PermissionKey.parse(row.get("Permission_Key", ""))
        role_id = (row.get("Role_Id") or "").strip()
        if key is None or not role_id:
            return None
        return PermissionGrant(
            role_id=role_id,
            permission_key=key,
            scope=Scope.parse(row.get("Scope")),
            allowed=to_boolean(row.get("Allowed")),
            constraints=row.get("Constraints", ""),
            created_at=blank_to_none(row.get("Created_At")),
            created_by=blank_to_none(row.get("Created_By")),
            updated_at=blank_to_none(row.get("Updated_At")),
            updated_by=blank_to_none(row.get("Updated_By")),
        )

    def to_row(self, grant: PermissionGrant) -> dict[str, Any]:
        """Convert a grant to a sheet row."""
        return {
            "Grant_Id": self.grant_id(grant.role_id, grant.permission_key),
            "Role_Id": grant.role_id,
            "Permission_Key": grant.permission_key.value,
            "Scope": grant.scope.value if grant.scope else "",
            "Allowed": grant.allowed,
            "Constraints": grant.constraints,
            "Created_At": grant.created_at,
            "Created_By": grant.created_by,
            "Updated_At": grant.updated_at,
            "Updated_By": grant.updated_by,
        }

    def is_empty(self) -> bool:
        """Check whether the matrix holds no rows at all."""
        return not self._rows()

    def list_all(self) -> list[PermissionGrant]:
        """Get the authoritative grant for every (role, permission) pair."""
        latest: dict[tuple[str, PermissionKey], PermissionGrant] = {}
        for row in self._rows():
            grant = self.to_entity(row)
            if grant is not None:
                latest[(grant.role_id, grant.permission_key)] = grant
        return list(latest.values())

    def list_for_role(self, role_id: str) -> list[PermissionGrant]:
        """Get every grant held by a role."""
        return [g for g in self.list_all() if g.role_id == role_id]

    def get(self, role_id: str, permission_key: PermissionKey) -> PermissionGrant | None:
        """Get the authoritative grant for (role, permission).

        Args:
            role_id: Role ID.
            permission_key: Permission being looked up.

        Returns:
            The last matching grant, or None when the role has no row.
        """
        found = None
        for row in self._rows():
            if (row.get("Role_Id") or "").strip() != role_id:
                continue
            grant = self.to_entity(row)
            if grant is not None and grant.permission_key is permission_key:
                found = grant
        return found

    def create(self, grant: PermissionGrant) -> PermissionGrant:
        """Append a new grant row."""
        self._append(self.to_row(grant))
        return grant

    def update(self, grant: PermissionGrant) -> bool:
        """Overwrite the row for the grant's (role, permission) pair."""
        row = self.to_row(grant)
        return self._update(row["Grant_Id"], row)
