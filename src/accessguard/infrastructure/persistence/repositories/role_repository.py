"""Role repository for catalog operations."""

from typing import Any

from accessguard.domain.entities.role import Role
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import ROLES, blank_to_none, to_boolean


class RoleRepository(SheetRepository):
    """Repository for SYS_Roles rows."""

    sheet = ROLES
    key_field = "Role_Id"

    @staticmethod
    def to_entity(row: dict[str, str]) -> Role:
        """Convert a sheet row to a Role."""
        return Role(
            role_id=row.get("Role_Id", ""),
            title=row.get("Role_Title", ""),
            description=row.get("Description", ""),
            is_system=to_boolean(row.get("Is_System")),
            created_at=blank_to_none(row.get("Created_At")),
            created_by=blank_to_none(row.get("Created_By")),
            updated_at=blank_to_none(row.get("Updated_At")),
            updated_by=blank_to_none(row.get("Updated_By")),
        )

    @staticmethod
    def to_row(role: Role) -> dict[str, Any]:
        """Convert a Role to a sheet row."""
        return {
            "Role_Id": role.role_id,
            "Role_Title": role.title,
            "Description": role.description,
            "Is_System": role.is_system,
            "Created_At": role.created_at,
            "Created_By": role.created_by,
            "Updated_At": role.updated_at,
            "Updated_By": role.updated_by,
        }

    def list_all(self) -> list[Role]:
        """Get every role, in insertion order."""
        return [self.to_entity(row) for row in self._rows() if row.get("Role_Id")]

    def get_by_id(self, role_id: str) -> Role | None:
        """Get a role by ID.

        Args:
            role_id: Role ID (e.g., 'Admin', 'Manager').

        Returns:
            Role if found, None otherwise.
        """
        if not role_id:
            return None
        row = self._find_row(str(role_id))
        return self.to_entity(row) if row else None

    def exists(self, role_id: str) -> bool:
        """Check whether a role exists."""
        return self.get_by_id(role_id) is not None

    def create(self, role: Role) -> Role:
        """Append a new role row."""
        self._append(self.to_row(role))
        return role
