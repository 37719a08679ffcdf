"""Repository for the permission catalog sheet."""

from typing import Any

from accessguard.domain.entities.permission import PermissionDefinition, PermissionKey
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import PERMISSIONS


class PermissionCatalogRepository(SheetRepository):
    """Repository for SYS_Permissions rows (label and category per key)."""

    sheet = PERMISSIONS
    key_field = "Permission_Key"

    def list_all(self) -> list[PermissionDefinition]:
        """Get every catalogued permission with a known key."""
        definitions = []
        for row in self._rows():
            key = PermissionKey.parse(row.get("Permission_Key", ""))
            if key is None:
                continue
            definitions.append(
                PermissionDefinition(
                    key=key,
                    label=row.get("Permission_Label", "") or key.value,
                    description=row.get("Description", ""),
                    category=row.get("Category", "") or "Users",
                )
            )
        return definitions

    def has(self, key: PermissionKey) -> bool:
        """Check whether the key is already catalogued."""
        return self._find_row(key.value) is not None

    def create(self, definition: PermissionDefinition, actor_id: str, now: str) -> None:
        """Append a catalog row."""
        row: dict[str, Any] = {
            "Permission_Key": definition.key.value,
            "Permission_Label": definition.label,
            "Description": definition.description,
            "Category": definition.category,
            "Created_At": now,
            "Created_By": actor_id,
            "Updated_At": now,
            "Updated_By": actor_id,
        }
        self._append(row)
