"""User property repository."""

from typing import Any

from accessguard.domain.entities.user_property import UserProperty
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import USER_PROPERTIES, blank_to_none


class UserPropertyRepository(SheetRepository):
    """Repository for SYS_User_Properties rows.

    Rows are keyed by a synthetic ``Property_Id`` of the form
    ``<user>::<key>`` so that each (user, key) pair has one row.
    """

    sheet = USER_PROPERTIES
    key_field = "Property_Id"

    @staticmethod
    def property_id(user_id: str, key: str) -> str:
        """Build the row key for a (user, key) pair."""
        return f"{user_id}::{key}"

    @staticmethod
    def to_entity(row: dict[str, str]) -> UserProperty:
        """Convert a sheet row to a UserProperty."""
        return UserProperty(
            user_id=row.get("User_Id", ""),
            key=row.get("Property_Key", ""),
            value=row.get("Property_Value", ""),
            created_at=blank_to_none(row.get("Created_At")),
            created_by=blank_to_none(row.get("Created_By")),
            updated_at=blank_to_none(row.get("Updated_At")),
            updated_by=blank_to_none(row.get("Updated_By")),
        )

    def list_for_user(self, user_id: str) -> list[UserProperty]:
        """Get every property of a user."""
        return [
            self.to_entity(row)
            for row in self._rows()
            if row.get("User_Id") == user_id and row.get("Property_Key")
        ]

    def list_by_key(self, key: str) -> list[UserProperty]:
        """Get a property across all users."""
        return [
            self.to_entity(row)
            for row in self._rows()
            if row.get("Property_Key") == key and row.get("User_Id")
        ]

    def get(self, user_id: str, key: str) -> UserProperty | None:
        """Get one property of a user."""
        row = self._find_row(self.property_id(user_id, key))
        return self.to_entity(row) if row else None

    def upsert(self, user_id: str, key: str, value: str, actor_id: str, now: str) -> UserProperty:
        """Create or overwrite a property, preserving its creation stamps."""
        prop_id = self.property_id(user_id, key)
        patch: dict[str, Any] = {
            "Property_Value": value,
            "Updated_At": now,
            "Updated_By": actor_id,
        }
        if not self._update(prop_id, patch):
            self._append(
                {
                    "Property_Id": prop_id,
                    "User_Id": user_id,
                    "Property_Key": key,
                    "Created_At": now,
                    "Created_By": actor_id,
                    **patch,
                }
            )
        return self.get(user_id, key)
