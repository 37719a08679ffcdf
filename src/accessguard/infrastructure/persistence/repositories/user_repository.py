"""User repository for identity store operations."""

from typing import Any

from accessguard.domain.entities.user import User
from accessguard.infrastructure.persistence.repositories.base import SheetRepository
from accessguard.infrastructure.persistence.schema import (
    USERS,
    blank_to_none,
    to_boolean,
)

# Mapping of sheet header -> entity attribute
USER_COLUMNS: dict[str, str] = {
    "User_Id": "user_id",
    "Full_Name": "full_name",
    "Username": "username",
    "Email": "email",
    "Job_Title": "job_title",
    "Department": "department",
    "Role_Id": "role_id",
    "IsActive": "is_active",
    "Disabled_At": "disabled_at",
    "Disabled_By": "disabled_by",
    "Password_Hash": "password_hash",
    "Last_Login": "last_login",
    "Created_At": "created_at",
    "Created_By": "created_by",
    "Updated_At": "updated_at",
    "Updated_By": "updated_by",
    "External_Id": "external_id",
    "MFA_Enabled": "mfa_enabled",
    "Notes": "notes",
}

_BOOLEAN_COLUMNS = {"IsActive", "MFA_Enabled"}
_OPTIONAL_COLUMNS = {
    "Disabled_At",
    "Disabled_By",
    "Last_Login",
    "Created_At",
    "Created_By",
    "Updated_At",
    "Updated_By",
}


class UserRepository(SheetRepository):
    """Repository for SYS_Users rows."""

    sheet = USERS
    key_field = "User_Id"

    @staticmethod
    def to_entity(row: dict[str, str]) -> User:
        """Convert a sheet row to a User."""
        values: dict[str, Any] = {}
        for header, attr in USER_COLUMNS.items():
            raw = row.get(header, "")
            if header in _BOOLEAN_COLUMNS:
                values[attr] = to_boolean(raw)
            elif header in _OPTIONAL_COLUMNS:
                values[attr] = blank_to_none(raw)
            else:
                values[attr] = raw or ""
        return User(**values)

    @staticmethod
    def to_row(user: User) -> dict[str, Any]:
        """Convert a User to a sheet row."""
        return {header: getattr(user, attr) for header, attr in USER_COLUMNS.items()}

    def list_all(self) -> list[User]:
        """Get every user, in insertion order."""
        return [self.to_entity(row) for row in self._rows() if row.get("User_Id")]

    def get_by_id(self, user_id: str) -> User | None:
        """Get a user by ID.

        Args:
            user_id: User ID.

        Returns:
            User if found, None otherwise.
        """
        if not user_id:
            return None
        row = self._find_row(str(user_id))
        return self.to_entity(row) if row else None

    def get_by_username(self, username: str) -> User | None:
        """Get a user by lowercased username."""
        needle = (username or "").strip().lower()
        if not needle:
            return None
        for user in self.list_all():
            if user.username.strip().lower() == needle:
                return user
        return None

    def get_by_email(self, email: str) -> User | None:
        """Get a user by lowercased email."""
        needle = (email or "").strip().lower()
        if not needle:
            return None
        for user in self.list_all():
            if user.email.strip().lower() == needle:
                return user
        return None

    def create(self, user: User) -> User:
        """Append a new user row."""
        self._append(self.to_row(user))
        return user

    def update(self, user_id: str, patch: dict[str, Any]) -> bool:
        """Patch a user row by header name.

        Args:
            user_id: User ID.
            patch: Mapping of sheet header to new value.

        Returns:
            True if the row was found and updated.
        """
        return self._update(user_id, patch)

    def count_active_with_role(self, role_id: str) -> int:
        """Count active users holding a role."""
        return sum(1 for u in self.list_all() if u.is_active and u.role_id == role_id)
