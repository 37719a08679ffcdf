"""User input validation service.

Normalizes and validates identity fields:
- Full name presence
- Username presence (trimmed, lowercased)
- Email presence and shape (trimmed, lowercased)
- Role presence
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping

from accessguard.domain.exceptions import ValidationError

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


@dataclass(frozen=True)
class UserFieldError:
    """Represents a user field validation error.

    Attributes:
        field: The offending input field.
        message: Human-readable error message.
        code: Machine-readable error code.
    """

    field: str
    message: str
    code: str

    def to_exception(self) -> ValidationError:
        """Convert to the domain ValidationError."""
        return ValidationError(self.field, self.message)


def normalize_username(username: Any) -> str:
    """Trim and lowercase a username; non-strings normalize to ''."""
    if not isinstance(username, str):
        return ""
    return username.strip().lower()


def normalize_email(email: Any) -> str:
    """Trim and lowercase an email; non-strings normalize to ''."""
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    """Check that an email has the ``local@domain.tld`` shape."""
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))


class UserValidator:
    """Validates user create and update payloads."""

    def validate_new_user(self, data: Mapping[str, Any]) -> list[UserFieldError]:
        """Validate the fields required to create a user.

        Args:
            data: Create payload keyed by attribute name.

        Returns:
            List of validation errors. Empty list if the payload is valid.
        """
        errors: list[UserFieldError] = []

        if not str(data.get("full_name") or "").strip():
            errors.append(UserFieldError("full_name", "Full name is required", "full_name_required"))

        if not normalize_username(data.get("username")):
            errors.append(UserFieldError("username", "Username is required", "username_required"))

        errors.extend(self._validate_email(data.get("email"), required=True))

        if not str(data.get("role_id") or "").strip():
            errors.append(UserFieldError("role_id", "Role is required", "role_required"))

        return errors

    def validate_updates(self, updates: Mapping[str, Any]) -> list[UserFieldError]:
        """Validate the fields present in an update payload."""
        errors: list[UserFieldError] = []

        if "full_name" in updates and not str(updates.get("full_name") or "").strip():
            errors.append(UserFieldError("full_name", "Full name cannot be empty", "full_name_required"))

        if "username" in updates and not normalize_username(updates.get("username")):
            errors.append(UserFieldError("username", "Username cannot be empty", "username_required"))

        if "email" in updates:
            errors.extend(self._validate_email(updates.get("email"), required=True))

        if "role_id" in updates and not str(updates.get("role_id") or "").strip():
            errors.append(UserFieldError("role_id", "Role cannot be empty", "role_required"))

        return errors

    def _validate_email(self, value: Any, required: bool) -> list[UserFieldError]:
        email = normalize_email(value)
        if not email:
            if required:
                return [UserFieldError("email", "Email is required", "email_required")]
            return []
        if not is_valid_email(email):
            return [UserFieldError("email", "Invalid email format", "email_invalid")]
        return []

    @staticmethod
    def raise_first(errors: list[UserFieldError]) -> None:
        """Raise the first error, if any, as a ValidationError."""
        if errors:
            raise errors[0].to_exception()
