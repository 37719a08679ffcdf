"""User property entity.

Properties are free-form key/value flags attached to a user, such as the
must-change-password flag set after an admin-initiated reset.
"""

from dataclasses import dataclass


class PropertyKey:
    """Well-known property keys."""

    MUST_CHANGE = "Must_Change"
    IS_ARCHIVED = "IsArchived"
    ARCHIVE_NOTE = "Archive_Note"
    LAST_IMPERSONATED_BY = "Last_Impersonated_By"
    LAST_STATUS_REASON = "Last_Status_Reason"


@dataclass
class UserProperty:
    """A single (user, key) -> value property."""

    user_id: str
    key: str
    value: str = ""
    created_at: str | None = None
    created_by: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None

    def __post_init__(self) -> None:
        """Validate property data after initialization."""
        if not self.user_id:
            raise ValueError("User ID is required")
        if not self.key:
            raise ValueError("Property key is required")
