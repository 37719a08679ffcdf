"""User entity for the identity store.

Users are identified by an immutable ``USR_#####`` id. Username and email are
stored lowercased and are unique across the store. Users are never physically
removed; deactivation is the terminal state.
"""

from dataclasses import asdict, dataclass
from typing import Any


@dataclass
class User:
    """User entity representing an account in the identity store.

    Attributes:
        user_id: Unique identifier (immutable).
        full_name: Display name.
        username: Login name, lowercased and unique.
        email: Email address, lowercased and unique.
        role_id: Foreign key to the user's role.
        is_active: Whether the user can log in and act.
        password_hash: ``salt:digest`` credential, or empty when the user
                       has no local credential.
    """

    user_id: str
    full_name: str
    username: str
    email: str
    role_id: str
    job_title: str = ""
    department: str = ""
    is_active: bool = True
    disabled_at: str | None = None
    disabled_by: str | None = None
    password_hash: str = ""
    last_login: str | None = None
    created_at: str | None = None
    created_by: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None
    external_id: str = ""
    mfa_enabled: bool = False
    notes: str = ""

    def __post_init__(self) -> None:
        """Validate user data after initialization."""
        if not self.user_id:
            raise ValueError("User ID is required")

    @property
    def has_local_credential(self) -> bool:
        """Check whether a password hash is stored for this user."""
        return bool(self.password_hash) and ":" in self.password_hash

    def to_public_dict(self) -> dict[str, Any]:
        """Return the user's fields without the password hash."""
        data = asdict(self)
        data.pop("password_hash", None)
        return data

    def snapshot(self) -> dict[str, Any]:
        """Return a sanitized summary used in login responses."""
        return {
            "user_id": self.user_id,
            "full_name": self.full_name,
            "email": self.email,
            "role_id": self.role_id,
            "department": self.department,
        }
