"""Role entity for authorization.

Roles are referenced by ``User.role_id`` and must exist before they can be
assigned. System roles are seeded at startup and flagged as protected.
"""

from dataclasses import dataclass


@dataclass
class Role:
    """Role entity for user authorization.

    Attributes:
        role_id: Unique identifier (e.g. 'Admin', 'Manager').
        title: Human-readable title.
        description: Optional description of the role's purpose.
        is_system: Whether this is a protected built-in role.
    """

    role_id: str
    title: str = ""
    description: str = ""
    is_system: bool = False
    created_at: str | None = None
    created_by: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None

    def __post_init__(self) -> None:
        """Validate role data after initialization."""
        if not self.role_id:
            raise ValueError("Role ID is required")
        if not self.title:
            self.title = self.role_id
