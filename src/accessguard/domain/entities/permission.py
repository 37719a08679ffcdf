"""Permission entities for role-based access control.

Permission keys and scopes are closed enumerations shared by the evaluator
and the lifecycle service. A grant links one role to one permission key with
a scope that narrows where the grant applies.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class PermissionKey(str, Enum):
    """Every permission the access-control layer understands."""

    VIEW_USERS = "VIEW_USERS"
    CREATE_USER = "CREATE_USER"
    EDIT_USER = "EDIT_USER"
    ASSIGN_ROLE = "ASSIGN_ROLE"
    DEACTIVATE_USER = "DEACTIVATE_USER"
    DELETE_USER = "DELETE_USER"
    RESET_PASSWORD = "RESET_PASSWORD"
    VIEW_AUDIT = "VIEW_AUDIT"
    IMPERSONATE = "IMPERSONATE"
    EXPORT_USERS = "EXPORT_USERS"

    @classmethod
    def parse(cls, value: "str | PermissionKey") -> "PermissionKey | None":
        """Resolve a stored or caller-supplied key, or None if unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return None


class Scope(str, Enum):
    """Where a grant applies."""

    GLOBAL = "GLOBAL"
    LIMITED = "LIMITED"
    DEPARTMENT = "DEPARTMENT"
    SELF = "SELF"

    @classmethod
    def parse(cls, value: Any) -> "Scope | None":
        """Resolve a stored scope value, or None if it is not recognised."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return None


@dataclass
class PermissionGrant:
    """One cell of the role x permission matrix.

    Attributes:
        role_id: Role the grant belongs to.
        permission_key: Permission being granted or denied.
        scope: Scope qualifier. None means the stored value was not
               recognised; the evaluator treats that as a deny.
        allowed: Whether the grant permits the operation at all.
        constraints: Free-form constraints recorded with the grant.
    """

    role_id: str
    permission_key: PermissionKey
    scope: Scope | None = Scope.GLOBAL
    allowed: bool = True
    constraints: str = ""
    created_at: str | None = None
    created_by: str | None = None
    updated_at: str | None = None
    updated_by: str | None = None

    def __post_init__(self) -> None:
        """Validate grant data after initialization."""
        if not self.role_id:
            raise ValueError("Role ID is required")
        if not isinstance(self.permission_key, PermissionKey):
            raise ValueError("Permission key must be a PermissionKey")

    def to_dict(self) -> dict[str, Any]:
        """Convert the grant to a JSON-friendly dictionary."""
        return {
            "role_id": self.role_id,
            "permission_key": self.permission_key.value,
            "scope": self.scope.value if self.scope else None,
            "allowed": self.allowed,
            "constraints": self.constraints,
        }


@dataclass(frozen=True)
class PermissionDefinition:
    """Catalog entry describing a permission key."""

    key: PermissionKey
    label: str
    description: str
    category: str = "Users"


@dataclass
class PermissionContext:
    """Target information supplied with a permission check.

    Attributes:
        target_user_id: User the operation acts on.
        target_department: Department the operation acts on. Takes
                           precedence over the target user's department.
        new_role_id: Role being assigned, for ASSIGN_ROLE checks.
    """

    target_user_id: str | None = None
    target_department: str | None = None
    new_role_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)
