"""Pydantic schemas for facade requests and responses.

Request models only check shapes and types. Business validation (email
format, uniqueness, role existence) stays in the domain services so that
error codes are the same whether or not a request model was used.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class ErrorDetail(BaseModel):
    """Error payload of a failed operation."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable message")
    field: Optional[str] = Field(None, description="Offending field, for validation errors")


class OperationResult(BaseModel):
    """Envelope returned by every facade operation."""

    success: bool
    data: Any = None
    error: Optional[ErrorDetail] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, error: dict[str, Any]) -> "OperationResult":
        return cls(success=False, error=ErrorDetail(**error))

    def to_dict(self) -> dict[str, Any]:
        """Return ``{success, data}`` or ``{success, error}``."""
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error.model_dump(exclude_none=True)}


class UserCreateRequest(BaseModel):
    """Request schema for creating a user.

    When neither ``password`` nor ``password_hash`` is supplied a temporary
    password is generated and returned once.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    full_name: str = Field(..., description="Display name")
    username: str = Field(..., description="Login name (lowercased)")
    email: str = Field(..., description="Email address (lowercased)")
    role_id: str = Field(..., description="Role ID (must exist)")
    job_title: str = ""
    department: str = ""
    is_active: bool = True
    password: Optional[SecretStr] = Field(None, description="Initial password")
    password_hash: Optional[str] = Field(None, description="Pre-hashed salt:digest credential")
    external_id: str = ""
    mfa_enabled: bool = False
    notes: str = ""

    def to_payload(self) -> dict[str, Any]:
        payload = self.model_dump(exclude={"password"})
        if self.password is not None:
            payload["password"] = self.password.get_secret_value()
        return payload


class UserUpdateRequest(BaseModel):
    """Request schema for updating a user.

    All fields are optional. Only provided fields are updated.
    """

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    full_name: Optional[str] = None
    username: Optional[str] = None
    email: Optional[str] = None
    role_id: Optional[str] = None
    job_title: Optional[str] = None
    department: Optional[str] = None
    is_active: Optional[bool] = None
    external_id: Optional[str] = None
    mfa_enabled: Optional[bool] = None
    notes: Optional[str] = None

    def to_updates(self) -> dict[str, Any]:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class RoleAssignmentRequest(BaseModel):
    """Request schema for assigning a role to one or many users."""

    role_id: str = Field(..., min_length=1)
    user_ids: list[str] = Field(default_factory=list)
    effective_from: Optional[date | datetime | str] = None


class ImpersonationRequest(BaseModel):
    """Request schema for opening an impersonation session."""

    target_id: str
    justification: str = ""
    duration_minutes: Optional[int] = None
    ip_address: str = ""


class LoginRequest(BaseModel):
    """Request schema for password login."""

    username: str = ""
    password: SecretStr = SecretStr("")
    device: str = ""
    ip_address: str = ""


class RoleCreateRequest(BaseModel):
    """Request schema for creating a role."""

    model_config = ConfigDict(str_strip_whitespace=True)

    role_id: str
    title: str = ""
    description: str = ""
    is_system: bool = False


class PermissionMappingRequest(BaseModel):
    """Request schema for creating or replacing a grant."""

    model_config = ConfigDict(str_strip_whitespace=True)

    role_id: str
    permission_key: str
    scope: str = "GLOBAL"
    allowed: bool = True
    constraints: str = ""


class UserListQuery(BaseModel):
    """Query parameters for user listings."""

    is_active: Optional[bool] = None
    role_id: Optional[str] = None
    department: Optional[str] = None
    search: Optional[str] = None


class AuditLogQuery(BaseModel):
    """Query parameters for compact audit log reads."""

    user_id: Optional[str] = None
    action: Optional[str] = None
    target_id: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    limit: Optional[int] = Field(None, ge=1)
