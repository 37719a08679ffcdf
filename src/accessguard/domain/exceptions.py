"""Error taxonomy for access-control operations.

Every error carries a short machine-readable ``code`` and a human message so
that the application layer can build ``{success: false, error: {...}}``
envelopes without inspecting exception types.
"""

from typing import Any


class AccessGuardError(Exception):
    """Base class for all AccessGuard domain errors."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for a response envelope."""
        return {"code": self.code, "message": self.message}


class ValidationError(AccessGuardError):
    """Raised when input is missing or malformed.

    Args:
        field: Name of the offending input field.
        message: Human-readable error message.
    """

    code = "VALIDATION_ERROR"

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["field"] = self.field
        return data


class NotFoundError(AccessGuardError):
    """Raised when a user, role, or session id does not resolve."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str) -> None:
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found: {entity_id}")


class PermissionDeniedError(AccessGuardError):
    """Raised when the permission evaluator denies an operation."""

    code = "PERMISSION_DENIED"

    def __init__(self, permission_key: str, message: str | None = None) -> None:
        self.permission_key = permission_key
        super().__init__(message or f"Permission denied: {permission_key}")


class ConflictError(AccessGuardError):
    """Raised on duplicate username/email or a last-superuser removal."""

    code = "CONFLICT"

    def __init__(self, message: str, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
        return data


class StoreTimeoutError(AccessGuardError):
    """Raised when a store lock could not be acquired within the bound."""

    code = "STORE_TIMEOUT"

    def __init__(self, resource: str, timeout: float) -> None:
        self.resource = resource
        self.timeout = timeout
        super().__init__(
            f"Timed out after {timeout:g}s waiting for lock on {resource}; retry the operation"
        )


class InvalidCredentials(AccessGuardError):
    """Raised on any failed login.

    The message is deliberately identical for unknown users, inactive users,
    and wrong passwords.
    """

    code = "INVALID_CREDENTIALS"

    def __init__(self) -> None:
        super().__init__("Invalid username or password")


class AuditWriteError(AccessGuardError):
    """Raised when a mandatory audit report write fails.

    The mutation the report describes has already been applied; the error
    tells the caller that the action is not fully recorded.
    """

    code = "AUDIT_WRITE_FAILED"

    def __init__(self, action: str, cause: Exception) -> None:
        self.action = action
        self.cause = cause
        super().__init__(f"Audit report write failed for {action}: {cause}")
