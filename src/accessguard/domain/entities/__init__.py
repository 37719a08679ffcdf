"""Domain entities for AccessGuard.

Entities are pure Python dataclasses that represent core business concepts.
They have no dependencies on infrastructure or external frameworks.
"""

from accessguard.domain.entities.audit_entry import (
    AuditEntry,
    AuditEvent,
    AuditReportEntry,
)
from accessguard.domain.entities.hook_context import HookContext, HookResult
from accessguard.domain.entities.permission import (
    PermissionContext,
    PermissionDefinition,
    PermissionGrant,
    PermissionKey,
    Scope,
)
from accessguard.domain.entities.role import Role
from accessguard.domain.entities.session import Session
from accessguard.domain.entities.user import User
from accessguard.domain.entities.user_property import PropertyKey, UserProperty

__all__ = [
    "AuditEntry",
    "AuditEvent",
    "AuditReportEntry",
    "HookContext",
    "HookResult",
    "PermissionContext",
    "PermissionDefinition",
    "PermissionGrant",
    "PermissionKey",
    "PropertyKey",
    "Role",
    "Scope",
    "Session",
    "User",
    "UserProperty",
]
