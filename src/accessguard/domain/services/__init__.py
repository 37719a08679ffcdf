"""Domain services for AccessGuard.

Services hold the authorization, lifecycle and audit logic. They receive
their repositories and collaborators through the constructor and never
reach for global state.
"""

from accessguard.domain.services.audit_log_service import AuditLogFilters, AuditLogService
from accessguard.domain.services.auth_service import AuthService
from accessguard.domain.services.directory_service import DirectoryService, UserFilters
from accessguard.domain.services.id_generator import SequenceIdGenerator
from accessguard.domain.services.permission_evaluator import (
    PermissionDecision,
    PermissionEvaluator,
    coerce_context,
)
from accessguard.domain.services.permission_seeder import (
    BASIC_USER_ROLE,
    HR_MANAGER_ROLE,
    MANAGER_ROLE,
    PERMISSION_DEFINITIONS,
    PermissionSeeder,
    default_grants,
    default_roles,
)
from accessguard.domain.services.role_service import RoleService
from accessguard.domain.services.session_service import IMPERSONATION_DEVICE, SessionService
from accessguard.domain.services.user_lifecycle_service import (
    BulkAssignResult,
    CreatedUser,
    PasswordReset,
    UserLifecycleService,
)
from accessguard.domain.services.user_property_service import UserPropertyService
from accessguard.domain.services.user_validator import (
    UserFieldError,
    UserValidator,
    normalize_email,
    normalize_username,
)

__all__ = [
    "AuditLogFilters",
    "AuditLogService",
    "AuthService",
    "BASIC_USER_ROLE",
    "BulkAssignResult",
    "CreatedUser",
    "DirectoryService",
    "HR_MANAGER_ROLE",
    "IMPERSONATION_DEVICE",
    "MANAGER_ROLE",
    "PERMISSION_DEFINITIONS",
    "PasswordReset",
    "PermissionDecision",
    "PermissionEvaluator",
    "PermissionSeeder",
    "RoleService",
    "SequenceIdGenerator",
    "SessionService",
    "UserFieldError",
    "UserFilters",
    "UserLifecycleService",
    "UserPropertyService",
    "UserValidator",
    "coerce_context",
    "default_grants",
    "default_roles",
    "normalize_email",
    "normalize_username",
]
