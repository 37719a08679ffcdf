"""Persistence repositories for sheet operations."""

from accessguard.infrastructure.persistence.repositories.audit_repository import (
    AuditLogRepository,
    AuditReportRepository,
)
from accessguard.infrastructure.persistence.repositories.permission_catalog_repository import (
    PermissionCatalogRepository,
)
from accessguard.infrastructure.persistence.repositories.role_permission_repository import (
    RolePermissionRepository,
)
from accessguard.infrastructure.persistence.repositories.role_repository import RoleRepository
from accessguard.infrastructure.persistence.repositories.session_repository import (
    SessionRepository,
)
from accessguard.infrastructure.persistence.repositories.user_property_repository import (
    UserPropertyRepository,
)
from accessguard.infrastructure.persistence.repositories.user_repository import UserRepository

__all__ = [
    "AuditLogRepository",
    "AuditReportRepository",
    "PermissionCatalogRepository",
    "RolePermissionRepository",
    "RoleRepository",
    "SessionRepository",
    "UserPropertyRepository",
    "UserRepository",
]
