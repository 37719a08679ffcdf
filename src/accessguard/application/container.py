"""AccessGuard application facade.

Wires the store, locks, repositories, services and listener registry from
settings, and exposes every operation as a call returning an
OperationResult envelope. Domain errors become ``{success: false, error}``
envelopes; anything unexpected is logged with its traceback and reported
as INTERNAL_ERROR.
"""

from dataclasses import asdict
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError as PydanticValidationError

from accessguard.application.schemas import (
    AuditLogQuery,
    ImpersonationRequest,
    LoginRequest,
    OperationResult,
    PermissionMappingRequest,
    RoleAssignmentRequest,
    RoleCreateRequest,
    UserCreateRequest,
    UserListQuery,
    UserUpdateRequest,
)
from accessguard.core.clock import Clock
from accessguard.core.config import Settings, get_settings
from accessguard.core.hooks import HookRegistry
from accessguard.core.logging import get_logger, operation_context
from accessguard.domain.entities.permission import PermissionContext, PermissionKey
from accessguard.domain.exceptions import AccessGuardError
from accessguard.domain.services import (
    AuditLogFilters,
    AuditLogService,
    AuthService,
    DirectoryService,
    PermissionEvaluator,
    PermissionSeeder,
    RoleService,
    SequenceIdGenerator,
    SessionService,
    UserFilters,
    UserLifecycleService,
    UserPropertyService,
)
from accessguard.infrastructure.persistence import LockManager, TabularStore, create_store
from accessguard.infrastructure.persistence.repositories import (
    AuditLogRepository,
    AuditReportRepository,
    PermissionCatalogRepository,
    RolePermissionRepository,
    RoleRepository,
    SessionRepository,
    UserPropertyRepository,
    UserRepository,
)
from accessguard.infrastructure.persistence.schema import SHEET_HEADERS

logger = get_logger(__name__)


class AccessGuard:
    """Container and facade for the access-control layer.

    Example:
        with AccessGuard(settings) as guard:
            result = guard.login("admin", "Secret1")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        store: Optional[TabularStore] = None,
        hooks: Optional[HookRegistry] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.store = store if store is not None else create_store(self.settings)
        self.hooks = hooks or HookRegistry()
        self.clock = Clock(self.settings.tzinfo)
        self.locks = LockManager(self.settings.lock_timeout_seconds)
        self._opened = False

        su = self.settings.superuser_role_id

        self.users = UserRepository(self.store)
        self.roles = RoleRepository(self.store)
        self.grants = RolePermissionRepository(self.store)
        self.catalog = PermissionCatalogRepository(self.store)
        self.session_repository = SessionRepository(self.store)
        self.property_repository = UserPropertyRepository(self.store)
        self.audit_log_repository = AuditLogRepository(self.store)
        self.audit_report_repository = AuditReportRepository(self.store)

        self.id_generator = SequenceIdGenerator(self.store, self.locks, self.clock)
        self.seeder = PermissionSeeder(
            self.roles, self.grants, self.catalog, self.locks, self.clock, su
        )
        self.evaluator = PermissionEvaluator(self.users, self.grants, self.seeder, su)
        self.audit = AuditLogService(
            self.audit_log_repository,
            self.audit_report_repository,
            self.id_generator,
            self.locks,
            self.clock,
            report_mandatory=self.settings.audit_report_mandatory,
        )
        self.sessions = SessionService(
            self.session_repository,
            self.audit,
            self.id_generator,
            self.locks,
            self.clock,
            hooks=self.hooks,
            token_bytes=self.settings.session_token_bytes,
        )
        self.properties = UserPropertyService(self.property_repository, self.locks, self.clock)
        self.role_service = RoleService(
            self.roles,
            self.grants,
            self.catalog,
            self.evaluator,
            self.seeder,
            self.audit,
            self.locks,
            self.clock,
            superuser_role_id=su,
        )
        self.lifecycle = UserLifecycleService(
            self.users,
            self.roles,
            self.evaluator,
            self.audit,
            self.sessions,
            self.properties,
            self.id_generator,
            self.locks,
            self.clock,
            hooks=self.hooks,
            superuser_role_id=su,
            delete_permission_key=PermissionKey(self.settings.delete_permission_key),
            temp_password_length=self.settings.temp_password_length,
        )
        self.directory = DirectoryService(
            self.users,
            self.roles,
            self.catalog,
            self.evaluator,
            self.role_service,
            self.sessions,
            self.properties,
            self.audit,
        )
        self.auth = AuthService(
            self.users,
            self.evaluator,
            self.sessions,
            self.audit,
            self.properties,
            self.role_service,
            self.directory,
            self.locks,
            self.clock,
            hooks=self.hooks,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def open(self, seed: bool = True) -> dict[str, int]:
        """Open the store, ensure every sheet exists and seed defaults.

        Returns:
            Counts of seeded roles, catalog entries and grants.
        """
        self.store.open()
        for sheet, headers in SHEET_HEADERS.items():
            self.store.ensure_schema(sheet, headers)
        self._opened = True
        seeded = self.seeder.seed_all() if seed else {}
        logger.info("AccessGuard opened", store_url=self.settings.store_url, seeded=seeded)
        return seeded

    def close(self) -> None:
        """Close the store."""
        if not self._opened:
            return
        self.store.close()
        self._opened = False
        logger.info("AccessGuard closed")

    def __enter__(self) -> "AccessGuard":
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def register_listener(self, event: str, callback: Callable[..., Any], **options: Any) -> str:
        """Register a lifecycle listener. See HookRegistry.register."""
        return self.hooks.register(event, callback, **options)

    def has_permission(
        self,
        actor_id: str,
        permission_key: PermissionKey | str,
        context: PermissionContext | Mapping[str, Any] | None = None,
    ) -> bool:
        """Evaluate a permission for an actor without raising."""
        return self.evaluator.evaluate(actor_id, permission_key, context)

    # ------------------------------------------------------------------
    # User lifecycle
    # ------------------------------------------------------------------

    def create_user(self, payload: Mapping[str, Any], actor_id: str) -> OperationResult:
        def run() -> dict[str, Any]:
            request = UserCreateRequest.model_validate(dict(payload))
            created = self.lifecycle.create_user(request.to_payload(), actor_id)
            return {
                "user": created.user.to_public_dict(),
                "temporary_password": created.temporary_password,
            }

        return self._execute("create_user", actor_id, run)

    def update_user(self, user_id: str, payload: Mapping[str, Any], actor_id: str) -> OperationResult:
        def run() -> dict[str, Any]:
            request = UserUpdateRequest.model_validate(dict(payload))
            return self.lifecycle.update_user(user_id, request.to_updates(), actor_id).to_public_dict()

        return self._execute("update_user", actor_id, run)

    def set_user_status(
        self,
        user_id: str,
        active: bool,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> OperationResult:
        return self._execute(
            "set_user_status",
            actor_id,
            lambda: self.lifecycle.set_user_status(user_id, active, actor_id, reason).to_public_dict(),
        )

    def delete_user(
        self,
        user_id: str,
        actor_id: str,
        archive_note: Optional[str] = None,
    ) -> OperationResult:
        return self._execute(
            "delete_user",
            actor_id,
            lambda: self.lifecycle.delete_user(user_id, actor_id, archive_note).to_public_dict(),
        )

    def reset_user_password(
        self,
        user_id: str,
        new_password: Optional[str],
        actor_id: str,
    ) -> OperationResult:
        return self._execute(
            "reset_user_password",
            actor_id,
            lambda: asdict(self.lifecycle.reset_user_password(user_id, new_password, actor_id)),
        )

    def assign_role_to_user(
        self,
        user_id: str,
        role_id: str,
        actor_id: str,
        effective_from: Any = None,
    ) -> OperationResult:
        def run() -> dict[str, Any]:
            request = RoleAssignmentRequest(
                role_id=role_id, user_ids=[user_id], effective_from=effective_from
            )
            user = self.lifecycle.assign_role_to_user(
                user_id, request.role_id, actor_id, request.effective_from
            )
            return user.to_public_dict()

        return self._execute("assign_role_to_user", actor_id, run)

    def bulk_assign_role(
        self,
        user_ids: list[str],
        role_id: str,
        actor_id: str,
        effective_from: Any = None,
    ) -> OperationResult:
        def run() -> dict[str, Any]:
            request = RoleAssignmentRequest(
                role_id=role_id, user_ids=list(user_ids), effective_from=effective_from
            )
            result = self.lifecycle.bulk_assign_role(
                request.user_ids, request.role_id, actor_id, request.effective_from
            )
            return {"updated": result.updated, "errors": result.errors}

        return self._execute("bulk_assign_role", actor_id, run)

    def impersonate_user_session(
        self,
        target_id: str,
        actor_id: str,
        justification: str,
        duration_minutes: Optional[int] = None,
        ip_address: str = "",
    ) -> OperationResult:
        def run() -> dict[str, Any]:
            request = ImpersonationRequest(
                target_id=target_id,
                justification=justification or "",
                duration_minutes=duration_minutes,
                ip_address=ip_address,
            )
            session = self.lifecycle.impersonate_user_session(
                request.target_id,
                actor_id,
                request.justification,
                request.duration_minutes,
                request.ip_address,
            )
            data = session.to_public_dict()
            data["auth_token"] = session.auth_token
            return data

        return self._execute("impersonate_user_session", actor_id, run)

    def set_user_property(self, user_id: str, key: str, value: Any, actor_id: str) -> OperationResult:
        return self._execute(
            "set_user_property",
            actor_id,
            lambda: asdict(self.lifecycle.set_user_property(user_id, key, value, actor_id)),
        )

    def clear_user_property(self, user_id: str, key: str, actor_id: str) -> OperationResult:
        return self._execute(
            "clear_user_property",
            actor_id,
            lambda: {"cleared": self.lifecycle.clear_user_property(user_id, key, actor_id)},
        )

    # ------------------------------------------------------------------
    # Authentication and sessions
    # ------------------------------------------------------------------

    def login(
        self,
        username: str,
        password: str,
        device: str = "",
        ip_address: str = "",
    ) -> OperationResult:
        def run() -> dict[str, Any]:
            request = LoginRequest(
                username=username or "",
                password=password or "",
                device=device or "",
                ip_address=ip_address or "",
            )
            return self.auth.login(
                request.username,
                request.password.get_secret_value(),
                device=request.device,
                ip_address=request.ip_address,
            )

        return self._execute("login", None, run)

    def logout(self, auth_token: str) -> OperationResult:
        return self._execute("logout", None, lambda: {"revoked": self.auth.logout(auth_token)})

    def change_password(
        self, user_id: str, current_password: str, new_password: str
    ) -> OperationResult:
        return self._execute(
            "change_password",
            user_id,
            lambda: {"changed": self.auth.change_password(user_id, current_password, new_password)},
        )

    def revoke_session(self, session_id: str, actor_id: str) -> OperationResult:
        return self._execute(
            "revoke_session",
            actor_id,
            lambda: self.auth.revoke_session(session_id, actor_id).to_public_dict(),
        )

    def list_user_sessions(
        self, user_id: str, actor_id: str, include_revoked: bool = False
    ) -> OperationResult:
        return self._execute(
            "list_user_sessions",
            actor_id,
            lambda: [
                s.to_public_dict()
                for s in self.directory.list_user_sessions(user_id, actor_id, include_revoked)
            ],
        )

    # ------------------------------------------------------------------
    # Directory
    # ------------------------------------------------------------------

    def list_users(self, actor_id: str, **filters: Any) -> OperationResult:
        def run() -> list[dict[str, Any]]:
            query = UserListQuery(**filters)
            users = self.directory.list_users(actor_id, UserFilters(**query.model_dump()))
            return [user.to_public_dict() for user in users]

        return self._execute("list_users", actor_id, run)

    def get_user_profile(self, user_id: str, actor_id: str) -> OperationResult:
        return self._execute(
            "get_user_profile",
            actor_id,
            lambda: self.directory.get_user_profile(user_id, actor_id),
        )

    def export_users_directory(self, actor_id: str) -> OperationResult:
        return self._execute(
            "export_users_directory",
            actor_id,
            lambda: self.directory.export_users_directory(actor_id),
        )

    def get_overview(self, actor_id: str) -> OperationResult:
        return self._execute("get_overview", actor_id, lambda: self.directory.get_overview(actor_id))

    # ------------------------------------------------------------------
    # Roles and permissions
    # ------------------------------------------------------------------

    def list_roles(self) -> OperationResult:
        return self._execute(
            "list_roles", None, lambda: [asdict(role) for role in self.role_service.list_roles()]
        )

    def list_permission_catalog(self) -> OperationResult:
        return self._execute(
            "list_permission_catalog",
            None,
            lambda: [
                {
                    "key": d.key.value,
                    "label": d.label,
                    "description": d.description,
                    "category": d.category,
                }
                for d in self.role_service.list_permission_catalog()
            ],
        )

    def create_role(self, payload: Mapping[str, Any], actor_id: str) -> OperationResult:
        def run() -> dict[str, Any]:
            request = RoleCreateRequest.model_validate(dict(payload))
            role = self.role_service.create_role(
                request.role_id,
                actor_id,
                title=request.title,
                description=request.description,
                is_system=request.is_system,
            )
            return asdict(role)

        return self._execute("create_role", actor_id, run)

    def set_permission(self, payload: Mapping[str, Any], actor_id: str) -> OperationResult:
        def run() -> dict[str, Any]:
            request = PermissionMappingRequest.model_validate(dict(payload))
            grant = self.role_service.set_permission(
                request.role_id,
                request.permission_key,
                actor_id,
                scope=request.scope,
                allowed=request.allowed,
                constraints=request.constraints,
            )
            return grant.to_dict()

        return self._execute("set_permission", actor_id, run)

    def clone_role_permissions(
        self, source_role_id: str, target_role_id: str, actor_id: str
    ) -> OperationResult:
        return self._execute(
            "clone_role_permissions",
            actor_id,
            lambda: {
                "copied": self.role_service.clone_role_permissions(
                    source_role_id, target_role_id, actor_id
                )
            },
        )

    def get_permission_matrix(self, actor_id: str) -> OperationResult:
        return self._execute(
            "get_permission_matrix",
            actor_id,
            lambda: self.role_service.get_permission_matrix(actor_id),
        )

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------

    def get_audit_logs(self, actor_id: str, **filters: Any) -> OperationResult:
        def run() -> list[dict[str, Any]]:
            query = AuditLogQuery(**filters)
            entries = self.directory.get_audit_logs(
                actor_id, AuditLogFilters(**query.model_dump())
            )
            return [asdict(entry) for entry in entries]

        return self._execute("get_audit_logs", actor_id, run)

    def get_user_audit_trail(self, user_id: str, actor_id: str, limit: int = 50) -> OperationResult:
        return self._execute(
            "get_user_audit_trail",
            actor_id,
            lambda: [
                asdict(entry)
                for entry in self.directory.get_user_audit_trail(user_id, actor_id, limit)
            ],
        )

    def get_audit_report(self, actor_id: str, **filters: Any) -> OperationResult:
        return self._execute(
            "get_audit_report",
            actor_id,
            lambda: [asdict(entry) for entry in self.directory.get_audit_report(actor_id, **filters)],
        )

    def verify_audit(self, actor_id: str) -> OperationResult:
        return self._execute("verify_audit", actor_id, lambda: self.directory.verify_audit(actor_id))

    # ------------------------------------------------------------------
    # Envelope
    # ------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        actor_id: Optional[str],
        func: Callable[[], Any],
    ) -> OperationResult:
        with operation_context(operation, actor_id):
            try:
                return OperationResult.ok(func())
            except AccessGuardError as e:
                logger.info("Operation rejected", code=e.code, error=e.message)
                return OperationResult.fail(e.to_dict())
            except PydanticValidationError as e:
                first = e.errors()[0] if e.errors() else {}
                field = ".".join(str(part) for part in first.get("loc", ())) or None
                logger.info("Operation rejected", code="VALIDATION_ERROR", field=field)
                return OperationResult.fail(
                    {
                        "code": "VALIDATION_ERROR",
                        "message": first.get("msg", "Invalid input"),
                        "field": field,
                    }
                )
            except Exception as e:
                logger.error("Operation failed", error=str(e), exc_info=True)
                return OperationResult.fail(
                    {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"}
                )
