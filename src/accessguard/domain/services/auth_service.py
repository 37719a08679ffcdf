"""Authentication service.

Login failures are deliberately indistinguishable to the caller: a missing
user, an inactive user, a user without a local credential and a wrong
password all raise the same InvalidCredentials error. The specific reason
is only written to the application log.
"""

from dataclasses import asdict
from typing import Any, Optional

from accessguard.core.clock import Clock
from accessguard.core.hooks import HookEvent, HookRegistry
from accessguard.core.logging import get_logger
from accessguard.domain.entities.audit_entry import AuditEvent
from accessguard.domain.entities.hook_context import HookContext
from accessguard.domain.entities.permission import PermissionContext, PermissionKey
from accessguard.domain.entities.session import Session
from accessguard.domain.entities.user import User
from accessguard.domain.entities.user_property import PropertyKey
from accessguard.domain.exceptions import InvalidCredentials, NotFoundError, ValidationError
from accessguard.domain.services.audit_log_service import AuditLogService
from accessguard.domain.services.directory_service import DirectoryService
from accessguard.domain.services.permission_evaluator import PermissionEvaluator
from accessguard.domain.services.role_service import RoleService
from accessguard.domain.services.session_service import SessionService
from accessguard.domain.services.user_property_service import UserPropertyService
from accessguard.domain.services.user_validator import normalize_username
from accessguard.infrastructure.auth.password_hasher import hash_password, verify_password
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import UserRepository
from accessguard.infrastructure.persistence.schema import SYSTEM_ACTOR, USERS

logger = get_logger(__name__)


class AuthService:
    """Service for login, logout and self-service password changes."""

    def __init__(
        self,
        users: UserRepository,
        evaluator: PermissionEvaluator,
        sessions: SessionService,
        audit: AuditLogService,
        properties: UserPropertyService,
        role_service: RoleService,
        directory: DirectoryService,
        locks: LockManager,
        clock: Clock,
        hooks: Optional[HookRegistry] = None,
    ) -> None:
        self.users = users
        self.evaluator = evaluator
        self.sessions = sessions
        self.audit = audit
        self.properties = properties
        self.role_service = role_service
        self.directory = directory
        self.locks = locks
        self.clock = clock
        self.hooks = hooks

    def login(
        self,
        username: str,
        password: str,
        device: str = "",
        ip_address: str = "",
    ) -> dict[str, Any]:
        """Authenticate a user and open a session.

        Args:
            username: Login name; trimmed and lowercased before lookup.
            password: Plaintext password.
            device: Free-text device description stored on the session.
            ip_address: Client address stored on the session.

        Returns:
            Dictionary with ``current_user``, ``session``, ``roles``,
            ``permissions`` and ``system_overview`` (None when the user may
            not view users or the overview could not be built).

        Raises:
            ValidationError: If username or password is empty.
            InvalidCredentials: If authentication fails for any reason.
        """
        if not (username or "").strip():
            raise ValidationError("username", "Username is required")
        if not password:
            raise ValidationError("password", "Password is required")

        normalized = normalize_username(username)
        user = self.users.get_by_username(normalized)
        reason = self._failure_reason(user, password)
        if reason:
            self._record_failure(normalized, reason)
            raise InvalidCredentials()

        now = self.clock.now_iso()
        with self.locks.hold(USERS):
            self.users.update(user.user_id, {"Last_Login": now})
        user.last_login = now

        session = self.sessions.create_session(
            user.user_id, user.user_id, device=device, ip_address=ip_address
        )
        self.audit.record(
            AuditEvent(
                actor_id=user.user_id,
                sheet=USERS,
                action="LOGIN",
                target_id=user.user_id,
                details={"session_id": session.session_id},
                report_action="LOGIN",
                summary="User login",
            )
        )
        self._publish(
            HookEvent.ON_AUTH_AFTER_LOGIN,
            user.user_id,
            {"user_id": user.user_id, "session_id": session.session_id},
        )
        logger.info("User logged in", user_id=user.user_id, session_id=session.session_id)

        current_user = user.snapshot()
        current_user["must_change_password"] = self.properties.is_true(
            user.user_id, PropertyKey.MUST_CHANGE
        )
        return {
            "current_user": current_user,
            "session": {
                "session_id": session.session_id,
                "auth_token": session.auth_token,
                "created_at": session.created_at,
            },
            "roles": [asdict(role) for role in self.role_service.list_roles()],
            "permissions": self.role_service.get_role_permissions(user.role_id),
            "system_overview": self._build_overview(user),
        }

    def logout(self, auth_token: str) -> bool:
        """Revoke the session owning a token.

        Returns:
            False if the token is unknown or already revoked.
        """
        session = self.sessions.sessions.get_by_token(auth_token) if auth_token else None
        if session is None or not session.is_active:
            return False
        self.sessions.revoke_session(session.session_id, session.user_id)
        logger.info("User logged out", user_id=session.user_id, session_id=session.session_id)
        return True

    def revoke_session(self, session_id: str, actor_id: str) -> Session:
        """Revoke a session.

        Actors may always revoke their own sessions; revoking another
        user's session requires DEACTIVATE_USER on that user.

        Raises:
            NotFoundError: If the session does not exist.
            PermissionDeniedError: If the actor may not revoke it.
        """
        session = self.sessions.get_session(session_id)
        if session.user_id != actor_id:
            self.evaluator.require(
                actor_id,
                PermissionKey.DEACTIVATE_USER,
                PermissionContext(target_user_id=session.user_id),
            )
        return self.sessions.revoke_session(session_id, actor_id)

    def resolve_session(self, auth_token: str) -> Optional[Session]:
        """Resolve an active session from its token and mark it as seen."""
        session = self.sessions.get_by_token(auth_token) if auth_token else None
        if session is not None:
            self.sessions.touch(session.session_id)
        return session

    def change_password(self, user_id: str, current_password: str, new_password: str) -> bool:
        """Change a user's own password and clear the must-change flag.

        Raises:
            NotFoundError: If the user does not exist.
            InvalidCredentials: If the current password does not verify.
            ValidationError: If the new password is empty or unchanged.
        """
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        if not user.is_active or not verify_password(current_password or "", user.password_hash):
            raise InvalidCredentials()
        if not (new_password or "").strip():
            raise ValidationError("new_password", "New password is required")
        if new_password == current_password:
            raise ValidationError("new_password", "New password must differ from the current one")

        with self.locks.hold(USERS):
            self.users.update(
                user_id,
                {
                    "Password_Hash": hash_password(new_password),
                    "Updated_At": self.clock.now_iso(),
                    "Updated_By": user_id,
                },
            )
        self.properties.clear(user_id, PropertyKey.MUST_CHANGE, user_id)
        self.audit.log(user_id, USERS, "CHANGE_PASSWORD", user_id)
        logger.info("Password changed", user_id=user_id)
        return True

    def _failure_reason(self, user: Optional[User], password: str) -> Optional[str]:
        if user is None:
            return "unknown_user"
        if not user.is_active:
            return "inactive_user"
        if not user.has_local_credential:
            return "no_local_credential"
        if not verify_password(password, user.password_hash):
            return "bad_password"
        return None

    def _record_failure(self, username: str, reason: str) -> None:
        self.audit.record(
            AuditEvent(
                actor_id=SYSTEM_ACTOR,
                sheet=USERS,
                action="LOGIN_FAILED",
                target_id=username,
                details={"reason": reason},
            )
        )
        self._publish(HookEvent.ON_AUTH_LOGIN_FAILED, SYSTEM_ACTOR, {"username": username})
        logger.info("Login failed", username=username, reason=reason)

    def _build_overview(self, user: User) -> Optional[dict[str, int]]:
        if not self.evaluator.evaluate(
            user.user_id,
            PermissionKey.VIEW_USERS,
            PermissionContext(target_user_id=user.user_id),
        ):
            return None
        try:
            return self.directory.get_overview(user.user_id)
        except Exception as e:
            # The overview is optional; it must never fail a login
            logger.warning(
                "System overview unavailable",
                user_id=user.user_id,
                error=str(e),
                exc_info=True,
            )
            return None

    def _publish(self, event: str, actor_id: str, data: dict[str, Any]) -> None:
        if self.hooks is None:
            return
        self.hooks.trigger(
            event,
            data=data,
            context=HookContext(actor_id=actor_id, occurred_at=self.clock.now_iso()),
        )
