"""User lifecycle service.

Every state-changing user operation follows the same template:

    require permission -> mutate the identity store -> audit (both targets)
    -> side effects (session revocation, properties, listeners)

Permission and validation errors are raised before anything is written.
Read-modify-write sequences on SYS_Users run under the sheet lock and
re-read the current row before writing.
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import Any, Iterable, Mapping, Optional

from accessguard.core.clock import Clock
from accessguard.core.hooks import HookEvent, HookRegistry
from accessguard.core.logging import get_logger
from accessguard.domain.entities.audit_entry import AuditEvent
from accessguard.domain.entities.hook_context import HookContext
from accessguard.domain.entities.permission import PermissionContext, PermissionKey, Scope
from accessguard.domain.entities.session import Session
from accessguard.domain.entities.user import User
from accessguard.domain.entities.user_property import PropertyKey, UserProperty
from accessguard.domain.exceptions import (
    AccessGuardError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from accessguard.domain.services.audit_log_service import AuditLogService
from accessguard.domain.services.id_generator import SequenceIdGenerator
from accessguard.domain.services.permission_evaluator import PermissionEvaluator
from accessguard.domain.services.session_service import IMPERSONATION_DEVICE, SessionService
from accessguard.domain.services.user_property_service import UserPropertyService
from accessguard.domain.services.user_validator import (
    UserValidator,
    normalize_email,
    normalize_username,
)
from accessguard.infrastructure.auth.password_hasher import (
    generate_temporary_password,
    hash_password,
)
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import RoleRepository, UserRepository
from accessguard.infrastructure.persistence.schema import (
    SYSTEM_ACTOR,
    USER_ID_PREFIX,
    USERS,
    to_boolean,
    to_cell,
)

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "full_name",
        "username",
        "email",
        "role_id",
        "job_title",
        "department",
        "is_active",
        "external_id",
        "mfa_enabled",
        "notes",
    }
)

_TEXT_FIELDS = ("job_title", "department", "external_id", "notes")

# Columns excluded from changed-field diffs
_STAMP_COLUMNS = frozenset({"Updated_At", "Updated_By"})


@dataclass
class CreatedUser:
    """Result of create_user.

    ``temporary_password`` is set only when a password was generated, and
    is the only place the plaintext ever appears.
    """

    user: User
    temporary_password: Optional[str] = None


@dataclass
class PasswordReset:
    """Result of reset_user_password. The plaintext is returned once."""

    user_id: str
    password: str
    generated: bool


@dataclass
class BulkAssignResult:
    """Result of bulk_assign_role; partial failure is expected."""

    role_id: str
    updated: list[str] = field(default_factory=list)
    errors: list[dict[str, Any]] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


class UserLifecycleService:
    """Service for every user mutation gated by the permission evaluator."""

    def __init__(
        self,
        users: UserRepository,
        roles: RoleRepository,
        evaluator: PermissionEvaluator,
        audit: AuditLogService,
        sessions: SessionService,
        properties: UserPropertyService,
        id_generator: SequenceIdGenerator,
        locks: LockManager,
        clock: Clock,
        hooks: Optional[HookRegistry] = None,
        superuser_role_id: str = "Admin",
        delete_permission_key: PermissionKey = PermissionKey.DELETE_USER,
        temp_password_length: int = 10,
    ) -> None:
        self.users = users
        self.roles = roles
        self.evaluator = evaluator
        self.audit = audit
        self.sessions = sessions
        self.properties = properties
        self.id_generator = id_generator
        self.locks = locks
        self.clock = clock
        self.hooks = hooks
        self.superuser_role_id = superuser_role_id
        self.delete_permission_key = delete_permission_key
        self.temp_password_length = temp_password_length
        self.validator = UserValidator()

    # ------------------------------------------------------------------
    # Create / update
    # ------------------------------------------------------------------

    def create_user(self, data: Mapping[str, Any], actor_id: str) -> CreatedUser:
        """Create a user.

        Args:
            data: Create payload keyed by attribute name (full_name,
                  username, email, role_id, and optionally job_title,
                  department, is_active, password, password_hash,
                  external_id, mfa_enabled, notes).
            actor_id: User performing the operation.

        Returns:
            The created user and, when one was generated, the temporary
            password.

        Raises:
            PermissionDeniedError: If the actor lacks CREATE_USER, or lacks
                superuser assignment rights when creating a superuser.
            ValidationError: If a required field is missing or malformed,
                or the role does not exist.
            ConflictError: If the username or email is already taken.
        """
        data = dict(data)
        decision = self.evaluator.require(
            actor_id,
            PermissionKey.CREATE_USER,
            PermissionContext(target_department=str(data.get("department") or "") or None),
        )
        self.validator.raise_first(self.validator.validate_new_user(data))

        role_id = str(data["role_id"]).strip()
        if role_id == self.superuser_role_id:
            self.evaluator.require(
                actor_id,
                PermissionKey.ASSIGN_ROLE,
                PermissionContext(new_role_id=role_id),
            )

        return self._insert_user(data, actor_id, decision.scope or "GLOBAL")

    def _insert_user(self, data: dict[str, Any], actor_id: str, scope: str) -> CreatedUser:
        username = normalize_username(data.get("username"))
        email = normalize_email(data.get("email"))
        role_id = str(data["role_id"]).strip()

        temporary_password = None
        with self.locks.hold(USERS):
            if not self.roles.exists(role_id):
                raise ValidationError("role_id", f"Role does not exist: {role_id}")
            self._ensure_unique("email", email)
            self._ensure_unique("username", username)

            if data.get("password"):
                password_hash = hash_password(str(data["password"]))
            elif data.get("password_hash"):
                password_hash = str(data["password_hash"])
            else:
                temporary_password = generate_temporary_password(self.temp_password_length)
                password_hash = hash_password(temporary_password)

            now = self.clock.now_iso()
            user = User(
                user_id=self.id_generator.next_id(USER_ID_PREFIX, USERS),
                full_name=str(data["full_name"]).strip(),
                username=username,
                email=email,
                role_id=role_id,
                job_title=str(data.get("job_title") or ""),
                department=str(data.get("department") or ""),
                is_active=data.get("is_active") is None or to_boolean(data["is_active"]),
                password_hash=password_hash,
                created_at=now,
                created_by=actor_id,
                updated_at=now,
                updated_by=actor_id,
                external_id=str(data.get("external_id") or ""),
                mfa_enabled=to_boolean(data.get("mfa_enabled")),
                notes=str(data.get("notes") or ""),
            )
            self.users.create(user)

        if temporary_password:
            self.properties.set(user.user_id, PropertyKey.MUST_CHANGE, True, actor_id)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=USERS,
                action="CREATE_USER",
                target_id=user.user_id,
                details={"email": user.email, "role_id": user.role_id},
                report_action="CREATE",
                summary="User created",
                scope=scope,
            )
        )
        self._publish(HookEvent.ON_USER_AFTER_CREATE, actor_id, user, {"user": user.to_public_dict()})

        logger.info(
            "User created",
            user_id=user.user_id,
            role_id=user.role_id,
            actor_id=actor_id,
            temporary_password=bool(temporary_password),
        )
        return CreatedUser(user=user, temporary_password=temporary_password)

    def update_user(self, user_id: str, updates: Mapping[str, Any], actor_id: str) -> User:
        """Apply field updates to a user.

        Args:
            user_id: Target user.
            updates: Mapping of attribute name to new value. Only
                     UPDATABLE_FIELDS are accepted.
            actor_id: User performing the operation.

        Returns:
            The user after the update.

        Raises:
            NotFoundError: If the user or a new role does not exist.
            PermissionDeniedError: If the actor lacks EDIT_USER on the
                target, or ASSIGN_ROLE when the role changes.
            ValidationError: On unknown or malformed fields.
            ConflictError: On duplicate username/email, or when the change
                would leave no active superuser.
        """
        updates = dict(updates)
        unknown = sorted(set(updates) - UPDATABLE_FIELDS)
        if unknown:
            raise ValidationError(unknown[0], f"Field cannot be updated: {unknown[0]}")

        target = self._get_user(user_id)
        decision = self.evaluator.require(
            actor_id, PermissionKey.EDIT_USER, self._context_for(target)
        )

        new_role = str(updates.get("role_id") or "").strip()
        if "role_id" in updates and new_role and new_role != target.role_id:
            self.evaluator.require(
                actor_id,
                PermissionKey.ASSIGN_ROLE,
                self._context_for(target, new_role_id=new_role),
            )

        self.validator.raise_first(self.validator.validate_updates(updates))
        return self._apply_update(user_id, updates, actor_id, decision.scope)

    def set_user_status(
        self,
        user_id: str,
        active: bool,
        actor_id: str,
        reason: Optional[str] = None,
    ) -> User:
        """Activate or deactivate a user.

        Deactivation stamps Disabled_At/By, clears Last_Login and revokes
        every session of the user. An optional reason is kept as the
        ``Last_Status_Reason`` property.

        Raises:
            NotFoundError: If the user does not exist.
            PermissionDeniedError: If the actor lacks DEACTIVATE_USER on the target.
            ConflictError: If this would deactivate the last active superuser.
        """
        target = self._get_user(user_id)
        decision = self.evaluator.require(
            actor_id, PermissionKey.DEACTIVATE_USER, self._context_for(target)
        )
        user = self._apply_update(user_id, {"is_active": bool(active)}, actor_id, decision.scope)
        if reason:
            self.properties.set(user_id, PropertyKey.LAST_STATUS_REASON, reason, actor_id)
        return user

    def delete_user(
        self,
        user_id: str,
        actor_id: str,
        archive_note: Optional[str] = None,
    ) -> User:
        """Soft-delete a user: deactivate and mark as archived.

        The row is never removed.

        Raises:
            NotFoundError: If the user does not exist.
            PermissionDeniedError: If the actor lacks the configured delete
                permission on the target.
            ConflictError: If the target is the last active superuser.
        """
        target = self._get_user(user_id)
        decision = self.evaluator.require(
            actor_id, self.delete_permission_key, self._context_for(target)
        )

        with self.locks.hold(USERS):
            current = self._get_user(user_id)
            self._guard_last_superuser(current)
            user = self._apply_update(user_id, {"is_active": False}, actor_id, decision.scope)

        self.properties.set(user_id, PropertyKey.IS_ARCHIVED, True, actor_id)
        if archive_note:
            self.properties.set(user_id, PropertyKey.ARCHIVE_NOTE, archive_note, actor_id)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=USERS,
                action="DELETE_USER",
                target_id=user_id,
                details={"soft": True, "archive_note": archive_note},
                report_action="DELETE",
                summary="User archived",
                scope=decision.scope or "GLOBAL",
            )
        )
        self._publish(HookEvent.ON_USER_AFTER_DELETE, actor_id, user, {"user": user.to_public_dict()})
        logger.info("User archived", user_id=user_id, actor_id=actor_id)
        return user

    # ------------------------------------------------------------------
    # Credentials and roles
    # ------------------------------------------------------------------

    def reset_user_password(
        self,
        user_id: str,
        new_password: Optional[str],
        actor_id: str,
    ) -> PasswordReset:
        """Set a new password, generating one when none is supplied.

        The must-change flag is always set.

        Raises:
            NotFoundError: If the user does not exist.
            PermissionDeniedError: If the actor lacks RESET_PASSWORD on the target.
        """
        target = self._get_user(user_id)
        decision = self.evaluator.require(
            actor_id, PermissionKey.RESET_PASSWORD, self._context_for(target)
        )

        # Supplied passwords are hashed exactly as given
        generated = not (new_password or "").strip()
        password = generate_temporary_password(self.temp_password_length) if generated else new_password

        with self.locks.hold(USERS):
            self._get_user(user_id)
            self.users.update(
                user_id,
                {
                    "Password_Hash": hash_password(password),
                    "Updated_At": self.clock.now_iso(),
                    "Updated_By": actor_id,
                },
            )

        self.properties.set(user_id, PropertyKey.MUST_CHANGE, True, actor_id)
        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=USERS,
                action="RESET_PASSWORD",
                target_id=user_id,
                details={"generated": generated},
                report_action="RESET_PASSWORD",
                summary="Password reset issued",
                scope=decision.scope or "GLOBAL",
            )
        )
        self._publish(
            HookEvent.ON_USER_AFTER_PASSWORD_RESET,
            actor_id,
            target,
            {"user_id": user_id, "generated": generated},
        )
        logger.info("Password reset", user_id=user_id, actor_id=actor_id, generated=generated)
        return PasswordReset(user_id=user_id, password=password, generated=generated)

    def assign_role_to_user(
        self,
        user_id: str,
        role_id: str,
        actor_id: str,
        effective_from: Optional[date | datetime | str] = None,
    ) -> User:
        """Assign a role to a user.

        ``effective_from`` is recorded in the audit trail only; the
        assignment always takes effect immediately.

        Raises:
            NotFoundError: If the user or role does not exist.
            PermissionDeniedError: If the actor lacks ASSIGN_ROLE for this
                target and role.
            ConflictError: If this would demote the last active superuser.
        """
        user, previous_role, scope = self._assign_role(user_id, role_id, actor_id)
        effective = _iso_or_none(effective_from)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=USERS,
                action="ASSIGN_ROLE",
                target_id=user_id,
                details={
                    "role_id": user.role_id,
                    "previous_role_id": previous_role,
                    "effective_from": effective,
                },
                report_action="ASSIGN_ROLE",
                summary="Role assignment",
                scope=scope,
            )
        )
        self._publish(
            HookEvent.ON_USER_AFTER_ROLE_ASSIGN,
            actor_id,
            user,
            {"user_id": user_id, "role_id": user.role_id, "previous_role_id": previous_role},
        )
        return user

    def bulk_assign_role(
        self,
        user_ids: Iterable[str] | str,
        role_id: str,
        actor_id: str,
        effective_from: Optional[date | datetime | str] = None,
    ) -> BulkAssignResult:
        """Assign a role to many users independently.

        A failure for one user is recorded in ``errors`` and never rolls
        back or blocks the others.

        Raises:
            NotFoundError: If the role itself does not exist.
        """
        if isinstance(user_ids, str):
            user_ids = [user_ids]
        role_id = (role_id or "").strip()
        if not role_id:
            raise ValidationError("role_id", "Role is required")
        if not self.roles.exists(role_id):
            raise NotFoundError("Role", role_id)

        result = BulkAssignResult(role_id=role_id)
        for user_id in user_ids:
            try:
                self.assign_role_to_user(user_id, role_id, actor_id, effective_from)
            except AccessGuardError as e:
                result.errors.append({"user_id": user_id, "code": e.code, "message": e.message})
                logger.info(
                    "Bulk role assignment skipped user",
                    user_id=user_id,
                    role_id=role_id,
                    code=e.code,
                )
                continue

            self.audit.record(
                AuditEvent(
                    actor_id=actor_id,
                    sheet=USERS,
                    action="BULK_ASSIGN_ROLE",
                    target_id=user_id,
                    details={"role_id": role_id},
                    report_action="BULK_ASSIGN_ROLE",
                    summary="Role assigned in bulk",
                )
            )
            result.updated.append(user_id)

        logger.info(
            "Bulk role assignment finished",
            role_id=role_id,
            updated=len(result.updated),
            failed=len(result.errors),
        )
        return result

    def impersonate_user_session(
        self,
        target_id: str,
        actor_id: str,
        justification: str,
        duration_minutes: Optional[int] = None,
        ip_address: str = "",
    ) -> Session:
        """Open a session acting as another user.

        The requested duration is stored as the session's ``Expires_At``
        and in the audit details; it is honoured by
        ``SessionService.is_session_expired``.

        Raises:
            NotFoundError: If the target does not exist.
            PermissionDeniedError: If the actor lacks IMPERSONATE on the target.
            ValidationError: If the justification is missing, the duration is
                not positive, or the target is inactive.
        """
        target = self._get_user(target_id)
        decision = self.evaluator.require(
            actor_id, PermissionKey.IMPERSONATE, self._context_for(target)
        )
        if not (justification or "").strip():
            raise ValidationError("justification", "A justification is required to impersonate")
        if duration_minutes is not None and int(duration_minutes) <= 0:
            raise ValidationError("duration_minutes", "Duration must be a positive number of minutes")
        if not target.is_active:
            raise ValidationError("user_id", "Cannot impersonate an inactive user")

        session = self.sessions.create_session(
            target.user_id,
            actor_id,
            device=IMPERSONATION_DEVICE,
            ip_address=ip_address,
            impersonated_by=actor_id,
            duration_minutes=int(duration_minutes) if duration_minutes else None,
        )
        self.properties.set(target.user_id, PropertyKey.LAST_IMPERSONATED_BY, actor_id, actor_id)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=USERS,
                action="IMPERSONATE",
                target_id=target.user_id,
                details={
                    "session_id": session.session_id,
                    "justification": justification.strip(),
                    "duration_minutes": duration_minutes,
                    "expires_at": session.expires_at,
                },
                report_action="IMPERSONATE",
                summary="Impersonation session created",
                scope=decision.scope or "GLOBAL",
            )
        )
        self._publish(
            HookEvent.ON_USER_AFTER_IMPERSONATE,
            actor_id,
            target,
            {"user_id": target.user_id, "session_id": session.session_id},
        )
        logger.info(
            "Impersonation session started",
            target_id=target.user_id,
            actor_id=actor_id,
            session_id=session.session_id,
        )
        return session

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    def set_user_property(self, user_id: str, key: str, value: Any, actor_id: str) -> UserProperty:
        """Set a property on a user. Requires EDIT_USER on the target."""
        target = self._get_user(user_id)
        self.evaluator.require(actor_id, PermissionKey.EDIT_USER, self._context_for(target))
        if not (key or "").strip():
            raise ValidationError("key", "Property key is required")
        prop = self.properties.set(user_id, key.strip(), value, actor_id)
        self.audit.log(actor_id, USERS, "SET_USER_PROPERTY", user_id, {"key": prop.key})
        return prop

    def clear_user_property(self, user_id: str, key: str, actor_id: str) -> bool:
        """Blank a property on a user. Requires EDIT_USER on the target."""
        target = self._get_user(user_id)
        self.evaluator.require(actor_id, PermissionKey.EDIT_USER, self._context_for(target))
        cleared = self.properties.clear(user_id, key, actor_id)
        if cleared:
            self.audit.log(actor_id, USERS, "CLEAR_USER_PROPERTY", user_id, {"key": key})
        return cleared

    # ------------------------------------------------------------------
    # Bootstrap
    # ------------------------------------------------------------------

    def has_superuser(self) -> bool:
        """Check whether at least one active superuser exists."""
        return self.users.count_active_with_role(self.superuser_role_id) > 0

    def create_superuser(self, data: Mapping[str, Any]) -> CreatedUser:
        """Create a superuser without an acting user.

        Used to bootstrap an empty store from the command line. The action
        is attributed to SYSTEM.

        Raises:
            ValidationError: If a field is missing or malformed.
            ConflictError: If the username or email is already taken.
        """
        data = dict(data)
        data["role_id"] = self.superuser_role_id
        self.validator.raise_first(self.validator.validate_new_user(data))
        return self._insert_user(data, SYSTEM_ACTOR, Scope.GLOBAL.value)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _assign_role(self, user_id: str, role_id: str, actor_id: str) -> tuple[User, str, str]:
        role_id = (role_id or "").strip()
        if not role_id:
            raise ValidationError("role_id", "Role is required")
        target = self._get_user(user_id)
        decision = self.evaluator.require(
            actor_id,
            PermissionKey.ASSIGN_ROLE,
            self._context_for(target, new_role_id=role_id),
        )
        if not self.roles.exists(role_id):
            raise NotFoundError("Role", role_id)
        user = self._apply_update(user_id, {"role_id": role_id}, actor_id, decision.scope)
        return user, target.role_id, decision.scope or "GLOBAL"

    def _apply_update(
        self,
        user_id: str,
        updates: Mapping[str, Any],
        actor_id: str,
        scope: Optional[str],
    ) -> User:
        """Write updates without permission checks.

        Callers must have authorized the operation already.
        """
        status_change: Optional[str] = None
        revoked = 0

        with self.locks.hold(USERS):
            current = self._get_user(user_id)
            nxt = replace(current)
            now = self.clock.now_iso()

            if "email" in updates:
                email = normalize_email(updates["email"])
                if email != current.email:
                    self._ensure_unique("email", email, exclude_id=user_id)
                    nxt.email = email

            if "username" in updates:
                username = normalize_username(updates["username"])
                if username != current.username:
                    self._ensure_unique("username", username, exclude_id=user_id)
                    nxt.username = username

            if "role_id" in updates:
                role_id = str(updates["role_id"] or "").strip()
                if role_id and role_id != current.role_id:
                    if not self.roles.exists(role_id):
                        raise NotFoundError("Role", role_id)
                    self._guard_last_superuser(current)
                    nxt.role_id = role_id

            if "full_name" in updates:
                nxt.full_name = str(updates["full_name"] or "").strip()
            for name in _TEXT_FIELDS:
                if name in updates:
                    setattr(nxt, name, str(updates[name] or ""))
            if updates.get("mfa_enabled") is not None:
                nxt.mfa_enabled = to_boolean(updates["mfa_enabled"])

            if updates.get("is_active") is not None:
                desired = to_boolean(updates["is_active"])
                if not desired and current.is_active:
                    self._guard_last_superuser(current)
                    nxt.is_active = False
                    nxt.disabled_at = now
                    nxt.disabled_by = actor_id
                    nxt.last_login = None
                    status_change = "DEACTIVATE"
                elif desired and not current.is_active:
                    nxt.is_active = True
                    nxt.disabled_at = None
                    nxt.disabled_by = None
                    status_change = "ACTIVATE"

            before = UserRepository.to_row(current)
            after = UserRepository.to_row(nxt)
            changed = [
                header
                for header in after
                if header not in _STAMP_COLUMNS and to_cell(before[header]) != to_cell(after[header])
            ]
            if not changed:
                return current

            nxt.updated_at = now
            nxt.updated_by = actor_id
            patch = {header: after[header] for header in changed}
            patch.update({"Updated_At": now, "Updated_By": actor_id})
            self.users.update(user_id, patch)

            if status_change == "DEACTIVATE":
                revoked = self.sessions.revoke_user_sessions(user_id, requested_by=actor_id)

        self.audit.record(
            AuditEvent(
                actor_id=actor_id,
                sheet=USERS,
                action="UPDATE_USER",
                target_id=user_id,
                details={"changed_fields": changed},
            )
        )
        if nxt.role_id != current.role_id:
            self.audit.record(
                AuditEvent(
                    actor_id=actor_id,
                    sheet=USERS,
                    action="ROLE_CHANGE",
                    target_id=user_id,
                    details={"from": current.role_id, "to": nxt.role_id},
                )
            )
        if status_change:
            self.audit.record(
                AuditEvent(
                    actor_id=actor_id,
                    sheet=USERS,
                    action=f"{status_change}_USER",
                    target_id=user_id,
                    details={"revoked_sessions": revoked} if status_change == "DEACTIVATE" else {},
                    report_action=status_change,
                    summary="User deactivated" if status_change == "DEACTIVATE" else "User reactivated",
                    scope=scope or "GLOBAL",
                )
            )

        self._publish(
            HookEvent.ON_USER_AFTER_UPDATE,
            actor_id,
            nxt,
            {"user_id": user_id, "changed_fields": changed},
        )
        if status_change:
            self._publish(
                HookEvent.ON_USER_AFTER_STATUS_CHANGE,
                actor_id,
                nxt,
                {"user_id": user_id, "is_active": nxt.is_active},
            )

        logger.info(
            "User updated",
            user_id=user_id,
            actor_id=actor_id,
            changed_fields=changed,
            status_change=status_change,
        )
        return nxt

    def _get_user(self, user_id: str) -> User:
        user = self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundError("User", str(user_id))
        return user

    def _context_for(self, target: User, new_role_id: Optional[str] = None) -> PermissionContext:
        return PermissionContext(
            target_user_id=target.user_id,
            target_department=target.department or None,
            new_role_id=new_role_id,
        )

    def _ensure_unique(self, field_name: str, value: str, exclude_id: Optional[str] = None) -> None:
        existing = (
            self.users.get_by_email(value)
            if field_name == "email"
            else self.users.get_by_username(value)
        )
        if existing is not None and existing.user_id != exclude_id:
            raise ConflictError(f"{field_name.capitalize()} already in use: {value}", field=field_name)

    def _guard_last_superuser(self, user: User) -> None:
        """Reject removing the last active superuser."""
        if not (user.is_active and user.role_id == self.superuser_role_id):
            return
        if self.users.count_active_with_role(self.superuser_role_id) <= 1:
            raise ConflictError(
                f"Cannot remove the last active {self.superuser_role_id} user",
                field="user_id",
            )

    def _publish(self, event: str, actor_id: str, user: User, data: dict[str, Any]) -> None:
        if self.hooks is None:
            return
        self.hooks.trigger(
            event,
            data=data,
            context=HookContext(actor_id=actor_id, occurred_at=self.clock.now_iso()),
            filters={"role_id": user.role_id, "department": user.department},
        )


def _iso_or_none(value: Optional[date | datetime | str]) -> Optional[str]:
    if value is None or value == "":
        return None
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)
