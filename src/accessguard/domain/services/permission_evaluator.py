"""Permission evaluator.

Decides whether an actor may perform a permission against an optional
target. Evaluation is fail-closed: anything not explicitly allowed by an
active user's role grant is denied.

Order of evaluation:
1. Missing or inactive actor -> deny
2. Superuser role -> allow (no matrix lookup)
3. Grant lookup for (actor role, permission), seeding defaults first if
   the matrix is empty
4. No grant, or grant not allowed -> deny
5. Scope: GLOBAL allows; LIMITED allows except assigning the superuser
   role; DEPARTMENT compares departments; SELF compares ids; anything
   else denies
"""

from dataclasses import dataclass
from typing import Any, Mapping

from accessguard.core.logging import get_logger
from accessguard.domain.entities.permission import (
    PermissionContext,
    PermissionGrant,
    PermissionKey,
    Scope,
)
from accessguard.domain.entities.user import User
from accessguard.domain.exceptions import PermissionDeniedError
from accessguard.domain.services.permission_seeder import PermissionSeeder
from accessguard.infrastructure.persistence.repositories import (
    RolePermissionRepository,
    UserRepository,
)

logger = get_logger(__name__)


@dataclass
class PermissionDecision:
    """Outcome of a permission evaluation.

    Attributes:
        allowed: Whether the operation is permitted.
        reason: Short machine-readable reason for the outcome.
        scope: Scope of the grant that decided the outcome, if any.
    """

    allowed: bool
    reason: str
    scope: str | None = None

    def __bool__(self) -> bool:
        return self.allowed


def coerce_context(context: PermissionContext | Mapping[str, Any] | None) -> PermissionContext:
    """Build a PermissionContext from a context object, mapping, or None.

    Mappings may use snake_case (``target_user_id``) or camelCase
    (``targetUserId``) keys.
    """
    if context is None:
        return PermissionContext()
    if isinstance(context, PermissionContext):
        return context

    def pick(snake: str, camel: str) -> str | None:
        value = context.get(snake, context.get(camel))
        return str(value) if value not in (None, "") else None

    return PermissionContext(
        target_user_id=pick("target_user_id", "targetUserId"),
        target_department=pick("target_department", "targetDepartment"),
        new_role_id=pick("new_role_id", "newRoleId"),
    )


class PermissionEvaluator:
    """Scope-aware authorization check shared by every mutating operation."""

    def __init__(
        self,
        users: UserRepository,
        grants: RolePermissionRepository,
        seeder: PermissionSeeder,
        superuser_role_id: str = "Admin",
    ) -> None:
        """Initialize the evaluator.

        Args:
            users: Identity store repository.
            grants: Grant matrix repository.
            seeder: Seeder used to populate an empty matrix on first read.
            superuser_role_id: Role that bypasses the matrix.
        """
        self.users = users
        self.grants = grants
        self.seeder = seeder
        self.superuser_role_id = superuser_role_id

    def is_superuser(self, user: User | None) -> bool:
        """Check whether a user is an active holder of the superuser role."""
        return bool(user and user.is_active and user.role_id == self.superuser_role_id)

    def evaluate(
        self,
        actor_id: str,
        permission_key: PermissionKey | str,
        context: PermissionContext | Mapping[str, Any] | None = None,
    ) -> bool:
        """Decide allow/deny for an actor.

        Args:
            actor_id: User performing the operation.
            permission_key: Permission being checked. Unknown keys are
                            allowed only for the superuser.
            context: Optional target information.

        Returns:
            True if the operation is permitted.
        """
        return self.explain(actor_id, permission_key, context).allowed

    def explain(
        self,
        actor_id: str,
        permission_key: PermissionKey | str,
        context: PermissionContext | Mapping[str, Any] | None = None,
    ) -> PermissionDecision:
        """Evaluate and return the decision together with its reason."""
        actor = self.users.get_by_id(actor_id) if actor_id else None
        if actor is None:
            return PermissionDecision(False, "actor_not_found")
        if not actor.is_active:
            return PermissionDecision(False, "actor_inactive")

        if actor.role_id == self.superuser_role_id:
            return PermissionDecision(True, "superuser", Scope.GLOBAL.value)

        key = PermissionKey.parse(permission_key)
        if key is None:
            return PermissionDecision(False, "unknown_permission")

        self.seeder.seed_grants()

        grant = self.grants.get(actor.role_id, key)
        if grant is None:
            return PermissionDecision(False, "no_grant")
        if not grant.allowed:
            return PermissionDecision(False, "grant_denied", self._scope_value(grant))

        return self._apply_scope(actor, key, grant, coerce_context(context))

    def require(
        self,
        actor_id: str,
        permission_key: PermissionKey | str,
        context: PermissionContext | Mapping[str, Any] | None = None,
    ) -> PermissionDecision:
        """Evaluate and raise if denied.

        Returns:
            The allowing decision (its scope is recorded in audit reports).

        Raises:
            PermissionDeniedError: If the evaluator denies the operation.
        """
        decision = self.explain(actor_id, permission_key, context)
        key_name = getattr(permission_key, "value", str(permission_key))
        if not decision.allowed:
            logger.info(
                "Permission denied",
                actor_id=actor_id,
                permission=key_name,
                reason=decision.reason,
            )
            raise PermissionDeniedError(key_name)
        return decision

    def _apply_scope(
        self,
        actor: User,
        key: PermissionKey,
        grant: PermissionGrant,
        context: PermissionContext,
    ) -> PermissionDecision:
        scope = grant.scope

        if scope is Scope.GLOBAL:
            return PermissionDecision(True, "global", scope.value)

        if scope is Scope.LIMITED:
            if key is PermissionKey.ASSIGN_ROLE and context.new_role_id == self.superuser_role_id:
                return PermissionDecision(False, "superuser_assignment", scope.value)
            return PermissionDecision(True, "limited", scope.value)

        if scope is Scope.DEPARTMENT:
            target_department = context.target_department
            if not target_department and context.target_user_id:
                target = self.users.get_by_id(context.target_user_id)
                target_department = target.department if target else None
            actor_department = (actor.department or "").strip()
            if not target_department or not actor_department:
                return PermissionDecision(False, "department_missing", scope.value)
            if str(target_department).strip() != actor_department:
                return PermissionDecision(False, "department_mismatch", scope.value)
            return PermissionDecision(True, "department", scope.value)

        if scope is Scope.SELF:
            if context.target_user_id and context.target_user_id == actor.user_id:
                return PermissionDecision(True, "self", scope.value)
            return PermissionDecision(False, "not_self", scope.value)

        return PermissionDecision(False, "unknown_scope")

    @staticmethod
    def _scope_value(grant: PermissionGrant) -> str | None:
        return grant.scope.value if grant.scope else None
