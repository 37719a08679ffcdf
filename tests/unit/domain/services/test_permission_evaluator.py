"""Unit tests for the permission evaluator.

Tests cover:
- Superuser bypass, including unknown permission keys
- Fail-closed behaviour for missing and inactive actors
- DEPARTMENT, SELF and LIMITED scope rules
- Unknown scope values and denied grants
- Implicit seeding of an empty grant matrix
"""

import pytest

from accessguard.domain.entities.permission import PermissionContext, PermissionKey, Scope
from accessguard.domain.exceptions import PermissionDeniedError
from accessguard.domain.services import (
    BASIC_USER_ROLE,
    HR_MANAGER_ROLE,
    MANAGER_ROLE,
    coerce_context,
)
from accessguard.infrastructure.persistence.schema import ROLE_PERMISSIONS


class TestSuperuserBypass:
    """Tests for the superuser role."""

    @pytest.mark.parametrize("key", list(PermissionKey))
    def test_superuser_allowed_for_every_key(self, guard, admin, key) -> None:
        """Test that the superuser passes every known permission."""
        assert guard.evaluator.evaluate(admin.user_id, key) is True

    def test_superuser_allowed_for_unknown_key(self, guard, admin) -> None:
        """Test that the superuser passes keys that are not in the enum."""
        assert guard.evaluator.evaluate(admin.user_id, "APPROVE_INVOICE") is True

    def test_superuser_bypasses_corrupted_matrix(self, guard, admin) -> None:
        """Test that a denying Admin row in the matrix is ignored."""
        guard.store.append_row(
            ROLE_PERMISSIONS,
            {
                "Grant_Id": f"Admin::{PermissionKey.EDIT_USER.value}",
                "Role_Id": "Admin",
                "Permission_Key": "EDIT_USER",
                "Scope": "GLOBAL",
                "Allowed": "FALSE",
            },
        )
        assert guard.evaluator.evaluate(admin.user_id, PermissionKey.EDIT_USER) is True

    def test_inactive_superuser_denied(self, guard, admin, make_user) -> None:
        """Test that an inactive superuser is denied like anyone else."""
        second = make_user(role_id="Admin")
        guard.lifecycle.set_user_status(second.user_id, False, admin.user_id)

        assert guard.evaluator.evaluate(second.user_id, PermissionKey.VIEW_USERS) is False
        assert guard.evaluator.evaluate(second.user_id, "APPROVE_INVOICE") is False


class TestFailClosed:
    """Tests for actors that cannot be resolved or are inactive."""

    def test_unknown_actor_denied(self, guard, admin) -> None:
        """Test that an unknown actor id is denied."""
        decision = guard.evaluator.explain("USR_99999", PermissionKey.VIEW_USERS)

        assert decision.allowed is False
        assert decision.reason == "actor_not_found"

    def test_empty_actor_denied(self, guard, admin) -> None:
        """Test that an empty actor id is denied."""
        assert guard.evaluator.evaluate("", PermissionKey.VIEW_USERS) is False

    @pytest.mark.parametrize("role_id", [HR_MANAGER_ROLE, MANAGER_ROLE, BASIC_USER_ROLE])
    def test_inactive_user_denied_regardless_of_role(self, guard, admin, make_user, role_id) -> None:
        """Test that inactive users are denied even for GLOBAL grants."""
        user = make_user(role_id=role_id, department="Sales")
        guard.lifecycle.set_user_status(user.user_id, False, admin.user_id)

        for key in PermissionKey:
            assert guard.evaluator.evaluate(
                user.user_id, key, {"target_user_id": user.user_id, "target_department": "Sales"}
            ) is False

    def test_no_grant_denied(self, guard, make_user) -> None:
        """Test that a permission absent from the role's grants is denied."""
        manager = make_user(role_id=MANAGER_ROLE, department="Sales")

        decision = guard.evaluator.explain(manager.user_id, PermissionKey.CREATE_USER)

        assert decision.allowed is False
        assert decision.reason == "no_grant"

    def test_denied_grant(self, guard, make_user) -> None:
        """Test that a grant with allowed=False denies even on the SELF target."""
        basic = make_user()

        decision = guard.evaluator.explain(
            basic.user_id, PermissionKey.VIEW_USERS, {"target_user_id": basic.user_id}
        )

        assert decision.allowed is False
        assert decision.reason == "grant_denied"

    def test_unknown_key_denied_for_non_superuser(self, guard, make_user) -> None:
        """Test that unknown keys are denied for regular roles."""
        hr = make_user(role_id=HR_MANAGER_ROLE)

        assert guard.evaluator.evaluate(hr.user_id, "APPROVE_INVOICE") is False

    def test_unknown_scope_denied(self, guard, make_user) -> None:
        """Test that an unrecognised stored scope fails closed."""
        hr = make_user(role_id=HR_MANAGER_ROLE)
        guard.store.append_row(
            ROLE_PERMISSIONS,
            {
                "Grant_Id": f"{HR_MANAGER_ROLE}::VIEW_USERS",
                "Role_Id": HR_MANAGER_ROLE,
                "Permission_Key": "VIEW_USERS",
                "Scope": "PLANET",
                "Allowed": "TRUE",
            },
        )

        decision = guard.evaluator.explain(hr.user_id, PermissionKey.VIEW_USERS)

        assert decision.allowed is False
        assert decision.reason == "unknown_scope"


class TestDepartmentScope:
    """Tests for DEPARTMENT-scoped grants."""

    def test_same_department_allowed(self, guard, make_user) -> None:
        """Test that the actor's own department is allowed."""
        manager = make_user(role_id=MANAGER_ROLE, department="Sales")

        assert guard.evaluator.evaluate(
            manager.user_id, PermissionKey.EDIT_USER, {"targetDepartment": "Sales"}
        ) is True

    def test_other_department_denied(self, guard, make_user) -> None:
        """Test that another department is denied."""
        manager = make_user(role_id=MANAGER_ROLE, department="Sales")

        assert guard.evaluator.evaluate(
            manager.user_id, PermissionKey.EDIT_USER, {"targetDepartment": "Operations"}
        ) is False

    def test_missing_department_denied(self, guard, make_user) -> None:
        """Test that a check without any target department is denied."""
        manager = make_user(role_id=MANAGER_ROLE, department="Sales")

        assert guard.evaluator.evaluate(manager.user_id, PermissionKey.EDIT_USER) is False

    def test_department_resolved_from_target_user(self, guard, make_user) -> None:
        """Test that the target user's department is used when none is given."""
        manager = make_user(role_id=MANAGER_ROLE, department="Sales")
        colleague = make_user(department="Sales")
        outsider = make_user(department="Finance")

        assert guard.evaluator.evaluate(
            manager.user_id, PermissionKey.EDIT_USER, {"target_user_id": colleague.user_id}
        ) is True
        assert guard.evaluator.evaluate(
            manager.user_id, PermissionKey.EDIT_USER, {"target_user_id": outsider.user_id}
        ) is False

    def test_explicit_department_takes_precedence(self, guard, make_user) -> None:
        """Test that targetDepartment wins over the target user's department."""
        manager = make_user(role_id=MANAGER_ROLE, department="Sales")
        outsider = make_user(department="Finance")

        context = PermissionContext(target_user_id=outsider.user_id, target_department="Sales")
        assert guard.evaluator.evaluate(manager.user_id, PermissionKey.EDIT_USER, context) is True

    def test_actor_without_department_denied(self, guard, make_user) -> None:
        """Test that a manager with no department is denied."""
        manager = make_user(role_id=MANAGER_ROLE, department="")

        assert guard.evaluator.evaluate(
            manager.user_id, PermissionKey.EDIT_USER, {"targetDepartment": ""}
        ) is False


class TestSelfScope:
    """Tests for SELF-scoped grants."""

    @pytest.fixture
    def self_viewer(self, guard, admin, make_user):
        guard.role_service.set_permission(
            BASIC_USER_ROLE, PermissionKey.VIEW_USERS, admin.user_id, scope=Scope.SELF
        )
        return make_user()

    def test_self_target_allowed(self, guard, self_viewer) -> None:
        """Test that the actor may act on itself."""
        assert guard.evaluator.evaluate(
            self_viewer.user_id, PermissionKey.VIEW_USERS, {"targetUserId": self_viewer.user_id}
        ) is True

    def test_other_target_denied(self, guard, self_viewer, admin) -> None:
        """Test that another user is denied."""
        assert guard.evaluator.evaluate(
            self_viewer.user_id, PermissionKey.VIEW_USERS, {"target_user_id": admin.user_id}
        ) is False

    def test_missing_target_denied(self, guard, self_viewer) -> None:
        """Test that a SELF check without a target is denied."""
        assert guard.evaluator.evaluate(self_viewer.user_id, PermissionKey.VIEW_USERS) is False


class TestLimitedScope:
    """Tests for LIMITED grants and the superuser-assignment carve-out."""

    def test_limited_assign_regular_role_allowed(self, guard, make_user) -> None:
        """Test that LIMITED ASSIGN_ROLE allows non-superuser roles."""
        hr = make_user(role_id=HR_MANAGER_ROLE)

        assert guard.evaluator.evaluate(
            hr.user_id, PermissionKey.ASSIGN_ROLE, {"newRoleId": MANAGER_ROLE}
        ) is True

    def test_limited_assign_superuser_denied(self, guard, make_user) -> None:
        """Test that LIMITED ASSIGN_ROLE cannot hand out the superuser role."""
        hr = make_user(role_id=HR_MANAGER_ROLE)

        decision = guard.evaluator.explain(
            hr.user_id, PermissionKey.ASSIGN_ROLE, {"newRoleId": "Admin"}
        )

        assert decision.allowed is False
        assert decision.reason == "superuser_assignment"

    def test_global_assign_superuser_allowed(self, guard, admin, make_user) -> None:
        """Test that a GLOBAL ASSIGN_ROLE grant may assign the superuser role."""
        guard.role_service.set_permission(
            HR_MANAGER_ROLE, PermissionKey.ASSIGN_ROLE, admin.user_id, scope=Scope.GLOBAL
        )
        hr = make_user(role_id=HR_MANAGER_ROLE)

        assert guard.evaluator.evaluate(
            hr.user_id, PermissionKey.ASSIGN_ROLE, {"new_role_id": "Admin"}
        ) is True

    def test_limited_other_permission_allowed(self, guard, make_user) -> None:
        """Test that LIMITED grants allow keys other than ASSIGN_ROLE."""
        hr = make_user(role_id=HR_MANAGER_ROLE)

        assert guard.evaluator.evaluate(hr.user_id, PermissionKey.VIEW_AUDIT) is True


class TestRequire:
    """Tests for require()."""

    def test_require_returns_decision(self, guard, make_user) -> None:
        """Test that require() returns the allowing decision with its scope."""
        hr = make_user(role_id=HR_MANAGER_ROLE)

        decision = guard.evaluator.require(hr.user_id, PermissionKey.CREATE_USER)

        assert decision
        assert decision.scope == "GLOBAL"

    def test_require_raises_on_deny(self, guard, make_user) -> None:
        """Test that require() raises PermissionDeniedError with the key."""
        basic = make_user()

        with pytest.raises(PermissionDeniedError) as exc_info:
            guard.evaluator.require(basic.user_id, PermissionKey.EXPORT_USERS)

        assert exc_info.value.permission_key == "EXPORT_USERS"
        assert exc_info.value.code == "PERMISSION_DENIED"


class TestImplicitSeeding:
    """Tests for seeding on first read of an empty matrix."""

    def test_first_evaluation_seeds_empty_matrix(self, settings) -> None:
        """Test that evaluating against an empty matrix writes the defaults."""
        from accessguard.application import AccessGuard

        guard = AccessGuard(settings)
        guard.open(seed=False)
        guard.seeder.seed_roles()
        admin = guard.lifecycle.create_superuser(
            {"full_name": "Root", "username": "root", "email": "root@example.com", "password": "x1"}
        ).user
        hr = guard.lifecycle.create_user(
            {
                "full_name": "Helen",
                "username": "helen",
                "email": "helen@example.com",
                "role_id": HR_MANAGER_ROLE,
                "password": "x2",
            },
            admin.user_id,
        ).user
        # Superuser checks never touch the matrix
        assert guard.grants.is_empty()

        assert guard.evaluator.evaluate(hr.user_id, PermissionKey.VIEW_USERS) is True
        assert not guard.grants.is_empty()
        guard.close()


class TestCoerceContext:
    """Tests for context coercion."""

    def test_none_gives_empty_context(self) -> None:
        assert coerce_context(None) == PermissionContext()

    def test_camel_case_keys(self) -> None:
        context = coerce_context(
            {"targetUserId": "USR_00001", "targetDepartment": "Sales", "newRoleId": "Admin"}
        )
        assert context.target_user_id == "USR_00001"
        assert context.target_department == "Sales"
        assert context.new_role_id == "Admin"

    def test_blank_values_become_none(self) -> None:
        context = coerce_context({"target_user_id": "", "target_department": None})
        assert context.target_user_id is None
        assert context.target_department is None
