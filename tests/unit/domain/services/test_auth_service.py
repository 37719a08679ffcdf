"""Unit tests for the authentication service."""

from unittest.mock import patch

import pytest

from accessguard.core.hooks import HookEvent
from accessguard.domain.entities.user_property import PropertyKey
from accessguard.domain.exceptions import (
    InvalidCredentials,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from accessguard.domain.services import MANAGER_ROLE
from accessguard.infrastructure.auth import verify_password


class TestLogin:
    """Tests for AuthService.login."""

    def test_success_returns_session_and_snapshot(self, guard, admin) -> None:
        """Test that a valid login returns the sanitized user and a session."""
        result = guard.auth.login("  ADMIN ", "Secret1", device="laptop")

        assert result["current_user"]["user_id"] == admin.user_id
        assert result["current_user"]["must_change_password"] is False
        assert "password_hash" not in result["current_user"]
        assert result["session"]["session_id"].startswith("SES_")
        assert result["session"]["auth_token"]
        assert {role["role_id"] for role in result["roles"]} >= {"Admin", "Basic_User"}
        assert result["permissions"]["IMPERSONATE"] == {"scope": "GLOBAL", "allowed": True}
        assert result["system_overview"]["total_users"] == 1

    def test_success_stamps_last_login_and_audits(self, guard, admin, audit_actions) -> None:
        """Test that Last_Login is written and LOGIN lands in both targets."""
        guard.auth.login("admin", "Secret1")

        assert guard.users.get_by_id(admin.user_id).last_login is not None
        assert "LOGIN" in audit_actions(admin.user_id)
        assert guard.audit.get_report(action="LOGIN")[0].entity_id == admin.user_id

    def test_wrong_password_records_failure(self, guard, admin, audit_actions) -> None:
        """Test that a bad password writes LOGIN_FAILED and opens no session."""
        with pytest.raises(InvalidCredentials):
            guard.auth.login("admin", "wrong")

        entry = guard.audit.get_logs()[0]
        assert entry.action == "LOGIN_FAILED"
        assert entry.actor_id == "SYSTEM"
        assert entry.target_id == "admin"
        assert entry.details == {"reason": "bad_password"}
        assert guard.sessions.list_sessions(admin.user_id, include_revoked=True) == []

    def test_unknown_user_indistinguishable(self, guard, admin) -> None:
        """Test that unknown users get the same error as bad passwords."""
        with pytest.raises(InvalidCredentials) as unknown:
            guard.auth.login("ghost", "whatever")
        with pytest.raises(InvalidCredentials) as wrong:
            guard.auth.login("admin", "whatever")

        assert unknown.value.message == wrong.value.message

    def test_inactive_user_rejected(self, guard, admin, make_user) -> None:
        """Test that deactivated users cannot log in."""
        user = make_user()
        guard.lifecycle.set_user_status(user.user_id, False, admin.user_id)

        with pytest.raises(InvalidCredentials):
            guard.auth.login(user.username, "Passw0rd!")

        assert guard.audit.get_logs()[0].details == {"reason": "inactive_user"}

    def test_user_without_local_credential_rejected(self, guard, admin) -> None:
        """Test that an empty or malformed hash never verifies."""
        user = guard.lifecycle.create_user(
            {
                "full_name": "Federated",
                "username": "sso",
                "email": "sso@example.com",
                "role_id": "Basic_User",
                "password_hash": "external",
            },
            admin.user_id,
        ).user

        with pytest.raises(InvalidCredentials):
            guard.auth.login(user.username, "external")

        assert guard.audit.get_logs()[0].details == {"reason": "no_local_credential"}

    @pytest.mark.parametrize("username,password,field", [("", "x", "username"), ("admin", "", "password")])
    def test_missing_input(self, guard, admin, username, password, field) -> None:
        """Test that empty inputs are validation errors, not failed logins."""
        with pytest.raises(ValidationError) as exc_info:
            guard.auth.login(username, password)

        assert exc_info.value.field == field

    def test_overview_omitted_without_view_users(self, guard, make_user) -> None:
        """Test that basic users get no system overview."""
        user = make_user()

        result = guard.auth.login(user.username, "Passw0rd!")

        assert result["system_overview"] is None
        assert result["permissions"]["VIEW_USERS"] == {"scope": "SELF", "allowed": False}

    def test_overview_failure_does_not_fail_login(self, guard, admin) -> None:
        """Test that an overview error is swallowed and logged."""
        with patch.object(guard.directory, "get_overview", side_effect=RuntimeError("boom")):
            result = guard.auth.login("admin", "Secret1")

        assert result["system_overview"] is None
        assert result["session"]["auth_token"]

    def test_must_change_flag_reported(self, guard, admin, make_user) -> None:
        """Test that a pending reset is surfaced on login."""
        user = make_user()
        reset = guard.lifecycle.reset_user_password(user.user_id, None, admin.user_id)

        result = guard.auth.login(user.username, reset.password)

        assert result["current_user"]["must_change_password"] is True

    def test_listeners_notified(self, guard, admin) -> None:
        """Test login success and failure events."""
        events = []
        for event in (HookEvent.ON_AUTH_AFTER_LOGIN, HookEvent.ON_AUTH_LOGIN_FAILED):
            guard.hooks.register(event, lambda name, data, context: events.append(name))

        guard.auth.login("admin", "Secret1")
        with pytest.raises(InvalidCredentials):
            guard.auth.login("admin", "nope")

        assert events == [HookEvent.ON_AUTH_AFTER_LOGIN, HookEvent.ON_AUTH_LOGIN_FAILED]


class TestSessions:
    """Tests for logout, session resolution and revocation."""

    def test_logout_revokes_token(self, guard, admin) -> None:
        """Test that logout revokes once and then reports False."""
        token = guard.auth.login("admin", "Secret1")["session"]["auth_token"]

        assert guard.auth.resolve_session(token) is not None
        assert guard.auth.logout(token) is True
        assert guard.auth.resolve_session(token) is None
        assert guard.auth.logout(token) is False

    def test_logout_unknown_token(self, guard) -> None:
        """Test that unknown tokens are ignored."""
        assert guard.auth.logout("no-such-token") is False
        assert guard.auth.logout("") is False

    def test_revoke_own_session(self, guard, make_user) -> None:
        """Test that users may always revoke their own sessions."""
        user = make_user()
        session_id = guard.auth.login(user.username, "Passw0rd!")["session"]["session_id"]

        revoked = guard.auth.revoke_session(session_id, user.user_id)

        assert revoked.revoked_by == user.user_id
        assert not revoked.is_active

    def test_revoke_other_session_requires_permission(self, guard, make_user) -> None:
        """Test that revoking another user's session needs DEACTIVATE_USER."""
        user = make_user()
        other = make_user()
        session_id = guard.auth.login(user.username, "Passw0rd!")["session"]["session_id"]

        with pytest.raises(PermissionDeniedError):
            guard.auth.revoke_session(session_id, other.user_id)

    def test_manager_revokes_department_session(self, guard, make_user) -> None:
        """Test that a department manager may revoke a colleague's session."""
        manager = make_user(role_id=MANAGER_ROLE, department="Ops")
        colleague = make_user(department="Ops")
        session_id = guard.auth.login(colleague.username, "Passw0rd!")["session"]["session_id"]

        assert not guard.auth.revoke_session(session_id, manager.user_id).is_active

    def test_revoke_unknown_session(self, guard, admin) -> None:
        """Test that unknown session ids raise NotFoundError."""
        with pytest.raises(NotFoundError):
            guard.auth.revoke_session("SES_99999", admin.user_id)


class TestChangePassword:
    """Tests for AuthService.change_password."""

    def test_changes_and_clears_flag(self, guard, admin, make_user, audit_actions) -> None:
        """Test that a change clears the must-change flag."""
        user = make_user()
        reset = guard.lifecycle.reset_user_password(user.user_id, None, admin.user_id)

        guard.auth.change_password(user.user_id, reset.password, "Better123")

        assert verify_password("Better123", guard.users.get_by_id(user.user_id).password_hash)
        assert not guard.properties.is_true(user.user_id, PropertyKey.MUST_CHANGE)
        assert "CHANGE_PASSWORD" in audit_actions(user.user_id)

    def test_wrong_current_password(self, guard, make_user) -> None:
        """Test that the current password must verify."""
        user = make_user()

        with pytest.raises(InvalidCredentials):
            guard.auth.change_password(user.user_id, "wrong", "Better123")

    @pytest.mark.parametrize("new_password", ["", "Passw0rd!"])
    def test_new_password_rules(self, guard, make_user, new_password) -> None:
        """Test that the new password must be present and different."""
        user = make_user()

        with pytest.raises(ValidationError):
            guard.auth.change_password(user.user_id, "Passw0rd!", new_password)
