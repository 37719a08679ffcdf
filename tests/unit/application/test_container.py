"""Unit tests for the AccessGuard facade and its response envelopes."""

from unittest.mock import patch

import pytest

from accessguard.application import AccessGuard, OperationResult
from accessguard.core.hooks import HookEvent
from accessguard.infrastructure.persistence import InMemoryTabularStore


def _new_user(**overrides):
    payload = {
        "full_name": "Jane Doe",
        "username": "jdoe",
        "email": "jane@example.com",
        "role_id": "Basic_User",
        "department": "Sales",
    }
    payload.update(overrides)
    return payload


class TestEnvelopes:
    """Tests for success and failure envelopes."""

    def test_success_envelope(self, guard, admin) -> None:
        """Test that a successful operation returns {success, data}."""
        result = guard.create_user(_new_user(), admin.user_id)

        assert isinstance(result, OperationResult)
        assert result.success is True
        assert result.error is None
        assert result.data["user"]["username"] == "jdoe"
        assert "password_hash" not in result.data["user"]
        assert result.data["temporary_password"].startswith("Temp_")

    def test_domain_error_envelope(self, guard, admin) -> None:
        """Test that domain errors become {success: false, error}."""
        guard.create_user(_new_user(), admin.user_id)

        result = guard.create_user(_new_user(username="other"), admin.user_id)

        assert result.to_dict() == {
            "success": False,
            "error": {
                "code": "CONFLICT",
                "message": "Email already in use: jane@example.com",
                "field": "email",
            },
        }

    def test_permission_denied_envelope(self, guard, admin) -> None:
        """Test that denials carry PERMISSION_DENIED."""
        basic = guard.create_user(_new_user(password="Passw0rd!"), admin.user_id).data["user"]

        result = guard.create_user(_new_user(username="x", email="x@example.com"), basic["user_id"])

        assert result.success is False
        assert result.error.code == "PERMISSION_DENIED"

    def test_request_shape_error(self, guard, admin) -> None:
        """Test that malformed payloads are reported as VALIDATION_ERROR."""
        result = guard.create_user({"username": "jdoe"}, admin.user_id)

        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.field == "full_name"

    def test_unknown_update_field_rejected(self, guard, admin) -> None:
        """Test that update payloads may not carry unknown fields."""
        result = guard.update_user(admin.user_id, {"password_hash": "a:b"}, admin.user_id)

        assert result.error.code == "VALIDATION_ERROR"
        assert result.error.field == "password_hash"

    def test_unexpected_error_is_internal(self, guard, admin) -> None:
        """Test that unexpected exceptions are hidden behind INTERNAL_ERROR."""
        with patch.object(guard.directory, "get_overview", side_effect=KeyError("boom")):
            result = guard.get_overview(admin.user_id)

        assert result.to_dict() == {
            "success": False,
            "error": {"code": "INTERNAL_ERROR", "message": "An unexpected error occurred"},
        }

    def test_null_is_active_is_not_a_deactivation(self, guard, admin) -> None:
        """Test that an explicit null in an update payload changes nothing."""
        user_id = guard.create_user(_new_user(password="Passw0rd!"), admin.user_id).data["user"]["user_id"]
        guard.login("jdoe", "Passw0rd!")

        result = guard.update_user(user_id, {"is_active": None, "notes": "hi"}, admin.user_id)

        assert result.success is True
        assert result.data["is_active"] is True
        assert result.data["notes"] == "hi"
        assert len(guard.sessions.list_sessions(user_id)) == 1

    def test_audit_log_failure_does_not_fail_operation(self, guard, admin) -> None:
        """Test that a failed compact log write never masks the mutation."""
        user_id = guard.create_user(_new_user(), admin.user_id).data["user"]["user_id"]

        with patch.object(guard.audit_log_repository, "create", side_effect=OSError("disk full")):
            result = guard.set_user_status(user_id, False, admin.user_id)

        assert result.success is True
        assert guard.users.get_by_id(user_id).is_active is False


class TestOperations:
    """Smoke tests for the facade operations."""

    def test_user_lifecycle_flow(self, guard, admin) -> None:
        """Test create, update, assign, reset, deactivate and delete through the facade."""
        user_id = guard.create_user(_new_user(password="Passw0rd!"), admin.user_id).data["user"]["user_id"]

        assert guard.update_user(user_id, {"job_title": "Analyst"}, admin.user_id).data["job_title"] == "Analyst"
        assert guard.assign_role_to_user(user_id, "Manager", admin.user_id).data["role_id"] == "Manager"
        reset = guard.reset_user_password(user_id, None, admin.user_id).data
        assert reset["generated"] is True
        assert guard.set_user_status(user_id, False, admin.user_id, reason="Leave").data["is_active"] is False
        assert guard.delete_user(user_id, admin.user_id).success

    def test_bulk_assign_reports_partial_failure(self, guard, admin) -> None:
        """Test that bulk assignment succeeds overall with per-user errors."""
        user_id = guard.create_user(_new_user(), admin.user_id).data["user"]["user_id"]

        result = guard.bulk_assign_role([user_id, "USR_99999"], "Manager", admin.user_id)

        assert result.success is True
        assert result.data["updated"] == [user_id]
        assert result.data["errors"][0]["code"] == "NOT_FOUND"

    def test_impersonation_returns_token(self, guard, admin) -> None:
        """Test that the impersonation envelope includes the session token."""
        user_id = guard.create_user(_new_user(), admin.user_id).data["user"]["user_id"]

        result = guard.impersonate_user_session(user_id, admin.user_id, "Ticket 42", duration_minutes=15)

        assert result.data["auth_token"]
        assert result.data["impersonated_by"] == admin.user_id

    def test_login_and_logout(self, guard, admin) -> None:
        """Test the login envelope and logout."""
        result = guard.login("admin", "Secret1")

        assert result.success
        token = result.data["session"]["auth_token"]
        assert guard.logout(token).data == {"revoked": True}

    def test_failed_login_envelope(self, guard, admin) -> None:
        """Test that failed logins return INVALID_CREDENTIALS."""
        result = guard.login("admin", "nope")

        assert result.error.code == "INVALID_CREDENTIALS"

    def test_listing_and_queries(self, guard, admin) -> None:
        """Test the read operations."""
        guard.create_user(_new_user(), admin.user_id)

        assert len(guard.list_users(admin.user_id, department="sales").data) == 1
        assert len(guard.list_roles().data) == 4
        assert len(guard.list_permission_catalog().data) == 10
        assert guard.get_permission_matrix(admin.user_id).data["matrix"]["Admin"]["VIEW_USERS"]
        assert guard.get_audit_logs(admin.user_id, action="CREATE_USER", limit=1).data[0]["action"] == "CREATE_USER"
        assert guard.get_audit_report(admin.user_id, entity="User").success
        assert guard.verify_audit(admin.user_id).data == {"SYS_Audit_Log": None, "SYS_Audit_Report": None}
        assert guard.export_users_directory(admin.user_id).data["rows"]

    def test_role_management(self, guard, admin) -> None:
        """Test creating a role and mapping permissions through the facade."""
        assert guard.create_role({"role_id": "Auditor", "title": "Auditor"}, admin.user_id).success

        grant = guard.set_permission(
            {"role_id": "Auditor", "permission_key": "VIEW_AUDIT", "scope": "GLOBAL"}, admin.user_id
        )

        assert grant.data["permission_key"] == "VIEW_AUDIT"
        assert guard.clone_role_permissions("Manager", "Auditor", admin.user_id).data == {"copied": 3}

    def test_has_permission(self, guard, admin) -> None:
        """Test the non-raising permission check."""
        assert guard.has_permission(admin.user_id, "IMPERSONATE") is True
        assert guard.has_permission("USR_99999", "VIEW_USERS") is False


class TestLifecycle:
    """Tests for opening, closing and wiring the facade."""

    def test_context_manager_seeds(self, settings) -> None:
        """Test that entering the facade opens and seeds the store."""
        with AccessGuard(settings) as guard:
            assert len(guard.roles.list_all()) == 4

    def test_reopen_is_idempotent(self, settings) -> None:
        """Test that a second open seeds nothing new."""
        store = InMemoryTabularStore()
        AccessGuard(settings, store=store).open()

        seeded = AccessGuard(settings, store=store).open()

        assert seeded == {"roles": 0, "permissions": 0, "grants": 0}

    def test_register_listener(self, guard, admin) -> None:
        """Test that listeners registered on the facade observe operations."""
        seen = []
        guard.register_listener(HookEvent.ON_USER_AFTER_CREATE, lambda e, d, c: seen.append(d["user"]["username"]))

        guard.create_user(_new_user(), admin.user_id)

        assert seen == ["jdoe"]

    def test_unknown_listener_event(self, guard) -> None:
        """Test that only published events can be observed."""
        with pytest.raises(ValueError):
            guard.register_listener("on_everything", lambda e, d, c: None)
