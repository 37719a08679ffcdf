"""Lifecycle event definitions and categories.

This module defines every event the user lifecycle publishes. Listeners may
only register for events listed here.
"""


class HookCategory:
    """Categories for organizing lifecycle events."""

    USER_OPERATIONS = "user_operations"
    AUTH_OPERATIONS = "auth_operations"
    SESSION_OPERATIONS = "session_operations"


class HookEvent:
    """Lifecycle event names.

    All events fire after the mutation they describe has been written and
    audited. Attributes in format: ON_<CATEGORY>_AFTER_<OPERATION>
    """

    # User Operations
    ON_USER_AFTER_CREATE = "on_user_after_create"
    ON_USER_AFTER_UPDATE = "on_user_after_update"
    ON_USER_AFTER_STATUS_CHANGE = "on_user_after_status_change"
    ON_USER_AFTER_DELETE = "on_user_after_delete"
    ON_USER_AFTER_PASSWORD_RESET = "on_user_after_password_reset"
    ON_USER_AFTER_ROLE_ASSIGN = "on_user_after_role_assign"
    ON_USER_AFTER_IMPERSONATE = "on_user_after_impersonate"

    # Auth Operations
    ON_AUTH_AFTER_LOGIN = "on_auth_after_login"
    ON_AUTH_LOGIN_FAILED = "on_auth_login_failed"

    # Session Operations
    ON_SESSION_AFTER_REVOKE = "on_session_after_revoke"


# Mapping of events to their categories
EVENT_CATEGORIES: dict[str, str] = {
    HookEvent.ON_USER_AFTER_CREATE: HookCategory.USER_OPERATIONS,
    HookEvent.ON_USER_AFTER_UPDATE: HookCategory.USER_OPERATIONS,
    HookEvent.ON_USER_AFTER_STATUS_CHANGE: HookCategory.USER_OPERATIONS,
    HookEvent.ON_USER_AFTER_DELETE: HookCategory.USER_OPERATIONS,
    HookEvent.ON_USER_AFTER_PASSWORD_RESET: HookCategory.USER_OPERATIONS,
    HookEvent.ON_USER_AFTER_ROLE_ASSIGN: HookCategory.USER_OPERATIONS,
    HookEvent.ON_USER_AFTER_IMPERSONATE: HookCategory.USER_OPERATIONS,
    HookEvent.ON_AUTH_AFTER_LOGIN: HookCategory.AUTH_OPERATIONS,
    HookEvent.ON_AUTH_LOGIN_FAILED: HookCategory.AUTH_OPERATIONS,
    HookEvent.ON_SESSION_AFTER_REVOKE: HookCategory.SESSION_OPERATIONS,
}


def get_all_events() -> list[str]:
    """Get all available lifecycle event names."""
    return [
        value
        for name, value in vars(HookEvent).items()
        if not name.startswith("_") and isinstance(value, str)
    ]


def is_known_event(event: str) -> bool:
    """Check if an event name is part of the published event set."""
    return event in EVENT_CATEGORIES
