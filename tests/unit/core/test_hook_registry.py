"""Unit tests for the lifecycle listener registry.

Tests cover:
- Listener registration and unregistration
- Priority ordering
- Tag-based filtering
- Error isolation and stop_on_error
"""

import pytest

from accessguard.core.hooks import (
    EVENT_CATEGORIES,
    HookCategory,
    HookEvent,
    HookRegistry,
    get_all_events,
)
from accessguard.domain.entities.hook_context import HookContext


def _context() -> HookContext:
    return HookContext(actor_id="USR_00001")


class TestRegistration:
    """Tests for register() and unregister()."""

    def test_register_returns_unique_id(self) -> None:
        """Test that register() returns unique hook ids."""
        registry = HookRegistry()

        ids = {registry.register(HookEvent.ON_USER_AFTER_CREATE, lambda e, d, c: None) for _ in range(5)}

        assert len(ids) == 5
        assert all(hook_id.startswith("hook_") for hook_id in ids)

    def test_unknown_event_rejected(self) -> None:
        """Test that listeners can only subscribe to published events."""
        registry = HookRegistry()

        with pytest.raises(ValueError, match="Unknown lifecycle event"):
            registry.register("on_user_before_create", lambda e, d, c: None)

    def test_non_callable_rejected(self) -> None:
        """Test that the callback must be callable."""
        registry = HookRegistry()

        with pytest.raises(ValueError):
            registry.register(HookEvent.ON_USER_AFTER_CREATE, "not callable")

    def test_unregister(self) -> None:
        """Test that unregistered listeners stop firing."""
        registry = HookRegistry()
        calls = []
        hook_id = registry.register(HookEvent.ON_USER_AFTER_CREATE, lambda e, d, c: calls.append(e))

        assert registry.unregister(hook_id) is True
        registry.trigger(HookEvent.ON_USER_AFTER_CREATE, {}, _context())

        assert calls == []
        assert registry.unregister(hook_id) is False

    def test_builtin_cannot_be_unregistered(self) -> None:
        """Test that built-in listeners survive unregister() and clear()."""
        registry = HookRegistry()
        hook_id = registry.register(HookEvent.ON_USER_AFTER_CREATE, lambda e, d, c: None, is_builtin=True)
        registry.register(HookEvent.ON_USER_AFTER_CREATE, lambda e, d, c: None)

        assert registry.unregister(hook_id) is False
        assert registry.clear() == 1
        assert registry.get_hook_by_id(hook_id) is not None
        assert registry.clear(include_builtin=True) == 1


class TestTrigger:
    """Tests for trigger()."""

    def test_priority_then_registration_order(self) -> None:
        """Test that higher priority runs first, FIFO within a priority."""
        registry = HookRegistry()
        order = []
        registry.register(HookEvent.ON_USER_AFTER_UPDATE, lambda e, d, c: order.append("low"))
        registry.register(HookEvent.ON_USER_AFTER_UPDATE, lambda e, d, c: order.append("high"), priority=10)
        registry.register(HookEvent.ON_USER_AFTER_UPDATE, lambda e, d, c: order.append("low2"))

        registry.trigger(HookEvent.ON_USER_AFTER_UPDATE, {}, _context())

        assert order == ["high", "low", "low2"]

    def test_filters(self) -> None:
        """Test that filtered listeners only fire on matching triggers."""
        registry = HookRegistry()
        calls = []
        registry.register(
            HookEvent.ON_USER_AFTER_CREATE,
            lambda e, d, c: calls.append(d["user_id"]),
            filters={"department": "Finance"},
        )

        registry.trigger(HookEvent.ON_USER_AFTER_CREATE, {"user_id": "A"}, _context(), filters={"department": "Sales"})
        registry.trigger(HookEvent.ON_USER_AFTER_CREATE, {"user_id": "B"}, _context())
        registry.trigger(HookEvent.ON_USER_AFTER_CREATE, {"user_id": "C"}, _context(), filters={"department": "Finance"})

        assert calls == ["C"]

    def test_errors_are_isolated(self) -> None:
        """Test that one failing listener does not stop the others or raise."""
        registry = HookRegistry()
        calls = []

        def broken(event, data, context):
            raise RuntimeError("down")

        registry.register(HookEvent.ON_USER_AFTER_DELETE, broken, priority=5)
        registry.register(HookEvent.ON_USER_AFTER_DELETE, lambda e, d, c: calls.append("ran"))

        result = registry.trigger(HookEvent.ON_USER_AFTER_DELETE, {}, _context())

        assert result.success is False
        assert len(result.errors) == 1
        assert calls == ["ran"]

    def test_stop_on_error(self) -> None:
        """Test that stop_on_error halts the remaining listeners."""
        registry = HookRegistry()
        calls = []

        def broken(event, data, context):
            raise RuntimeError("down")

        registry.register(HookEvent.ON_USER_AFTER_DELETE, broken, priority=5, stop_on_error=True)
        registry.register(HookEvent.ON_USER_AFTER_DELETE, lambda e, d, c: calls.append("ran"))

        registry.trigger(HookEvent.ON_USER_AFTER_DELETE, {}, _context())

        assert calls == []

    def test_listener_cannot_mutate_caller_payload(self) -> None:
        """Test that listeners receive a copy of the event data."""
        registry = HookRegistry()
        registry.register(HookEvent.ON_USER_AFTER_CREATE, lambda e, d, c: d.update(user_id="X"))
        data = {"user_id": "USR_00002"}

        registry.trigger(HookEvent.ON_USER_AFTER_CREATE, data, _context())

        assert data == {"user_id": "USR_00002"}

    def test_context_gets_correlation_id(self) -> None:
        """Test that a HookContext always carries a correlation id."""
        assert _context().correlation_id.startswith("hk_")


def test_every_event_is_categorized():
    """Test that the published event set and the category map agree."""
    assert set(get_all_events()) == set(EVENT_CATEGORIES)
    assert EVENT_CATEGORIES[HookEvent.ON_AUTH_LOGIN_FAILED] == HookCategory.AUTH_OPERATIONS
