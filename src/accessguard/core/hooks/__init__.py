"""Lifecycle listener module.

Listeners observe user lifecycle operations through an explicit registry
instead of being probed for at call time.

Example usage:
    from accessguard.core.hooks import HookEvent, HookRegistry

    registry = HookRegistry()

    def notify_directory(event, data, context):
        directory.sync(data["user_id"])

    registry.register(HookEvent.ON_USER_AFTER_CREATE, notify_directory)
"""

from accessguard.core.hooks.hook_events import (
    EVENT_CATEGORIES,
    HookCategory,
    HookEvent,
    get_all_events,
    is_known_event,
)
from accessguard.core.hooks.hook_registry import (
    HookRegistry,
    LifecycleListener,
    RegisteredHook,
)

__all__ = [
    # Registry
    "HookRegistry",
    "LifecycleListener",
    "RegisteredHook",
    # Events
    "HookCategory",
    "HookEvent",
    "EVENT_CATEGORIES",
    "get_all_events",
    "is_known_event",
]
