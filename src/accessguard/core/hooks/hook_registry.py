"""Hook registry - lifecycle listener registration and dispatch.

The HookRegistry replaces ad-hoc "call it if it exists" callbacks with an
explicit observer interface:
- Registration of listeners for a closed set of events
- Execution of listeners in priority order
- Tag-based filtering (e.g. only users of a given role)
- Error handling and logging

Listeners are registered at startup and run synchronously after the
mutation they observe has been committed and audited.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from accessguard.core.hooks.hook_events import is_known_event
from accessguard.core.logging import get_logger
from accessguard.domain.entities.hook_context import HookContext, HookResult

logger = get_logger(__name__)


class LifecycleListener(Protocol):
    """Callable signature every listener must satisfy."""

    def __call__(self, event: str, data: dict[str, Any], context: HookContext) -> Any: ...


@dataclass
class RegisteredHook:
    """Internal representation of a registered listener.

    Attributes:
        id: Unique identifier for this registration.
        event: The event this listener is registered for.
        callback: The function to call.
        filters: Tag-based filters (e.g., {"role_id": "Admin"}).
        priority: Execution priority (higher = earlier).
        stop_on_error: Whether errors should stop the remaining listeners.
        is_builtin: Whether this is a built-in system listener.
        registration_order: Order in which this listener was registered.
    """

    id: str
    event: str
    callback: LifecycleListener
    filters: dict[str, Any] = field(default_factory=dict)
    priority: int = 0
    stop_on_error: bool = False
    is_builtin: bool = False
    registration_order: int = 0


class HookRegistry:
    """Central listener registration and dispatch engine.

    Example:
        registry = HookRegistry()

        hook_id = registry.register(
            event=HookEvent.ON_USER_AFTER_CREATE,
            callback=provision_mailbox,
            filters={"department": "Finance"},
            priority=10,
        )

        registry.trigger(
            event=HookEvent.ON_USER_AFTER_CREATE,
            data={"user_id": "USR_00001", "department": "Finance"},
            context=HookContext(actor_id="USR_00002"),
        )

        registry.unregister(hook_id)
    """

    def __init__(self) -> None:
        """Initialize the hook registry."""
        self._hooks: dict[str, list[RegisteredHook]] = {}
        self._registration_counter: int = 0
        self._hook_map: dict[str, RegisteredHook] = {}  # hook_id -> hook

    def register(
        self,
        event: str,
        callback: LifecycleListener,
        filters: Optional[dict[str, Any]] = None,
        priority: int = 0,
        stop_on_error: bool = False,
        is_builtin: bool = False,
    ) -> str:
        """Register a listener for an event.

        Args:
            event: Lifecycle event name (see HookEvent).
            callback: Function accepting (event, data, context).
            filters: Optional tag-based filters. The listener only fires if
                     every filter key matches the trigger filters.
            priority: Execution priority. Higher priority listeners run first.
            stop_on_error: If True, an error in this listener stops the
                           remaining listeners for this trigger.
            is_builtin: If True, this listener cannot be unregistered.

        Returns:
            Unique hook_id string for later removal.

        Raises:
            ValueError: If the event is not a published lifecycle event or
                        the callback is not callable.
        """
        if not is_known_event(event):
            raise ValueError(f"Unknown lifecycle event: {event}")
        if not callable(callback):
            raise ValueError("Listener callback must be callable")

        hook_id = f"hook_{uuid.uuid4().hex[:12]}"

        # Increment registration counter for FIFO ordering within same priority
        self._registration_counter += 1

        hook = RegisteredHook(
            id=hook_id,
            event=event,
            callback=callback,
            filters=filters or {},
            priority=priority,
            stop_on_error=stop_on_error,
            is_builtin=is_builtin,
            registration_order=self._registration_counter,
        )

        self._hooks.setdefault(event, []).append(hook)
        self._hook_map[hook_id] = hook

        logger.debug(
            "Listener registered",
            hook_id=hook_id,
            hook_event=event,
            priority=priority,
            filters=filters,
            is_builtin=is_builtin,
        )

        return hook_id

    def unregister(self, hook_id: str) -> bool:
        """Remove a registered listener.

        Args:
            hook_id: The unique ID returned from register().

        Returns:
            True if the listener was removed, False if not found or built-in.
        """
        hook = self._hook_map.get(hook_id)
        if not hook:
            logger.warning("Listener not found for unregister", hook_id=hook_id)
            return False

        if hook.is_builtin:
            logger.warning(
                "Cannot unregister built-in listener",
                hook_id=hook_id,
                hook_event=hook.event,
            )
            return False

        self._hooks[hook.event] = [h for h in self._hooks[hook.event] if h.id != hook_id]
        if not self._hooks[hook.event]:
            del self._hooks[hook.event]

        del self._hook_map[hook_id]

        logger.debug("Listener unregistered", hook_id=hook_id, hook_event=hook.event)

        return True

    def trigger(
        self,
        event: str,
        data: Optional[dict[str, Any]] = None,
        context: Optional[HookContext] = None,
        filters: Optional[dict[str, Any]] = None,
    ) -> HookResult:
        """Execute all registered listeners for an event.

        Listeners run in priority order (higher first), then registration
        order. A failing listener is logged and recorded in the result; the
        remaining listeners still run unless it was registered with
        ``stop_on_error``. Listener failures are never raised to the caller.

        Args:
            event: Lifecycle event name.
            data: Event payload.
            context: HookContext with actor and correlation info.
            filters: Trigger-time filters.

        Returns:
            HookResult with success status and any errors.
        """
        result = HookResult(success=True, data=data)

        matching_hooks = self._filter_hooks(self._hooks.get(event, []), filters)
        if not matching_hooks:
            return result

        sorted_hooks = sorted(
            matching_hooks,
            key=lambda h: (-h.priority, h.registration_order),
        )

        logger.debug(
            "Triggering listeners",
            hook_event=event,
            hook_count=len(sorted_hooks),
            filters=filters,
        )

        payload = dict(data or {})
        for hook in sorted_hooks:
            try:
                hook.callback(event, payload, context)
            except Exception as e:
                error_msg = f"Listener {hook.id} failed: {str(e)}"
                logger.error(
                    "Listener execution failed",
                    hook_id=hook.id,
                    hook_event=event,
                    error=str(e),
                    stop_on_error=hook.stop_on_error,
                )
                result.errors.append(error_msg)
                result.success = False

                if hook.stop_on_error:
                    return result

        return result

    def _filter_hooks(
        self,
        hooks: list[RegisteredHook],
        filters: Optional[dict[str, Any]],
    ) -> list[RegisteredHook]:
        """Filter listeners based on trigger filters.

        A listener matches if it has no filters, or if every one of its
        filter keys is present in the trigger filters with an equal value.
        """
        matching = []
        for hook in hooks:
            if not hook.filters:
                matching.append(hook)
                continue
            if not filters:
                continue
            if all(
                filters.get(key) is not None and filters.get(key) == value
                for key, value in hook.filters.items()
            ):
                matching.append(hook)

        return matching

    def get_hooks_for_event(self, event: str) -> list[RegisteredHook]:
        """Get all listeners registered for an event."""
        return self._hooks.get(event, []).copy()

    def get_hook_by_id(self, hook_id: str) -> Optional[RegisteredHook]:
        """Get a listener by its ID."""
        return self._hook_map.get(hook_id)

    def clear(self, include_builtin: bool = False) -> int:
        """Remove all registered listeners.

        Args:
            include_builtin: If True, also remove built-in listeners.

        Returns:
            Number of listeners removed.
        """
        if include_builtin:
            count = len(self._hook_map)
            self._hooks.clear()
            self._hook_map.clear()
        else:
            to_remove = [
                hook_id for hook_id, hook in self._hook_map.items() if not hook.is_builtin
            ]
            for hook_id in to_remove:
                self.unregister(hook_id)
            count = len(to_remove)

        logger.debug("Listeners cleared", count=count, include_builtin=include_builtin)
        return count
