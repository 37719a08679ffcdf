"""Hook context and result for lifecycle listeners.

Contains the data structures passed to and returned from lifecycle listeners:
- HookContext: Context passed to all listener callbacks
- HookResult: Result of a listener trigger operation
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Optional


@dataclass
class HookContext:
    """Context passed to all listener callbacks.

    Attributes:
        actor_id: The user who performed the operation.
        correlation_id: Correlation ID for logging and tracing.
        occurred_at: ISO-8601 timestamp of the operation.

    Example:
        def on_created(event: str, data: dict, context: HookContext) -> None:
            notify_directory(data["user_id"], requested_by=context.actor_id)
    """

    actor_id: str
    correlation_id: str = ""
    occurred_at: Optional[str] = None

    def __post_init__(self) -> None:
        """Assign a correlation id when none was supplied."""
        if not self.correlation_id:
            self.correlation_id = f"hk_{uuid.uuid4().hex[:12]}"


@dataclass
class HookResult:
    """Result of a listener trigger operation.

    Attributes:
        success: Whether all listeners executed successfully.
        errors: List of error messages from listeners that failed.
        data: Event payload as seen by the last listener.
    """

    success: bool = True
    errors: list[str] = field(default_factory=list)
    data: Optional[dict[str, Any]] = None
