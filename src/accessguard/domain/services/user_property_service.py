"""User property service.

Stores per-user flags such as the must-change-password marker. Writes are
serialized under the SYS_User_Properties lock.
"""

from accessguard.core.clock import Clock
from accessguard.domain.entities.user_property import PropertyKey, UserProperty
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.repositories import UserPropertyRepository
from accessguard.infrastructure.persistence.schema import (
    SYSTEM_ACTOR,
    USER_PROPERTIES,
    to_boolean,
    to_cell,
)


class UserPropertyService:
    """Service for user property reads and writes."""

    def __init__(self, properties: UserPropertyRepository, locks: LockManager, clock: Clock) -> None:
        self.properties = properties
        self.locks = locks
        self.clock = clock

    def set(self, user_id: str, key: str, value: object, actor_id: str = SYSTEM_ACTOR) -> UserProperty:
        """Create or overwrite a property value."""
        with self.locks.hold(USER_PROPERTIES):
            return self.properties.upsert(
                user_id, key, to_cell(value), actor_id, self.clock.now_iso()
            )

    def clear(self, user_id: str, key: str, actor_id: str = SYSTEM_ACTOR) -> bool:
        """Blank a property value.

        Returns:
            False if the property was never set.
        """
        with self.locks.hold(USER_PROPERTIES):
            if self.properties.get(user_id, key) is None:
                return False
            self.properties.upsert(user_id, key, "", actor_id, self.clock.now_iso())
            return True

    def get(self, user_id: str, key: str) -> str | None:
        """Get a property value, or None if unset or blank."""
        prop = self.properties.get(user_id, key)
        return prop.value if prop and prop.value != "" else None

    def is_true(self, user_id: str, key: str) -> bool:
        """Interpret a property as a boolean flag."""
        return to_boolean(self.get(user_id, key))

    def list_for_user(self, user_id: str) -> list[UserProperty]:
        """List every property set on a user."""
        return self.properties.list_for_user(user_id)

    def count_pending_password_resets(self) -> int:
        """Count users whose must-change flag is set."""
        return sum(
            1 for prop in self.properties.list_by_key(PropertyKey.MUST_CHANGE) if to_boolean(prop.value)
        )
