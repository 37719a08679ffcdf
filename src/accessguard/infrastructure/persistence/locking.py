"""Named write locks with a bounded wait.

The backing store has no row-level transactions, so every
read-current-rows / compute / write-back sequence runs while holding the lock
named after the sheet it mutates.
"""

import threading
import time
from contextlib import contextmanager
from typing import Iterator

from accessguard.core.logging import get_logger
from accessguard.domain.exceptions import StoreTimeoutError

logger = get_logger(__name__)


class LockManager:
    """Registry of per-resource re-entrant locks.

    Locks are re-entrant so that an operation holding ``SYS_Users`` can call
    a helper that takes the same lock (e.g. status toggle inside delete).
    """

    def __init__(self, timeout_seconds: float = 5.0) -> None:
        """Initialize the lock manager.

        Args:
            timeout_seconds: Default bound on how long ``hold`` waits.
        """
        self.timeout_seconds = timeout_seconds
        self._locks: dict[str, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def _get(self, resource: str) -> threading.RLock:
        with self._registry_lock:
            lock = self._locks.get(resource)
            if lock is None:
                lock = threading.RLock()
                self._locks[resource] = lock
            return lock

    @contextmanager
    def hold(self, resource: str, timeout: float | None = None) -> Iterator[None]:
        """Hold the named lock for the duration of the block.

        Args:
            resource: Lock name, normally a sheet name.
            timeout: Override for the default wait bound, in seconds.

        Raises:
            StoreTimeoutError: If the lock is not acquired within the bound.
        """
        wait = self.timeout_seconds if timeout is None else timeout
        lock = self._get(resource)
        started = time.monotonic()
        if not lock.acquire(timeout=wait):
            logger.warning("Lock acquisition timed out", resource=resource, timeout=wait)
            raise StoreTimeoutError(resource, wait)
        logger.debug(
            "Lock acquired",
            resource=resource,
            waited_ms=round((time.monotonic() - started) * 1000, 2),
        )
        try:
            yield
        finally:
            lock.release()
