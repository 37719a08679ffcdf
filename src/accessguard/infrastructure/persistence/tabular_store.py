"""Tabular store interface and in-memory implementation.

The store is a generic sheet-of-rows abstraction: append, scan, and
update-by-key. It has no transactions; callers serialize read-modify-write
sequences with the LockManager.
"""

import copy
import threading
from typing import Any, Mapping, Protocol, Sequence

from accessguard.core.logging import get_logger
from accessguard.infrastructure.persistence.schema import to_cell

logger = get_logger(__name__)


class UnknownTableError(LookupError):
    """Raised when a table is used before its schema was ensured."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"Table has no schema: {table}")


class TabularStore(Protocol):
    """Minimal row store consumed by every repository."""

    def open(self) -> None:
        """Prepare the store for use."""
        ...

    def close(self) -> None:
        """Flush and release any resources held by the store."""
        ...

    def ensure_schema(self, table: str, headers: Sequence[str]) -> None:
        """Create the table, or add any headers it is missing."""
        ...

    def list_rows(self, table: str) -> list[dict[str, str]]:
        """Return every row of the table in insertion order."""
        ...

    def append_row(self, table: str, record: Mapping[str, Any]) -> None:
        """Append a row. Unknown keys are ignored, missing keys stored empty."""
        ...

    def update_row_by_key(
        self, table: str, key_field: str, key_value: str, patch: Mapping[str, Any]
    ) -> bool:
        """Patch the first row whose key_field equals key_value.

        Returns:
            True if a row was updated, False if no row matched.
        """
        ...


class InMemoryTabularStore:
    """Thread-safe in-process implementation of TabularStore.

    Used by tests and by deployments configured with ``memory://``.
    """

    def __init__(self) -> None:
        self._headers: dict[str, list[str]] = {}
        self._rows: dict[str, list[dict[str, str]]] = {}
        self._lock = threading.RLock()
        self._open = False

    def open(self) -> None:
        self._open = True
        logger.debug("In-memory store opened")

    def close(self) -> None:
        self._open = False
        logger.debug("In-memory store closed", tables=len(self._rows))

    def ensure_schema(self, table: str, headers: Sequence[str]) -> None:
        with self._lock:
            current = self._headers.setdefault(table, [])
            missing = [h for h in headers if h not in current]
            current.extend(missing)
            rows = self._rows.setdefault(table, [])
            for row in rows:
                for header in missing:
                    row.setdefault(header, "")

    def list_rows(self, table: str) -> list[dict[str, str]]:
        with self._lock:
            if table not in self._headers:
                return []
            return [dict(row) for row in self._rows[table]]

    def append_row(self, table: str, record: Mapping[str, Any]) -> None:
        with self._lock:
            headers = self._require(table)
            self._rows[table].append(
                {h: to_cell(record.get(h)) for h in headers}
            )

    def update_row_by_key(
        self, table: str, key_field: str, key_value: str, patch: Mapping[str, Any]
    ) -> bool:
        with self._lock:
            headers = self._require(table)
            for row in self._rows[table]:
                if row.get(key_field) == str(key_value):
                    for header, value in patch.items():
                        if header in headers:
                            row[header] = to_cell(value)
                    return True
            return False

    def snapshot(self) -> dict[str, list[dict[str, str]]]:
        """Return a deep copy of every table, for inspection in tests."""
        with self._lock:
            return copy.deepcopy(self._rows)

    def _require(self, table: str) -> list[str]:
        headers = self._headers.get(table)
        if headers is None:
            raise UnknownTableError(table)
        return headers

