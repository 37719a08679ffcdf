"""Shared plumbing for sheet-backed repositories."""

from typing import Any, Mapping

from accessguard.infrastructure.persistence.schema import SHEET_HEADERS
from accessguard.infrastructure.persistence.tabular_store import TabularStore


class SheetRepository:
    """Base class binding a repository to one sheet of the store.

    Subclasses set ``sheet`` and ``key_field``.
    """

    sheet: str = ""
    key_field: str = ""

    def __init__(self, store: TabularStore) -> None:
        """Initialize the repository.

        Args:
            store: Tabular store backing the sheet.
        """
        self.store = store

    @property
    def headers(self) -> tuple[str, ...]:
        return SHEET_HEADERS[self.sheet]

    def ensure_schema(self) -> None:
        """Create the sheet or add any missing headers."""
        self.store.ensure_schema(self.sheet, self.headers)

    def _rows(self) -> list[dict[str, str]]:
        return self.store.list_rows(self.sheet)

    def _find_row(self, key_value: str) -> dict[str, str] | None:
        for row in self._rows():
            if row.get(self.key_field) == key_value:
                return row
        return None

    def _append(self, row: Mapping[str, Any]) -> None:
        self.store.append_row(self.sheet, row)

    def _update(self, key_value: str, patch: Mapping[str, Any]) -> bool:
        return self.store.update_row_by_key(self.sheet, self.key_field, key_value, patch)

    def count_all(self) -> int:
        """Count the rows in the sheet."""
        return len(self._rows())
