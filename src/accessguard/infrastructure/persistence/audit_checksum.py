"""Audit checksum utility.

Every audit row, in both the compact log and the report, carries the
checksum of the row before it. Changing or removing any row breaks every
checksum after it.
"""

import hashlib
import json
from typing import Any, Mapping, Optional

CHAIN_FIELDS = ("Previous_Hash", "Checksum")


class AuditChecksum:
    """Utility for calculating audit row integrity checksums."""

    @staticmethod
    def calculate(row: Mapping[str, Any], previous_hash: Optional[str]) -> str:
        """Calculate the SHA-256 checksum for an audit row.

        The row is hashed as stored (text cells), excluding the chain
        columns themselves and empty cells, together with the previous
        row's checksum. Empty cells are skipped so that adding a header to
        the sheet later does not invalidate existing rows.

        Args:
            row: Audit row keyed by sheet header.
            previous_hash: Checksum of the previous row, or None for the first.

        Returns:
            SHA-256 checksum as a hexadecimal string.
        """
        data = {
            key: str(value)
            for key, value in row.items()
            if key not in CHAIN_FIELDS and value not in (None, "")
        }
        data["previous_hash"] = previous_hash or ""

        # Sorted keys so header order never changes the checksum
        json_str = json.dumps(data, sort_keys=True, default=str)

        return hashlib.sha256(json_str.encode("utf-8")).hexdigest()

    @classmethod
    def find_break(cls, rows: list[Mapping[str, Any]], id_field: str) -> Optional[str]:
        """Walk a chain of rows and return the id of the first broken row.

        Args:
            rows: Audit rows in insertion order.
            id_field: Header holding the row id.

        Returns:
            The id of the first row whose checksum or back-link does not
            match, or None when the chain is intact.
        """
        previous: Optional[str] = None
        for row in rows:
            stored_previous = row.get("Previous_Hash") or None
            if stored_previous != previous:
                return row.get(id_field)
            expected = cls.calculate(row, previous)
            if row.get("Checksum") != expected:
                return row.get(id_field)
            previous = expected
        return None
