"""Sequential identifier generator.

Generates human-readable ids in ``PREFIX_00001`` format from a counter kept
per (prefix, sheet) in the SYS_Sequences sheet.
"""

import re

from accessguard.core.clock import Clock
from accessguard.infrastructure.persistence.locking import LockManager
from accessguard.infrastructure.persistence.schema import SEQUENCES
from accessguard.infrastructure.persistence.tabular_store import TabularStore


class SequenceIdGenerator:
    """Generator for ``PREFIX_#####`` identifiers.

    Counters are advanced under the SYS_Sequences lock so that concurrent
    creates never receive the same id. Numbers wider than five digits are
    not truncated (``USR_100000`` follows ``USR_99999``).

    Example IDs: USR_00001, SES_00042, AUDR_01337
    """

    PAD_WIDTH = 5
    PATTERN = re.compile(r"^[A-Z]+_\d{5,}$")

    def __init__(self, store: TabularStore, locks: LockManager, clock: Clock) -> None:
        """Initialize the generator.

        Args:
            store: Tabular store holding SYS_Sequences.
            locks: Lock manager used to serialize counter updates.
            clock: Clock used to stamp counter updates.
        """
        self.store = store
        self.locks = locks
        self.clock = clock

    @staticmethod
    def sequence_key(prefix: str, sheet: str) -> str:
        """Build the counter key for a (prefix, sheet) pair."""
        return f"SEQ_{prefix}_{sheet}"

    @classmethod
    def format_id(cls, prefix: str, value: int) -> str:
        """Format a counter value as an id.

        Examples:
            >>> SequenceIdGenerator.format_id("USR", 7)
            'USR_00007'
        """
        return f"{prefix}_{value:0{cls.PAD_WIDTH}d}"

    @classmethod
    def validate(cls, identifier: str) -> bool:
        """Check that a string looks like a generated id."""
        return isinstance(identifier, str) and bool(cls.PATTERN.match(identifier))

    def next_id(self, prefix: str, sheet: str) -> str:
        """Advance the counter for (prefix, sheet) and return the new id.

        Raises:
            StoreTimeoutError: If the sequence lock cannot be acquired.
        """
        key = self.sequence_key(prefix, sheet)
        with self.locks.hold(SEQUENCES):
            current = 0
            for row in self.store.list_rows(SEQUENCES):
                if row.get("Sequence_Key") == key:
                    current = int(row.get("Last_Value") or 0)
                    break
            else:
                row = None

            value = current + 1
            now = self.clock.now_iso()
            if row is None:
                self.store.append_row(
                    SEQUENCES,
                    {"Sequence_Key": key, "Last_Value": value, "Updated_At": now},
                )
            else:
                self.store.update_row_by_key(
                    SEQUENCES,
                    "Sequence_Key",
                    key,
                    {"Last_Value": value, "Updated_At": now},
                )
        return self.format_id(prefix, value)
