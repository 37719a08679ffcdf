"""Unit tests for the sequential id generator."""

import threading

import pytest

from accessguard.core.clock import Clock
from accessguard.domain.services import SequenceIdGenerator
from accessguard.infrastructure.persistence import InMemoryTabularStore, LockManager
from accessguard.infrastructure.persistence.schema import SEQUENCES, SHEET_HEADERS, USERS


@pytest.fixture
def generator() -> SequenceIdGenerator:
    store = InMemoryTabularStore()
    store.open()
    store.ensure_schema(SEQUENCES, SHEET_HEADERS[SEQUENCES])
    return SequenceIdGenerator(store, LockManager(), Clock())


class TestSequenceIdGenerator:
    """Tests for SequenceIdGenerator."""

    def test_first_ids(self, generator):
        assert generator.next_id("USR", USERS) == "USR_00001"
        assert generator.next_id("USR", USERS) == "USR_00002"

    def test_counters_are_per_prefix(self, generator):
        generator.next_id("USR", USERS)

        assert generator.next_id("SES", "SYS_Sessions") == "SES_00001"

    def test_counter_persisted(self, generator):
        generator.next_id("USR", USERS)
        generator.next_id("USR", USERS)

        rows = generator.store.list_rows(SEQUENCES)
        assert rows == [
            {"Sequence_Key": "SEQ_USR_SYS_Users", "Last_Value": "2", "Updated_At": rows[0]["Updated_At"]}
        ]

    def test_wide_numbers_not_truncated(self):
        assert SequenceIdGenerator.format_id("USR", 100000) == "USR_100000"

    @pytest.mark.parametrize(
        "value,expected",
        [("USR_00001", True), ("AUDR_123456", True), ("usr_00001", False), ("USR_1", False), (None, False)],
    )
    def test_validate(self, value, expected):
        assert SequenceIdGenerator.validate(value) is expected

    def test_concurrent_ids_are_unique(self, generator):
        """Test that concurrent callers never receive the same id."""
        ids: list[str] = []
        lock = threading.Lock()

        def worker():
            for _ in range(20):
                new_id = generator.next_id("USR", USERS)
                with lock:
                    ids.append(new_id)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(ids) == 100
        assert len(set(ids)) == 100
