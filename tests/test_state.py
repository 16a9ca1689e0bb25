"""Tests for checksums, fingerprints and table state."""

import pytest

from dbc_sync.core.integrity import IntegrityChecker
from dbc_sync.core.state import CHECKSUM_TABLE, ChecksumStore, TableProgress, TableState


class TestIntegrityChecker:
    """Tests for IntegrityChecker class."""

    def test_row_checksum_deterministic(self) -> None:
        checker = IntegrityChecker()
        assert checker.row_checksum([1, "a", 2.5]) == checker.row_checksum([1, "a", 2.5])
        assert checker.row_checksum([1, "a", 2.5]) != checker.row_checksum([1, "a", 2.25])

    def test_row_checksum_separator_escaped(self) -> None:
        checker = IntegrityChecker()
        assert checker.row_checksum(["a|b", "c"]) != checker.row_checksum(["a", "b|c"])

    def test_fingerprint_order_independent(self) -> None:
        checker = IntegrityChecker("sha256")
        rows = [(1, "a"), (2, "b"), (3, "c")]
        assert checker.table_fingerprint(["ID", "N"], rows) == checker.table_fingerprint(
            ["ID", "N"], list(reversed(rows))
        )

    def test_fingerprint_covers_columns_and_count(self) -> None:
        checker = IntegrityChecker()
        base = checker.table_fingerprint(["ID"], [(1,)])
        assert checker.table_fingerprint(["Entry"], [(1,)]) != base
        assert checker.table_fingerprint(["ID"], [(1,), (1,)]) != base

    def test_fingerprint_is_signed_64_bit(self) -> None:
        checker = IntegrityChecker()
        value = checker.table_fingerprint(["ID"], [(i,) for i in range(50)])
        assert -(2**63) <= value < 2**63

    def test_unsupported_algorithm(self) -> None:
        with pytest.raises(ValueError, match="crc32"):
            IntegrityChecker("crc32")

    def test_compare(self) -> None:
        checker = IntegrityChecker()
        assert checker.compare_fingerprints(5, 5)
        assert not checker.compare_fingerprints(None, 5)
        assert not checker.compare_fingerprints(0, 5)


class TestChecksumStore:
    """Tests for ChecksumStore class."""

    def test_get_without_table(self, db) -> None:
        store = ChecksumStore(db)
        assert store.get("Spell") is None
        assert store.entries() == []
        assert not db.table_exists(CHECKSUM_TABLE)

    def test_ensure_creates_zero_entry(self, db) -> None:
        store = ChecksumStore(db)
        assert store.ensure("Spell") == 0
        assert store.get("Spell") == 0
        assert db.table_exists(CHECKSUM_TABLE)

    def test_update_then_ensure_keeps_value(self, db) -> None:
        store = ChecksumStore(db)
        store.ensure("Spell")
        store.update("Spell", -1234567890123)

        assert store.ensure("Spell") == -1234567890123
        assert [(e.table_name, e.checksum) for e in store.entries()] == [
            ("Spell", -1234567890123)
        ]

    def test_entries_sorted(self, db) -> None:
        store = ChecksumStore(db)
        store.update("Spell", 2)
        store.update("Item", 1)
        assert [e.table_name for e in store.entries()] == ["Item", "Spell"]

    def test_clear(self, db) -> None:
        store = ChecksumStore(db)
        store.update("Spell", 2)
        store.update("Item", 1)

        assert store.clear("Item") == 1
        assert store.get("Item") is None
        assert store.clear() == 1
        assert store.entries() == []


class TestTableProgress:
    """Tests for TableProgress class."""

    def test_lifecycle(self) -> None:
        progress = TableProgress(name="Spell")
        assert progress.state is TableState.UNKNOWN

        progress.start()
        progress.finish(TableState.SKIPPED, "unchanged")

        assert progress.state is TableState.SKIPPED
        assert progress.message == "unchanged"
        assert progress.started_at is not None
        assert progress.completed_at is not None
