"""
Integration tests for the SQLite store.

Tests cover:
- Open/close lifecycle
- Statement execution and error translation
- Explicit transactions and savepoints
- In-memory databases
"""

import os
import threading

import pytest

from comfyent.config import MEMORY_PATH, StoreSettings
from comfyent.errors import StoreError, StoreErrorKind
from comfyent.store import Store

CREATE_ITEMS = 'CREATE TABLE items ("id" INTEGER PRIMARY KEY, "code" TEXT NOT NULL UNIQUE)'


class TestStoreLifecycle:
    """Tests for opening and closing a store."""

    @pytest.fixture
    def store(self, db_path):
        """Opened store over a temporary file."""
        s = Store(StoreSettings(path=db_path))
        s.open()
        yield s
        s.close()

    def test_open_creates_file(self, store, db_path):
        """Opening in rwc mode creates the database file."""
        assert store.is_open
        assert os.path.exists(db_path)

    def test_wal_mode_enabled(self, store):
        """File databases run in WAL mode."""
        assert store.execute("PRAGMA journal_mode").rows[0][0] == "wal"

    def test_pragmas_applied(self, store):
        """Per-connection pragmas are applied."""
        assert store.execute("PRAGMA foreign_keys").rows[0][0] == 1
        assert store.execute("PRAGMA busy_timeout").rows[0][0] == 5000

    def test_close_is_idempotent(self, store):
        """Closing twice is a no-op."""
        store.close()
        store.close()

        assert store.closed
        assert not store.is_open

    def test_execute_after_close(self, store):
        """A closed store rejects statements."""
        store.close()

        with pytest.raises(StoreError) as exc_info:
            store.execute("SELECT 1")

        assert exc_info.value.kind == StoreErrorKind.CLOSED

    def test_reopen_after_close(self, store):
        """A store is opened at most once."""
        store.close()

        with pytest.raises(StoreError):
            store.open()

    def test_execute_before_open(self, db_path):
        with pytest.raises(StoreError) as exc_info:
            Store(StoreSettings(path=db_path)).execute("SELECT 1")

        assert exc_info.value.kind == StoreErrorKind.CLOSED

    def test_rw_mode_requires_existing_file(self, db_path):
        """rw mode does not create the file."""
        store = Store(StoreSettings(path=db_path, mode="rw"))

        with pytest.raises(StoreError):
            store.open()
        assert not os.path.exists(db_path)

    def test_context_manager(self, db_path):
        with Store(StoreSettings(path=db_path)) as store:
            assert store.execute("SELECT 1").rows[0][0] == 1
        assert store.closed


class TestStoreExecute:
    """Tests for statements and error translation."""

    @pytest.fixture
    def store(self, db_path):
        s = Store(StoreSettings(path=db_path))
        s.open()
        s.execute(CREATE_ITEMS)
        yield s
        s.close()

    def test_insert_returns_lastrowid(self, store):
        """Inserts report the assigned row id."""
        result = store.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        assert result.lastrowid == 1
        assert result.rowcount == 1

    def test_rows_by_name(self, store):
        """Rows are addressable by column name."""
        store.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        row = store.execute("SELECT * FROM items").rows[0]
        assert row["code"] == "a"

    def test_unique_violation(self, store):
        """Duplicate unique values map to UNIQUE_VIOLATION."""
        store.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        with pytest.raises(StoreError) as exc_info:
            store.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        assert exc_info.value.kind == StoreErrorKind.UNIQUE_VIOLATION

    def test_other_failure(self, store):
        """Other driver errors map to OTHER."""
        with pytest.raises(StoreError) as exc_info:
            store.execute("SELECT * FROM missing_table")

        assert exc_info.value.kind == StoreErrorKind.OTHER

    def test_unbindable_parameters(self, store):
        """Oversized ints and lone surrogates become StoreError."""
        for value in (2**70, "\ud800"):
            with pytest.raises(StoreError) as exc_info:
                store.execute("INSERT INTO items (code) VALUES (?)", [value])

            assert exc_info.value.kind == StoreErrorKind.OTHER

        assert store.execute("SELECT COUNT(*) FROM items").rows[0][0] == 0

    def test_not_null_is_not_unique_violation(self, store):
        with pytest.raises(StoreError) as exc_info:
            store.execute("INSERT INTO items (code) VALUES (NULL)")

        assert exc_info.value.kind == StoreErrorKind.OTHER

    def test_concurrent_writers(self, store):
        """Writers from several threads are serialized, none lost."""
        errors = []

        def writer(prefix):
            try:
                for i in range(10):
                    store.execute("INSERT INTO items (code) VALUES (?)", [f"{prefix}-{i}"])
            except StoreError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=writer, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert errors == []
        assert store.execute("SELECT COUNT(*) FROM items").rows[0][0] == 40


class TestStoreTransactions:
    """Tests for begin/atomic and savepoints."""

    @pytest.fixture
    def store(self, db_path):
        s = Store(StoreSettings(path=db_path))
        s.open()
        s.execute(CREATE_ITEMS)
        yield s
        s.close()

    def count(self, store):
        return store.execute("SELECT COUNT(*) FROM items").rows[0][0]

    def test_atomic_commits(self, store):
        with store.atomic() as tx:
            tx.execute("INSERT INTO items (code) VALUES (?)", ["a"])
            tx.execute("INSERT INTO items (code) VALUES (?)", ["b"])

        assert self.count(store) == 2

    def test_atomic_rolls_back_on_error(self, store):
        """A failing statement undoes the whole block."""
        with pytest.raises(StoreError):
            with store.atomic() as tx:
                tx.execute("INSERT INTO items (code) VALUES (?)", ["a"])
                tx.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        assert self.count(store) == 0

    def test_uncommitted_writes_invisible(self, store):
        """Other connections see nothing until commit."""
        tx = store.begin()
        tx.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        assert self.count(store) == 0
        tx.commit()
        assert self.count(store) == 1
        assert tx.closed

    def test_resolved_transaction_rejects_use(self, store):
        tx = store.begin()
        tx.rollback()

        with pytest.raises(StoreError) as exc_info:
            tx.execute("SELECT 1")

        assert exc_info.value.kind == StoreErrorKind.CLOSED

    def test_savepoint_rolls_back_only_inner_block(self, store):
        """A failed savepoint keeps the outer transaction usable."""
        tx = store.begin()
        tx.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        with pytest.raises(StoreError):
            with tx.atomic():
                tx.execute("INSERT INTO items (code) VALUES (?)", ["b"])
                tx.execute("INSERT INTO items (code) VALUES (?)", ["a"])

        tx.execute("INSERT INTO items (code) VALUES (?)", ["c"])
        tx.commit()

        codes = [r["code"] for r in store.execute("SELECT code FROM items ORDER BY code").rows]
        assert codes == ["a", "c"]


class TestMemoryStore:
    """Tests for in-memory databases."""

    def test_data_shared_across_connections(self):
        """Statements on separate connections see the same database."""
        with Store(StoreSettings(path=MEMORY_PATH)) as store:
            store.execute(CREATE_ITEMS)
            store.execute("INSERT INTO items (code) VALUES (?)", ["a"])

            assert store.execute("SELECT COUNT(*) FROM items").rows[0][0] == 1

    def test_memory_stores_are_private(self):
        """Two in-memory stores never share data."""
        with Store(StoreSettings(path=MEMORY_PATH)) as first:
            with Store(StoreSettings(path=MEMORY_PATH)) as second:
                first.execute(CREATE_ITEMS)

                with pytest.raises(StoreError):
                    second.execute("SELECT * FROM items")
