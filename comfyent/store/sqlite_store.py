"""
SQLite store for comfyent.

This module is the only code that talks to the ``sqlite3`` driver. It provides:
- Store: owner of the database for the process lifetime
- StoreTx: one connection holding an open transaction
- Result: materialized statement result

Statements issued through ``Store.execute`` run on a short-lived connection
in autocommit mode and are committed individually. Statements issued through
a ``StoreTx`` are atomic as a set.

Invariants:
    - Every sqlite3.Error, and every parameter the driver cannot bind,
      leaving this module is converted to StoreError
    - A Store is opened at most once and closed at most once
    - A StoreTx connection is closed when the transaction resolves

Thread safety:
    Each operation creates its own connection in the calling thread.
    SQLite serializes writers (busy_timeout) and isolates readers (WAL mode).
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import uuid
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import quote

from ..config import StoreSettings
from ..errors import StoreError, StoreErrorKind

logger = logging.getLogger(__name__)


@dataclass
class Result:
    """Materialized result of one statement.

    Attributes:
        rows: Fetched rows (empty for writes)
        rowcount: Rows affected by INSERT/UPDATE/DELETE
        lastrowid: Row id of the last inserted row
    """

    rows: list[sqlite3.Row] = field(default_factory=list)
    rowcount: int = -1
    lastrowid: int | None = None


class Executor(Protocol):
    """Anything that can run statements: a Store, a StoreTx or a Tx."""

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Result: ...

    def atomic(self) -> Any: ...


def _store_error(exc: sqlite3.Error) -> StoreError:
    """Translate a driver error into the store taxonomy."""
    message = str(exc)
    errorname = getattr(exc, "sqlite_errorname", "")
    if isinstance(exc, sqlite3.IntegrityError) and (
        errorname == "SQLITE_CONSTRAINT_UNIQUE" or "UNIQUE constraint failed" in message
    ):
        return StoreError(message, kind=StoreErrorKind.UNIQUE_VIOLATION)
    return StoreError(message, kind=StoreErrorKind.OTHER)


def _run(conn: sqlite3.Connection, sql: str, params: Sequence[Any]) -> Result:
    try:
        cursor = conn.execute(sql, tuple(params))
        rows = cursor.fetchall()
    except sqlite3.Error as exc:
        raise _store_error(exc) from exc
    except (OverflowError, UnicodeEncodeError) as exc:
        # Parameters the driver cannot bind (ints beyond 64 bits, lone surrogates).
        raise StoreError(f"cannot bind parameter: {exc}", kind=StoreErrorKind.OTHER) from exc
    return Result(rows=rows, rowcount=cursor.rowcount, lastrowid=cursor.lastrowid)


class StoreTx:
    """A transaction bound to one connection.

    Created by ``Store.begin()``; the caller must resolve it with exactly one
    of ``commit()`` or ``rollback()``.
    """

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn: sqlite3.Connection | None = conn
        self._savepoints = 0

    @property
    def closed(self) -> bool:
        return self._conn is None

    def _require_conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreError("transaction is already resolved", kind=StoreErrorKind.CLOSED)
        return self._conn

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Result:
        """Execute a statement inside the transaction."""
        return _run(self._require_conn(), sql, params)

    @contextmanager
    def atomic(self) -> Iterator[StoreTx]:
        """Run a block under a savepoint; roll it back if the block raises."""
        conn = self._require_conn()
        self._savepoints += 1
        name = f"comfyent_sp_{self._savepoints}"
        _run(conn, f"SAVEPOINT {name}", ())
        try:
            yield self
        except BaseException:
            if self._conn is not None:
                _run(conn, f"ROLLBACK TO {name}", ())
                _run(conn, f"RELEASE {name}", ())
            raise
        else:
            _run(conn, f"RELEASE {name}", ())

    def commit(self) -> None:
        """Commit and release the connection.

        Raises:
            StoreError: If COMMIT fails; the transaction is rolled back
        """
        conn = self._require_conn()
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as exc:
            error = _store_error(exc)
            self._abort()
            raise error from exc
        self._release()

    def rollback(self) -> None:
        """Roll back and release the connection."""
        conn = self._require_conn()
        try:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc
        finally:
            self._release()

    def _abort(self) -> None:
        conn = self._conn
        if conn is None:
            return
        try:
            if conn.in_transaction:
                conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("Rollback after failed commit also failed")
        finally:
            self._release()

    def _release(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None


class Store:
    """Owner of one SQLite database.

    The Store is created once, opened once and closed once. Components
    receive it at construction; nothing reaches it through globals.

    Example:
        >>> store = Store(StoreSettings(path="ent.db"))
        >>> store.open()
        >>> store.execute("SELECT 1").rows[0][0]
        1
        >>> store.close()
    """

    def __init__(self, settings: StoreSettings | None = None) -> None:
        """Initialize the store.

        Args:
            settings: Store settings (loaded from env if not provided)
        """
        self.settings = settings or StoreSettings()
        self._uri = self._build_uri()
        self._anchor: sqlite3.Connection | None = None
        self._closed = False
        self._lock = threading.Lock()

    def _build_uri(self) -> str:
        """Build the sqlite3 URI for this database."""
        settings = self.settings
        if settings.is_memory:
            # The anchor connection keeps this database alive until close().
            return f"file:comfyent-{uuid.uuid4().hex}?mode=memory&cache=shared"

        path = Path(settings.path).expanduser().resolve()
        query = f"mode={settings.mode}"
        if settings.shared_cache:
            query += "&cache=shared"
        return f"file:{quote(path.as_posix())}?{query}"

    @property
    def is_open(self) -> bool:
        return self._anchor is not None and not self._closed

    @property
    def closed(self) -> bool:
        return self._closed

    def open(self) -> None:
        """Open the database, creating the file if the mode allows it.

        Raises:
            StoreError: If the database cannot be opened or was closed
        """
        with self._lock:
            if self._closed:
                raise StoreError("store is closed", kind=StoreErrorKind.CLOSED)
            if self._anchor is not None:
                return

            if not self.settings.is_memory and self.settings.mode == "rwc":
                Path(self.settings.path).expanduser().resolve().parent.mkdir(
                    parents=True, exist_ok=True
                )

            conn = self._connect()
            if self.settings.wal_mode and not self.settings.is_memory:
                try:
                    conn.execute("PRAGMA journal_mode = WAL")
                except sqlite3.Error as exc:
                    conn.close()
                    raise _store_error(exc) from exc
            self._anchor = conn

        logger.info(
            "Opened store",
            extra={"path": self.settings.path, "wal_mode": self.settings.wal_mode},
        )

    def close(self) -> None:
        """Close the store. Later calls are no-ops."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            anchor, self._anchor = self._anchor, None

        if anchor is not None:
            anchor.close()
        logger.info("Closed store", extra={"path": self.settings.path})

    def _connect(self) -> sqlite3.Connection:
        """Create and configure a new connection."""
        try:
            conn = sqlite3.connect(
                self._uri,
                uri=True,
                timeout=self.settings.busy_timeout_ms / 1000.0,
                isolation_level=None,  # Autocommit by default, explicit transactions
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise _store_error(exc) from exc

        conn.row_factory = sqlite3.Row
        try:
            conn.execute(f"PRAGMA busy_timeout = {self.settings.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.settings.cache_size_pages}")
            conn.execute(f"PRAGMA synchronous = {self.settings.synchronous}")
            conn.execute(f"PRAGMA foreign_keys = {'ON' if self.settings.foreign_keys else 'OFF'}")
        except sqlite3.Error as exc:
            conn.close()
            raise _store_error(exc) from exc
        return conn

    def _require_open(self) -> None:
        if self._closed:
            raise StoreError("store is closed", kind=StoreErrorKind.CLOSED)
        if self._anchor is None:
            raise StoreError("store is not open", kind=StoreErrorKind.CLOSED)

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        self._require_open()
        conn = self._connect()
        try:
            yield conn
        finally:
            conn.close()

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Result:
        """Execute one statement and commit it immediately."""
        with self._connection() as conn:
            return _run(conn, sql, params)

    def executescript(self, script: str) -> None:
        """Execute a multi-statement script outside any transaction."""
        with self._connection() as conn:
            try:
                conn.executescript(script)
            except sqlite3.Error as exc:
                raise _store_error(exc) from exc

    def begin(self) -> StoreTx:
        """Begin a transaction on a dedicated connection."""
        self._require_open()
        conn = self._connect()
        try:
            conn.execute(f"BEGIN {self.settings.tx_mode}")
        except sqlite3.Error as exc:
            conn.close()
            raise _store_error(exc) from exc
        return StoreTx(conn)

    @contextmanager
    def atomic(self) -> Iterator[StoreTx]:
        """Run a block in its own transaction.

        Commits when the block finishes, rolls back when it raises.
        """
        tx = self.begin()
        try:
            yield tx
        except BaseException:
            try:
                tx.rollback()
            except StoreError:
                logger.exception("Rollback failed")
            raise
        tx.commit()

    def __enter__(self) -> Store:
        self.open()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
