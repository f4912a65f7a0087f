"""
Transaction coordinator for comfyent.

A Tx is one unit of work on one store connection. It moves through
``OPEN -> COMMITTED | ROLLED_BACK`` exactly once:

- Leaving a ``with client.tx() as tx:`` block normally commits.
- An Exception rolls back, then the original exception propagates. If the
  rollback itself fails, a TransactionError(ROLLBACK_FAILED) carrying the
  original is raised instead.
- A BaseException (KeyboardInterrupt, SystemExit, task cancellation) rolls
  back first, then propagates unchanged.
- A failed commit rolls back and raises CommitError.

Invariants:
    - A Tx is never left OPEN once control leaves its ``with`` block
    - Writes made through a Tx are invisible outside it until commit
    - A resolved Tx rejects further use with TransactionError(NOT_OPEN)
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from enum import Enum
from typing import Any, Callable

from .entity_client import EntityAccess
from .errors import CommitError, StoreError, TransactionError, TransactionErrorKind
from .schema.registry import SchemaRegistry
from .store import Executor, Result, StoreTx

logger = logging.getLogger(__name__)


class TxState(Enum):
    """Transaction lifecycle states."""

    OPEN = "open"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


class Tx(EntityAccess):
    """A transaction with entity operations bound to it.

    Example:
        >>> with client.tx() as tx:
        ...     david = tx.user.create(name="David", age=28, email="david@example.com")
        ...     tx.user.update(bob.id, age=33)
    """

    def __init__(
        self,
        handle: StoreTx,
        registry: SchemaRegistry,
        on_close: Callable[[Tx], None] | None = None,
    ) -> None:
        """Initialize the transaction.

        Args:
            handle: Open store transaction
            registry: Entities available through the transaction
            on_close: Called once when the transaction resolves
        """
        self._handle = handle
        self._registry = registry
        self._on_close = on_close
        self._state = TxState.OPEN

    @property
    def state(self) -> TxState:
        return self._state

    def _require_open(self) -> None:
        if self._state is not TxState.OPEN:
            raise TransactionError(
                f"transaction is {self._state.value}",
                kind=TransactionErrorKind.NOT_OPEN,
            )

    def _entity_executor(self) -> Executor:
        return self

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Result:
        """Execute a statement inside the transaction."""
        self._require_open()
        return self._handle.execute(sql, params)

    @contextmanager
    def atomic(self) -> Iterator[Tx]:
        """Run a block under a savepoint of this transaction."""
        self._require_open()
        with self._handle.atomic():
            yield self

    def _finish(self, state: TxState) -> None:
        self._state = state
        if self._on_close is not None:
            on_close, self._on_close = self._on_close, None
            on_close(self)

    def commit(self) -> None:
        """Commit the transaction.

        Raises:
            CommitError: If the commit fails; the transaction is rolled back
        """
        self._require_open()
        try:
            self._handle.commit()
        except StoreError as exc:
            self._finish(TxState.ROLLED_BACK)
            logger.warning("Commit failed, transaction rolled back", extra={"error": str(exc)})
            raise CommitError(f"committing transaction: {exc}") from exc
        self._finish(TxState.COMMITTED)
        logger.debug("Transaction committed")

    def rollback(self) -> None:
        """Roll the transaction back.

        The transaction ends ROLLED_BACK even if the store reports an error;
        closing the connection discards the uncommitted writes.

        Raises:
            StoreError: If the store reported an error while rolling back
        """
        self._require_open()
        try:
            self._handle.rollback()
        finally:
            self._finish(TxState.ROLLED_BACK)
        logger.debug("Transaction rolled back")

    def __enter__(self) -> Tx:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool:
        if self._state is not TxState.OPEN:
            return False

        if exc_type is None:
            self.commit()
            return False

        if not issubclass(exc_type, Exception):
            try:
                self.rollback()
            except StoreError:
                logger.exception("Rollback failed during abnormal termination")
            logger.warning(
                "Transaction rolled back on abnormal termination",
                extra={"fault": exc_type.__name__},
            )
            return False

        try:
            self.rollback()
        except StoreError as rerr:
            raise TransactionError(
                f"rolling back transaction: {rerr} (after: {exc_val})",
                kind=TransactionErrorKind.ROLLBACK_FAILED,
                original=exc_val,
            ) from rerr
        logger.warning(
            "Transaction rolled back",
            extra={"error": type(exc_val).__name__},
        )
        return False
