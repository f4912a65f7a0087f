"""
comfyent Client.

This module provides the single entry point used by application code:
- Client: owns the Store, prepares the schema, hands out entity operations
  and transactions

Example:
    >>> with Client.open(StoreSettings(path="ent.db")) as client:
    ...     alice = client.user.create(name="Alice", age=30, email="alice@example.com")
    ...     with client.tx() as tx:
    ...         tx.user.update(alice.id, age=31)

Invariants:
    - The schema is ensured before the Client accepts any operation
    - The Store is closed exactly once, including when setup fails
    - At most one open transaction per thread per Client
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from typing import Any, Callable, TypeVar

from .config import StoreSettings
from .entity_client import EntityAccess
from .errors import (
    SchemaError,
    SchemaErrorKind,
    StoreError,
    StoreErrorKind,
    TransactionError,
    TransactionErrorKind,
)
from .schema.migrate import SchemaManager
from .schema.registry import SchemaRegistry, build_registry
from .schema.types import EntityDef
from .schema.user import User
from .store import Executor, Store
from .tx import Tx, TxState

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Client(EntityAccess):
    """Entry point bound to one Store and one set of entities.

    The Client takes ownership of the store it is given: it closes the store
    if schema setup fails and when the Client itself is closed.

    Attributes:
        schema: Schema manager for the store
    """

    def __init__(self, store: Store, registry: SchemaRegistry | None = None) -> None:
        """Initialize the client and ensure the schema.

        Args:
            store: Opened store; the client takes ownership of it
            registry: Entities to serve (default: just User)

        Raises:
            SchemaError: If the definitions are inconsistent or the stored
                structure conflicts with them
            StoreError: If the store fails during setup
        """
        self._store = store
        self._registry = registry or build_registry(User)
        self.schema = SchemaManager(store)
        self._open_txs: dict[int, Tx | None] = {}
        self._tx_lock = threading.Lock()
        self._closed = False

        try:
            self._setup()
        except BaseException:
            store.close()
            raise

    @classmethod
    def open(
        cls,
        settings: StoreSettings | None = None,
        entities: Iterable[EntityDef] | None = None,
    ) -> Client:
        """Open a store and create a client over it.

        Args:
            settings: Store settings (loaded from env if not provided)
            entities: Entities to serve (default: just User)

        Returns:
            Ready Client
        """
        registry = build_registry(*(entities if entities is not None else (User,)))
        store = Store(settings)
        try:
            store.open()
        except BaseException:
            store.close()
            raise
        return cls(store, registry)

    def _setup(self) -> None:
        problems = self._registry.validate_all()
        if problems:
            raise SchemaError(
                "Invalid entity definitions: " + "; ".join(problems),
                kind=SchemaErrorKind.INVALID_DEFINITION,
            )

        fingerprint = self._registry.fingerprint
        if not self._registry.frozen:
            fingerprint = self._registry.freeze()

        self.schema.ensure_schema(self._registry.entities())
        logger.info(
            "Client ready",
            extra={"entities": len(self._registry), "fingerprint": fingerprint},
        )

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def store(self) -> Store:
        return self._store

    @property
    def closed(self) -> bool:
        return self._closed

    def _entity_executor(self) -> Executor:
        return self._store

    def tx(self) -> Tx:
        """Begin a transaction.

        Returns:
            Open Tx; use it as a context manager or resolve it explicitly

        Raises:
            TransactionError: ALREADY_OPEN if this thread already has an
                open transaction on this client
            StoreError: If the client is closed or the store cannot begin
        """
        owner = threading.get_ident()
        with self._tx_lock:
            if self._closed:
                raise StoreError("client is closed", kind=StoreErrorKind.CLOSED)
            if owner in self._open_txs:
                raise TransactionError(
                    "a transaction is already open in this thread",
                    kind=TransactionErrorKind.ALREADY_OPEN,
                )
            self._open_txs[owner] = None

        try:
            handle = self._store.begin()
        except BaseException:
            with self._tx_lock:
                self._open_txs.pop(owner, None)
            raise

        tx = Tx(handle, self._registry, on_close=lambda _: self._release_tx(owner))
        with self._tx_lock:
            self._open_txs[owner] = tx
        logger.debug("Transaction started")
        return tx

    def _release_tx(self, owner: int) -> None:
        with self._tx_lock:
            self._open_txs.pop(owner, None)

    def with_tx(self, fn: Callable[[Tx], T]) -> T:
        """Run ``fn`` inside a transaction.

        Commits if ``fn`` returns, rolls back if it raises (including
        BaseException) and re-raises.

        Returns:
            Whatever ``fn`` returns
        """
        with self.tx() as tx:
            return fn(tx)

    def close(self) -> None:
        """Close the client and its store. Later calls are no-ops.

        Transactions still open are rolled back first.
        """
        with self._tx_lock:
            if self._closed:
                return
            self._closed = True
            pending = [tx for tx in self._open_txs.values() if tx is not None]

        for tx in pending:
            if tx.state is TxState.OPEN:
                logger.warning("Rolling back transaction left open at close")
                try:
                    tx.rollback()
                except StoreError:
                    logger.exception("Rollback at close failed")

        self._store.close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
