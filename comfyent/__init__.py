"""
comfyent - typed entity access layer over an embedded SQLite store.

This package provides:
- Entity definitions (EntityDef, FieldDef, field) and the User entity
- Schema manager creating the backing tables idempotently
- Validated create/update/delete, including atomic bulk create
- Immutable, composable queries with ordering, pagination and aggregation
- Transactions that always resolve to committed or rolled back

Example:
    >>> from comfyent import Client, StoreSettings
    >>> from comfyent.predicates import contains, gt
    >>>
    >>> with Client.open(StoreSettings(path="ent.db")) as client:
    ...     client.user.create_bulk([
    ...         {"name": "Alice", "age": 30, "email": "alice@example.com"},
    ...         {"name": "Charlie", "age": 35, "email": "charlie@example.com"},
    ...     ])
    ...     older = client.user.query().where(gt("age", 30)).all()

Invariants:
    - Values are validated before they are written
    - Every read returns an independent snapshot
    - The store is owned by exactly one Client and closed exactly once

Version: 1.0.0
"""

__version__ = "1.0.0"

from .client import Client
from .config import LogSettings, StoreSettings
from .entity import Entity
from .entity_client import EntityClient
from .errors import (
    ComfyEntError,
    CommitError,
    NotFoundError,
    NotSingularError,
    QueryError,
    QueryErrorKind,
    SchemaError,
    SchemaErrorKind,
    StoreError,
    StoreErrorKind,
    TransactionError,
    TransactionErrorKind,
    UnknownFieldError,
    ValidationError,
)
from .query import Aggregate, Direction, Query
from .schema import EdgeDef, EntityDef, FieldDef, FieldKind, SchemaManager, User, field
from .store import Store
from .tx import Tx, TxState

__all__ = [
    # Version
    "__version__",
    # Client
    "Client",
    "EntityClient",
    "Tx",
    "TxState",
    "Query",
    "Aggregate",
    "Direction",
    "Entity",
    "Store",
    "SchemaManager",
    # Configuration
    "StoreSettings",
    "LogSettings",
    # Schema
    "EntityDef",
    "FieldDef",
    "EdgeDef",
    "FieldKind",
    "field",
    "User",
    # Errors
    "ComfyEntError",
    "ValidationError",
    "UnknownFieldError",
    "NotFoundError",
    "NotSingularError",
    "StoreError",
    "StoreErrorKind",
    "QueryError",
    "QueryErrorKind",
    "SchemaError",
    "SchemaErrorKind",
    "TransactionError",
    "TransactionErrorKind",
    "CommitError",
]
