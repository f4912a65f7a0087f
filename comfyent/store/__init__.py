"""
Store module for comfyent.

The store adapts SQLite to the small interface the access layer needs:
statement execution, transactions and savepoints.
"""

from .sqlite_store import Executor, Result, Store, StoreTx

__all__ = [
    "Executor",
    "Result",
    "Store",
    "StoreTx",
]
