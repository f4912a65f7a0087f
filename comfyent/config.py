"""
Configuration for comfyent.

Uses pydantic-settings for environment variable loading. Every setting has a
default suitable for local development; deployments override them with
``COMFYENT_*`` variables.

Invariants:
    - Settings are immutable once loaded
    - ``path=":memory:"`` selects a private shared-cache in-memory database
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings

MEMORY_PATH = ":memory:"


class StoreSettings(BaseSettings):
    """SQLite store configuration loaded from environment."""

    path: str = Field(
        default="ent.db",
        description=(
            "Database file path or ':memory:'. In-memory databases use a shared cache:"
            " a read that overlaps an open transaction fails with StoreError (table locked)"
            " instead of seeing the last committed data; use a file for concurrent access."
        ),
    )
    mode: Literal["ro", "rw", "rwc"] = Field(
        default="rwc", description="SQLite URI open mode"
    )
    shared_cache: bool = Field(default=False, description="Open file databases with cache=shared")
    foreign_keys: bool = Field(default=True, description="Enforce foreign key constraints")
    wal_mode: bool = Field(default=True, description="Enable WAL journal for file databases")
    busy_timeout_ms: int = Field(default=5000, ge=0, description="SQLite busy timeout")
    cache_size_pages: int = Field(default=-64000, description="SQLite cache size (negative = KB)")
    synchronous: Literal["OFF", "NORMAL", "FULL", "EXTRA"] = Field(default="NORMAL")
    tx_mode: Literal["DEFERRED", "IMMEDIATE", "EXCLUSIVE"] = Field(
        default="IMMEDIATE", description="BEGIN mode for transactions"
    )

    model_config = {"env_prefix": "COMFYENT_", "frozen": True}

    @property
    def is_memory(self) -> bool:
        """Whether the database lives only in memory."""
        return self.path == MEMORY_PATH


class LogSettings(BaseSettings):
    """Logging configuration loaded from environment."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "text"] = Field(default="text", description="Log output format")

    model_config = {"env_prefix": "COMFYENT_LOG_", "frozen": True}
