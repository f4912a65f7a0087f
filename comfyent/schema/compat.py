"""
Schema compatibility checking for comfyent.

This module compares the structure an entity definition declares with the
structure already stored in SQLite. comfyent only ever creates missing
tables; it never alters existing ones, so any other difference is breaking.

Invariants:
    - Only a missing table is a non-breaking change
    - Diffing reads the catalog; it never writes
    - Change paths look like "users.email"

Example:
    >>> changes = diff_shapes("users", stored, declared_shape(User))
    >>> breaking = [c for c in changes if c.is_breaking]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional

from ..store import Executor
from .types import ID_FIELD, EntityDef


class ChangeKind(Enum):
    """Types of schema differences."""

    # Non-breaking (the table is created)
    TABLE_MISSING = auto()

    # Breaking (would need a migration)
    COLUMN_ADDED = auto()
    COLUMN_REMOVED = auto()
    COLUMN_TYPE_CHANGED = auto()
    NULLABILITY_CHANGED = auto()
    PRIMARY_KEY_CHANGED = auto()
    UNIQUE_ADDED = auto()
    UNIQUE_REMOVED = auto()

    @property
    def is_breaking(self) -> bool:
        """Whether this change kind is a breaking change."""
        return self is not ChangeKind.TABLE_MISSING


@dataclass
class SchemaChange:
    """A single difference between stored and declared structure.

    Attributes:
        kind: The type of change
        path: Path to the changed element (e.g., "users.email")
        old_value: Stored value (if applicable)
        new_value: Declared value (if applicable)
        message: Human-readable description of the change
    """

    kind: ChangeKind
    path: str
    old_value: Optional[Any] = None
    new_value: Optional[Any] = None
    message: str = ""

    @property
    def is_breaking(self) -> bool:
        """Whether this is a breaking change."""
        return self.kind.is_breaking

    def __str__(self) -> str:
        status = "BREAKING" if self.is_breaking else "OK"
        return f"[{status}] {self.kind.name}: {self.path} - {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "kind": self.kind.name,
            "path": self.path,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "message": self.message,
            "is_breaking": self.is_breaking,
        }


@dataclass(frozen=True)
class ColumnShape:
    """One column as SQLite describes it."""

    name: str
    type: str
    notnull: bool
    pk: bool


@dataclass
class TableShape:
    """Structure of one table.

    Attributes:
        table: Table name
        columns: Columns by name, in declaration order
        unique: Names of columns carrying a single-column UNIQUE index
    """

    table: str
    columns: Dict[str, ColumnShape] = field(default_factory=dict)
    unique: frozenset[str] = frozenset()


def declared_shape(entity: EntityDef) -> TableShape:
    """Structure the entity definition requires."""
    columns = {ID_FIELD: ColumnShape(ID_FIELD, "INTEGER", notnull=False, pk=True)}
    for f in entity.fields:
        columns[f.name] = ColumnShape(f.name, f.kind.sql_type, notnull=not f.optional, pk=False)
    return TableShape(
        table=entity.table,
        columns=columns,
        unique=frozenset(f.name for f in entity.fields if f.unique),
    )


def inspect_table(executor: Executor, table: str) -> Optional[TableShape]:
    """Read the stored structure of a table.

    Returns:
        TableShape, or None if the table does not exist
    """
    rows = executor.execute(f'PRAGMA table_info("{table}")').rows
    if not rows:
        return None

    columns = {
        row["name"]: ColumnShape(
            name=row["name"],
            type=(row["type"] or "").upper(),
            notnull=bool(row["notnull"]),
            pk=bool(row["pk"]),
        )
        for row in rows
    }

    unique: set[str] = set()
    for index in executor.execute(f'PRAGMA index_list("{table}")').rows:
        if not index["unique"] or index["origin"] == "pk":
            continue
        indexed = executor.execute(f'PRAGMA index_info("{index["name"]}")').rows
        if len(indexed) == 1:
            unique.add(indexed[0]["name"])

    return TableShape(table=table, columns=columns, unique=frozenset(unique))


def diff_shapes(table: str, stored: Optional[TableShape], declared: TableShape) -> List[SchemaChange]:
    """Compare stored structure to declared structure.

    Args:
        table: Table name (used in change paths)
        stored: What SQLite holds, or None if the table is missing
        declared: What the entity definition requires

    Returns:
        List of SchemaChange objects describing all differences
    """
    if stored is None:
        return [
            SchemaChange(
                kind=ChangeKind.TABLE_MISSING,
                path=table,
                message=f"Table '{table}' does not exist and will be created",
            )
        ]

    changes: List[SchemaChange] = []

    for name, col in declared.columns.items():
        path = f"{table}.{name}"
        old = stored.columns.get(name)
        if old is None:
            changes.append(SchemaChange(
                kind=ChangeKind.COLUMN_ADDED,
                path=path,
                new_value=col.type,
                message=f"Column '{name}' is declared but not stored",
            ))
            continue

        if old.type != col.type:
            changes.append(SchemaChange(
                kind=ChangeKind.COLUMN_TYPE_CHANGED,
                path=path,
                old_value=old.type,
                new_value=col.type,
                message=f"Column type changed from {old.type} to {col.type}",
            ))
        if old.pk != col.pk:
            changes.append(SchemaChange(
                kind=ChangeKind.PRIMARY_KEY_CHANGED,
                path=path,
                old_value=old.pk,
                new_value=col.pk,
                message="Primary key membership changed",
            ))
        elif not col.pk and old.notnull != col.notnull:
            changes.append(SchemaChange(
                kind=ChangeKind.NULLABILITY_CHANGED,
                path=path,
                old_value=old.notnull,
                new_value=col.notnull,
                message="Column became " + ("required" if col.notnull else "optional"),
            ))

    for name in stored.columns:
        if name not in declared.columns:
            changes.append(SchemaChange(
                kind=ChangeKind.COLUMN_REMOVED,
                path=f"{table}.{name}",
                old_value=stored.columns[name].type,
                message=f"Column '{name}' is stored but no longer declared",
            ))

    for name in sorted(declared.unique - stored.unique):
        if name in stored.columns:
            changes.append(SchemaChange(
                kind=ChangeKind.UNIQUE_ADDED,
                path=f"{table}.{name}",
                message=f"Column '{name}' is declared unique but the store does not enforce it",
            ))
    for name in sorted(stored.unique - declared.unique):
        if name in declared.columns:
            changes.append(SchemaChange(
                kind=ChangeKind.UNIQUE_REMOVED,
                path=f"{table}.{name}",
                message=f"Column '{name}' is unique in the store but not declared unique",
            ))

    return changes
