"""
Schema manager for comfyent.

Creates the tables entity definitions require. Creation is idempotent and
atomic: either every missing table is created or none is, and a stored table
whose structure disagrees with its definition stops startup with a
SchemaError instead of being altered.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ..errors import SchemaError, SchemaErrorKind
from ..store import Store
from .compat import SchemaChange, TableShape, declared_shape, diff_shapes, inspect_table
from .types import ID_FIELD, EntityDef

logger = logging.getLogger(__name__)


def create_table_sql(entity: EntityDef) -> str:
    """CREATE TABLE statement for an entity."""
    columns = [f'"{ID_FIELD}" INTEGER PRIMARY KEY AUTOINCREMENT']
    for f in entity.fields:
        column = f'"{f.name}" {f.kind.sql_type}'
        if not f.optional:
            column += " NOT NULL"
        if f.unique:
            column += " UNIQUE"
        columns.append(column)
    body = ",\n    ".join(columns)
    return f'CREATE TABLE IF NOT EXISTS "{entity.table}" (\n    {body}\n)'


class SchemaManager:
    """Ensures the store holds a table for every entity.

    Example:
        >>> manager = SchemaManager(store)
        >>> manager.ensure_schema([User])
        ['users']
        >>> manager.ensure_schema([User])
        []
    """

    def __init__(self, store: Store) -> None:
        self._store = store

    def inspect(self, entity: EntityDef) -> TableShape | None:
        """Stored structure of the entity's table, or None if absent."""
        return inspect_table(self._store, entity.table)

    def diff(self, entities: Iterable[EntityDef]) -> dict[str, list[SchemaChange]]:
        """Differences between stored and declared structure, per table."""
        return {
            entity.table: diff_shapes(entity.table, self.inspect(entity), declared_shape(entity))
            for entity in entities
        }

    def ensure_schema(self, entities: Iterable[EntityDef]) -> list[str]:
        """Create missing tables.

        Args:
            entities: Entity definitions to materialize

        Returns:
            Names of the tables created by this call

        Raises:
            SchemaError: If a stored table conflicts with its definition
        """
        created: list[str] = []
        with self._store.atomic() as tx:
            for entity in entities:
                stored = inspect_table(tx, entity.table)
                if stored is None:
                    tx.execute(create_table_sql(entity))
                    created.append(entity.table)
                    continue

                breaking = [
                    c
                    for c in diff_shapes(entity.table, stored, declared_shape(entity))
                    if c.is_breaking
                ]
                if breaking:
                    raise SchemaError(
                        f"Stored table '{entity.table}' is incompatible with entity "
                        f"'{entity.name}': " + "; ".join(str(c) for c in breaking),
                        kind=SchemaErrorKind.INCOMPATIBLE_CHANGE,
                        changes=breaking,
                    )

        if created:
            logger.info("Created tables", extra={"tables": created})
        else:
            logger.debug("Schema already up to date")
        return created
