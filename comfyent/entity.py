"""
Entity instances returned by comfyent.

An Entity is a snapshot of one stored row: its store-assigned id plus the
field values at read time. It is never a live handle; re-read to observe
later changes.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any

from .schema.types import ID_FIELD, EntityDef, FieldKind


@dataclass(frozen=True)
class Entity:
    """A stored entity instance.

    Attributes:
        entity: Entity name (e.g. "User")
        id: Store-assigned identity
        values: Field values by name

    Field values are also readable as attributes:

        >>> user.name
        'Alice'
    """

    entity: str
    id: int
    values: dict[str, Any] = field(default_factory=dict)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_") or name == "values":
            raise AttributeError(name)
        values = object.__getattribute__(self, "values")
        try:
            return values[name]
        except KeyError:
            raise AttributeError(
                f"{object.__getattribute__(self, 'entity')} has no field '{name}'"
            ) from None

    def __hash__(self) -> int:
        return hash((self.entity, self.id))

    def get(self, name: str, default: Any = None) -> Any:
        """Get a field value by name."""
        return self.values.get(name, default)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (id first)."""
        return {ID_FIELD: self.id, **self.values}

    @classmethod
    def from_row(cls, entity: EntityDef, row: sqlite3.Row) -> Entity:
        """Build an instance from a fetched row."""
        values: dict[str, Any] = {}
        for f in entity.fields:
            value = row[f.name]
            if value is not None and f.kind == FieldKind.BOOLEAN:
                value = bool(value)
            values[f.name] = value
        return cls(entity=entity.name, id=row[ID_FIELD], values=values)
