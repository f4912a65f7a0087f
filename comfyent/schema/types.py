"""
Entity definitions for comfyent.

This module provides the declarative model for stored entities:
- EntityDef: Definition of an entity (one table)
- FieldDef: Individual field definition
- EdgeDef: Relationship to another entity (extension point)

Definitions are immutable once created and are the single source of truth
for both the stored structure (see migrate.py) and value validity (see
validate.py).

Invariants:
    - Every field has exactly one FieldKind and zero or more constraints
    - Field names are unique within an entity and never ``id``
    - ``id`` is store-assigned and not declared as a field

Example:
    >>> Pet = EntityDef(
    ...     name="Pet",
    ...     fields=(
    ...         field("name", "str", not_empty()),
    ...         field("legs", "int", non_negative(), default=4, optional=True),
    ...     ),
    ... )
"""

from __future__ import annotations

from dataclasses import dataclass
from dataclasses import field as dataclass_field
from enum import Enum
from typing import Any

from .constraints import Constraint

ID_FIELD = "id"


class FieldKind(Enum):
    """Supported field types."""

    STRING = "str"
    INTEGER = "int"
    FLOAT = "float"
    BOOLEAN = "bool"

    @classmethod
    def from_str(cls, value: str) -> FieldKind:
        """Convert string to FieldKind."""
        for kind in cls:
            if kind.value == value:
                return kind
        raise ValueError(f"Invalid field kind: {value}")

    @property
    def sql_type(self) -> str:
        """Column type used in CREATE TABLE."""
        return _SQL_TYPES[self]

    @property
    def is_numeric(self) -> bool:
        return self in (FieldKind.INTEGER, FieldKind.FLOAT)


_SQL_TYPES = {
    FieldKind.STRING: "TEXT",
    FieldKind.INTEGER: "INTEGER",
    FieldKind.FLOAT: "REAL",
    FieldKind.BOOLEAN: "BOOLEAN",
}


@dataclass(frozen=True)
class FieldDef:
    """Field definition within an entity.

    Attributes:
        name: Column name
        kind: Data type
        constraints: Predicates evaluated before persistence
        unique: Enforced by a UNIQUE column constraint in the store
        optional: Field may be omitted on create (stored as NULL or default)
        default: Value used on create when the field is omitted
        immutable: Field cannot be changed by update
        description: Documentation
    """

    name: str
    kind: FieldKind
    constraints: tuple[Constraint, ...] = ()
    unique: bool = False
    optional: bool = False
    default: Any = None
    immutable: bool = False
    description: str = ""

    def __post_init__(self) -> None:
        """Validate field definition."""
        if not self.name:
            raise ValueError("Field name cannot be empty")
        if self.name == ID_FIELD:
            raise ValueError(f"Field name '{ID_FIELD}' is reserved")
        if not self.name.isidentifier():
            raise ValueError(f"Field name must be an identifier, got '{self.name}'")

    @property
    def required(self) -> bool:
        """Whether create must supply a value."""
        return not self.optional and self.default is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        result: dict[str, Any] = {
            "name": self.name,
            "kind": self.kind.value,
        }
        if self.constraints:
            result["constraints"] = [c.name for c in self.constraints]
        if self.unique:
            result["unique"] = True
        if self.optional:
            result["optional"] = True
        if self.default is not None:
            result["default"] = self.default
        if self.immutable:
            result["immutable"] = True
        if self.description:
            result["description"] = self.description
        return result


def field(
    name: str,
    kind: str | FieldKind,
    *constraints: Constraint,
    unique: bool = False,
    optional: bool = False,
    default: Any = None,
    immutable: bool = False,
    description: str = "",
) -> FieldDef:
    """Convenience function to create a FieldDef.

    Args:
        name: Column name
        kind: Field type ("str", "int", "float", "bool" or a FieldKind)
        *constraints: Constraint predicates
        unique: Enforce uniqueness in the store
        optional: Allow omission on create
        default: Default value on create
        immutable: Reject updates to this field
        description: Documentation

    Returns:
        FieldDef instance

    Example:
        >>> email = field("email", "str", not_empty(), unique=True)
    """
    if isinstance(kind, str):
        kind = FieldKind.from_str(kind)
    return FieldDef(
        name=name,
        kind=kind,
        constraints=tuple(constraints),
        unique=unique,
        optional=optional,
        default=default,
        immutable=immutable,
        description=description,
    )


@dataclass(frozen=True)
class EdgeDef:
    """Relationship from one entity to another.

    No entity shipped with comfyent declares edges; the type exists so that
    definitions can describe them and the registry can check their targets.

    Attributes:
        name: Edge name
        target: Name of the target entity
        unique: At most one target per source
    """

    name: str
    target: str
    unique: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {"name": self.name, "target": self.target, "unique": self.unique}


@dataclass(frozen=True)
class EntityDef:
    """Definition of an entity type.

    Attributes:
        name: Entity name (e.g. "User")
        fields: Ordered field definitions
        edges: Outgoing relationships
        table: Table name; defaults to the lower-cased name plus "s"
        description: Documentation
    """

    name: str
    fields: tuple[FieldDef, ...] = dataclass_field(default_factory=tuple)
    edges: tuple[EdgeDef, ...] = dataclass_field(default_factory=tuple)
    table: str = ""
    description: str = ""

    def __post_init__(self) -> None:
        """Validate entity definition."""
        if not self.name:
            raise ValueError("Entity name cannot be empty")

        names = [f.name for f in self.fields]
        if len(names) != len(set(names)):
            raise ValueError(f"Duplicate field name in entity '{self.name}'")

        if not self.table:
            object.__setattr__(self, "table", f"{self.name.lower()}s")
        if not self.table.isidentifier():
            raise ValueError(f"Table name must be an identifier, got '{self.table}'")

    def get_field(self, name: str) -> FieldDef | None:
        """Get field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def get_field_names(self) -> list[str]:
        """Get list of field names in declaration order."""
        return [f.name for f in self.fields]

    def kind_of(self, name: str) -> FieldKind | None:
        """Kind of a declared field or of the ``id`` pseudo-field."""
        if name == ID_FIELD:
            return FieldKind.INTEGER
        f = self.get_field(name)
        return f.kind if f else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "table": self.table,
            "fields": [f.to_dict() for f in self.fields],
            "edges": [e.to_dict() for e in self.edges],
            "description": self.description,
        }

    def __hash__(self) -> int:
        return hash(self.name)
