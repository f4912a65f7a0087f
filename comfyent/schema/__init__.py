"""
Schema module for comfyent.

This module provides the entity model, including:
- Entity definitions (EntityDef, FieldDef, EdgeDef)
- Field constraints
- Schema registry for entity management
- Schema manager creating the backing tables
- Compatibility checking between stored and declared structure

Invariants:
    - Definitions are immutable once created
    - All entities must be registered before the registry is frozen
    - Stored tables are created, never altered
"""

from .compat import ChangeKind, SchemaChange, TableShape, declared_shape, diff_shapes
from .constraints import (
    Constraint,
    match,
    max_len,
    max_value,
    min_len,
    min_value,
    negative,
    non_negative,
    not_empty,
    positive,
)
from .migrate import SchemaManager, create_table_sql
from .registry import (
    DuplicateRegistrationError,
    RegistryFrozenError,
    SchemaRegistry,
    build_registry,
)
from .types import ID_FIELD, EdgeDef, EntityDef, FieldDef, FieldKind, field
from .user import User

__all__ = [
    # Types
    "ID_FIELD",
    "EntityDef",
    "FieldDef",
    "EdgeDef",
    "FieldKind",
    "field",
    # Constraints
    "Constraint",
    "not_empty",
    "positive",
    "negative",
    "non_negative",
    "min_value",
    "max_value",
    "min_len",
    "max_len",
    "match",
    # Registry
    "SchemaRegistry",
    "build_registry",
    "RegistryFrozenError",
    "DuplicateRegistrationError",
    # Schema management
    "SchemaManager",
    "create_table_sql",
    "SchemaChange",
    "ChangeKind",
    "TableShape",
    "declared_shape",
    "diff_shapes",
    # Entities
    "User",
]
