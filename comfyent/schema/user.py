"""User entity definition."""

from __future__ import annotations

from .constraints import not_empty, positive
from .types import EntityDef, field

# User holds the schema definition for the User entity.
User = EntityDef(
    name="User",
    fields=(
        field("name", "str", not_empty()),
        field("age", "int", positive()),
        field("email", "str", not_empty(), unique=True),
    ),
)
