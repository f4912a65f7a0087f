"""
Payload validation for comfyent.

This module checks mutation payloads against entity definitions before
anything reaches the store:
- Unknown fields are rejected with suggestions
- Required fields must be present on create
- Values must match the field kind
- Every declared constraint must accept the value

Invariants:
    - Validation is deterministic and fails fast: fields are checked in
      declaration order and the first violation is raised
    - Validation never touches the store
"""

from __future__ import annotations

from difflib import get_close_matches
from typing import Any, Dict, Optional

from .errors import UnknownFieldError, ValidationError
from .schema.types import EntityDef, FieldDef, FieldKind

# Range of a SQLite INTEGER column.
INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def _check_unknown(entity: EntityDef, payload: Dict[str, Any]) -> None:
    known = entity.get_field_names()
    for name in payload:
        if name not in known:
            suggestions = get_close_matches(name, known, n=3)
            raise UnknownFieldError(name, entity.name, suggestions)


def _encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _kind_error(field_def: FieldDef, value: Any) -> Optional[str]:
    """Return an error message if value does not match the field kind."""
    name = field_def.name
    kind = field_def.kind

    if kind == FieldKind.STRING:
        if not isinstance(value, str):
            return f"Field '{name}' must be a string, got {type(value).__name__}"
        if not _encodable(value):
            return f"Field '{name}' must be valid UTF-8 text"

    elif kind == FieldKind.INTEGER:
        if not isinstance(value, int) or isinstance(value, bool):
            return f"Field '{name}' must be an integer, got {type(value).__name__}"
        if not INT64_MIN <= value <= INT64_MAX:
            return f"Field '{name}' is outside the 64-bit integer range"

    elif kind == FieldKind.FLOAT:
        if not isinstance(value, (int, float)) or isinstance(value, bool):
            return f"Field '{name}' must be a number, got {type(value).__name__}"
        if isinstance(value, int) and not INT64_MIN <= value <= INT64_MAX:
            return f"Field '{name}' is outside the 64-bit integer range"

    elif kind == FieldKind.BOOLEAN:
        if not isinstance(value, bool):
            return f"Field '{name}' must be a boolean, got {type(value).__name__}"

    return None


def validate_value(entity: EntityDef, field_def: FieldDef, value: Any) -> None:
    """Validate one value against its field definition.

    Raises:
        ValidationError: On a type mismatch or violated constraint
    """
    if value is None:
        if field_def.optional:
            return
        raise ValidationError(
            f"Field '{entity.name}.{field_def.name}' is required",
            field_name=field_def.name,
            constraint="required",
        )

    error = _kind_error(field_def, value)
    if error:
        raise ValidationError(error, field_name=field_def.name, constraint="type")

    for constraint in field_def.constraints:
        if not constraint.check(value):
            raise ValidationError(
                f"Field '{entity.name}.{field_def.name}' {constraint.describe or 'is invalid'}"
                f" (constraint {constraint.name})",
                field_name=field_def.name,
                constraint=constraint.name,
            )


def validate_create(entity: EntityDef, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a create payload.

    Args:
        entity: Entity being created
        payload: Supplied field values

    Returns:
        Complete values in declaration order, defaults applied

    Raises:
        UnknownFieldError: If an undeclared field is supplied
        ValidationError: On the first violated constraint
    """
    _check_unknown(entity, payload)

    values: Dict[str, Any] = {}
    for field_def in entity.fields:
        value = payload.get(field_def.name)
        if value is None and field_def.default is not None:
            value = field_def.default
        validate_value(entity, field_def, value)
        values[field_def.name] = value
    return values


def validate_update(entity: EntityDef, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate an update payload. Only supplied fields are checked.

    Returns:
        Supplied values in declaration order

    Raises:
        UnknownFieldError: If an undeclared field is supplied
        ValidationError: On the first violated constraint or immutable field
    """
    _check_unknown(entity, payload)

    values: Dict[str, Any] = {}
    for field_def in entity.fields:
        if field_def.name not in payload:
            continue
        if field_def.immutable:
            raise ValidationError(
                f"Field '{entity.name}.{field_def.name}' is immutable",
                field_name=field_def.name,
                constraint="immutable",
            )
        value = payload[field_def.name]
        validate_value(entity, field_def, value)
        values[field_def.name] = value
    return values
