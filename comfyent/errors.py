"""
Error types for comfyent.

This module defines all exception types raised by the access layer:
- ComfyEntError: Base exception
- ValidationError / UnknownFieldError: Input violates a declared constraint
- NotFoundError / NotSingularError: Addressed instance does not exist
- StoreError: Constraint or I/O failure surfaced by SQLite
- QueryError: Malformed or inapplicable query
- SchemaError: Stored structure conflicts with declared entities
- TransactionError / CommitError: Transaction lifecycle failures

Invariants:
    - All errors inherit from ComfyEntError
    - Each error carries a machine-readable ``code`` and ``details``
    - Caller-fixable input errors (ValidationError, QueryError) are
      distinguishable from store-level failures (StoreError)
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional


class ComfyEntError(Exception):
    """Base exception for all comfyent errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "COMFYENT_ERROR"
        self.details = details or {}


class ValidationError(ComfyEntError):
    """A field value violates a declared constraint.

    Raised when:
    - Required field is missing (constraint ``required``)
    - Field value has wrong type (constraint ``type``)
    - A constraint predicate rejects the value (e.g. ``not_empty``)
    - An immutable field is updated (constraint ``immutable``)
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        constraint: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "constraint": constraint},
        )
        self.field_name = field_name
        self.constraint = constraint


class UnknownFieldError(ValidationError):
    """Unknown field in a mutation payload.

    Includes suggestions for similar field names.
    """

    def __init__(
        self,
        field_name: str,
        entity_name: str,
        suggestions: Optional[List[str]] = None,
    ) -> None:
        suggestions = suggestions or []
        msg = f"Unknown field '{field_name}' in entity '{entity_name}'"
        if suggestions:
            msg += f". Did you mean: {', '.join(suggestions)}?"

        super().__init__(msg, field_name=field_name, constraint="known_field")
        self.code = "UNKNOWN_FIELD"
        self.details.update({"entity": entity_name, "suggestions": suggestions})
        self.entity_name = entity_name
        self.suggestions = suggestions


class NotFoundError(ComfyEntError):
    """Addressed entity instance does not exist."""

    def __init__(
        self,
        message: str,
        entity: str,
        identity: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"entity": entity, "identity": identity},
        )
        self.entity = entity
        self.identity = identity


class NotSingularError(NotFoundError):
    """A query expected exactly one match and found several."""

    def __init__(self, entity: str, count: int) -> None:
        super().__init__(f"{entity} not singular: {count} matches", entity=entity)
        self.code = "NOT_SINGULAR"
        self.details["count"] = count
        self.count = count


class StoreErrorKind(Enum):
    """Classification of store failures."""

    UNIQUE_VIOLATION = "unique_violation"
    OTHER = "other"
    CLOSED = "closed"


class StoreError(ComfyEntError):
    """Constraint or I/O failure surfaced by the store."""

    def __init__(
        self,
        message: str,
        kind: StoreErrorKind = StoreErrorKind.OTHER,
    ) -> None:
        super().__init__(message, code="STORE_ERROR", details={"kind": kind.value})
        self.kind = kind


class QueryErrorKind(Enum):
    """Classification of query failures."""

    UNKNOWN_FIELD = "unknown_field"
    EMPTY_SET = "empty_set"
    INVALID_ARGUMENT = "invalid_argument"


class QueryError(ComfyEntError):
    """Malformed or inapplicable query."""

    def __init__(
        self,
        message: str,
        kind: QueryErrorKind,
        field_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="QUERY_ERROR",
            details={"kind": kind.value, "field": field_name},
        )
        self.kind = kind
        self.field_name = field_name


class SchemaErrorKind(Enum):
    """Classification of schema failures."""

    INCOMPATIBLE_CHANGE = "incompatible_change"
    INVALID_DEFINITION = "invalid_definition"


class SchemaError(ComfyEntError):
    """Stored structure conflicts with the declared entities.

    Attributes:
        changes: The differences detected between stored and declared shape
    """

    def __init__(
        self,
        message: str,
        kind: SchemaErrorKind = SchemaErrorKind.INCOMPATIBLE_CHANGE,
        changes: Optional[List[Any]] = None,
    ) -> None:
        changes = changes or []
        super().__init__(
            message,
            code="SCHEMA_ERROR",
            details={"kind": kind.value, "changes": [str(c) for c in changes]},
        )
        self.kind = kind
        self.changes = changes


class TransactionErrorKind(Enum):
    """Classification of transaction failures."""

    ALREADY_OPEN = "already_open"
    COMMIT_FAILED = "commit_failed"
    ROLLBACK_FAILED = "rollback_failed"
    NOT_OPEN = "not_open"


class TransactionError(ComfyEntError):
    """Transaction lifecycle failure.

    Attributes:
        kind: What went wrong
        original: The unit-of-work error being reported, for ROLLBACK_FAILED
    """

    def __init__(
        self,
        message: str,
        kind: TransactionErrorKind,
        original: Optional[BaseException] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSACTION_ERROR",
            details={"kind": kind.value},
        )
        self.kind = kind
        self.original = original


class CommitError(TransactionError):
    """Commit failed; the transaction was rolled back."""

    def __init__(self, message: str) -> None:
        super().__init__(message, kind=TransactionErrorKind.COMMIT_FAILED)
