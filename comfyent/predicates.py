"""
Query predicates for comfyent.

Predicates are immutable values describing a boolean test over one field.
They are checked against an entity definition when added to a query, so a
typo in a field name fails while the query is built, not when it runs.

String predicates (contains, has_prefix, has_suffix) are case-sensitive;
``contains_fold`` is the case-insensitive variant (ASCII folding).

Example:
    >>> from comfyent.predicates import and_, contains, gt
    >>> client.user.query().where(gt("age", 30), contains("name", "a")).all()
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from .errors import QueryError, QueryErrorKind
from .schema.types import EntityDef, FieldKind


class Op(Enum):
    """Field predicate operators."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    IN = "in"
    NOT_IN = "not_in"
    CONTAINS = "contains"
    CONTAINS_FOLD = "contains_fold"
    HAS_PREFIX = "has_prefix"
    HAS_SUFFIX = "has_suffix"
    IS_NULL = "is_null"
    NOT_NULL = "not_null"


_COMPARISON_SQL = {
    Op.EQ: "=",
    Op.NE: "<>",
    Op.GT: ">",
    Op.GTE: ">=",
    Op.LT: "<",
    Op.LTE: "<=",
}
_ORDERED_OPS = {Op.GT, Op.GTE, Op.LT, Op.LTE}
_STRING_OPS = {Op.CONTAINS, Op.CONTAINS_FOLD, Op.HAS_PREFIX, Op.HAS_SUFFIX}


def _invalid(message: str, field_name: str | None = None) -> QueryError:
    return QueryError(message, kind=QueryErrorKind.INVALID_ARGUMENT, field_name=field_name)


@dataclass(frozen=True)
class FieldPredicate:
    """Test over a single field.

    Attributes:
        field: Field name (or ``id``)
        op: Operator
        value: Operand; a tuple for IN/NOT_IN, None for null tests
    """

    field: str
    op: Op
    value: Any = None

    def check(self, entity: EntityDef) -> None:
        """Verify the predicate applies to the entity.

        Raises:
            QueryError: UNKNOWN_FIELD or INVALID_ARGUMENT
        """
        kind = entity.kind_of(self.field)
        if kind is None:
            raise QueryError(
                f"Unknown field '{self.field}' in entity '{entity.name}'",
                kind=QueryErrorKind.UNKNOWN_FIELD,
                field_name=self.field,
            )

        if self.op in _ORDERED_OPS and not kind.is_numeric:
            raise _invalid(
                f"Operator {self.op.value} requires a numeric field, '{self.field}' is {kind.value}",
                self.field,
            )

        if self.op in _STRING_OPS:
            if kind != FieldKind.STRING:
                raise _invalid(
                    f"Operator {self.op.value} requires a string field, '{self.field}' is {kind.value}",
                    self.field,
                )
            if not isinstance(self.value, str):
                raise _invalid(f"Operator {self.op.value} requires a string operand", self.field)

        if self.op in _COMPARISON_SQL and self.value is None:
            raise _invalid(
                f"Operator {self.op.value} cannot compare with None; use is_null/not_null",
                self.field,
            )

    def to_sql(self) -> tuple[str, list[Any]]:
        """Render as a SQL boolean expression with parameters."""
        col = f'"{self.field}"'
        op = self.op

        if op in _COMPARISON_SQL:
            return f"{col} {_COMPARISON_SQL[op]} ?", [self.value]
        if op == Op.CONTAINS:
            return f"instr({col}, ?) > 0", [self.value]
        if op == Op.CONTAINS_FOLD:
            return f"instr(lower({col}), lower(?)) > 0", [self.value]
        if op == Op.HAS_PREFIX:
            return f"substr({col}, 1, length(?)) = ?", [self.value, self.value]
        if op == Op.HAS_SUFFIX:
            return (
                f"(length(?) = 0 OR substr({col}, -length(?)) = ?)",
                [self.value, self.value, self.value],
            )
        if op in (Op.IN, Op.NOT_IN):
            values = list(self.value)
            if not values:
                return ("0" if op == Op.IN else "1"), []
            marks = ", ".join("?" for _ in values)
            negate = "NOT " if op == Op.NOT_IN else ""
            return f"{col} {negate}IN ({marks})", values
        if op == Op.IS_NULL:
            return f"{col} IS NULL", []
        return f"{col} IS NOT NULL", []


@dataclass(frozen=True)
class Compound:
    """Conjunction or disjunction of predicates."""

    op: str
    children: tuple[Predicate, ...]

    def check(self, entity: EntityDef) -> None:
        for child in self.children:
            child.check(entity)

    def to_sql(self) -> tuple[str, list[Any]]:
        if not self.children:
            return ("1" if self.op == "AND" else "0"), []
        parts: list[str] = []
        params: list[Any] = []
        for child in self.children:
            sql, child_params = child.to_sql()
            parts.append(sql)
            params.extend(child_params)
        return "(" + f" {self.op} ".join(parts) + ")", params


@dataclass(frozen=True)
class Negation:
    """Logical NOT of a predicate."""

    child: Predicate

    def check(self, entity: EntityDef) -> None:
        self.child.check(entity)

    def to_sql(self) -> tuple[str, list[Any]]:
        sql, params = self.child.to_sql()
        return f"NOT ({sql})", params


Predicate = Union[FieldPredicate, Compound, Negation]


def eq(field: str, value: Any) -> FieldPredicate:
    return FieldPredicate(field, Op.EQ, value)


def ne(field: str, value: Any) -> FieldPredicate:
    return FieldPredicate(field, Op.NE, value)


def gt(field: str, value: Any) -> FieldPredicate:
    return FieldPredicate(field, Op.GT, value)


def gte(field: str, value: Any) -> FieldPredicate:
    return FieldPredicate(field, Op.GTE, value)


def lt(field: str, value: Any) -> FieldPredicate:
    return FieldPredicate(field, Op.LT, value)


def lte(field: str, value: Any) -> FieldPredicate:
    return FieldPredicate(field, Op.LTE, value)


def in_(field: str, values: Iterable[Any]) -> FieldPredicate:
    return FieldPredicate(field, Op.IN, tuple(values))


def not_in(field: str, values: Iterable[Any]) -> FieldPredicate:
    return FieldPredicate(field, Op.NOT_IN, tuple(values))


def contains(field: str, substring: str) -> FieldPredicate:
    """Case-sensitive substring test."""
    return FieldPredicate(field, Op.CONTAINS, substring)


def contains_fold(field: str, substring: str) -> FieldPredicate:
    """Case-insensitive substring test."""
    return FieldPredicate(field, Op.CONTAINS_FOLD, substring)


def has_prefix(field: str, prefix: str) -> FieldPredicate:
    return FieldPredicate(field, Op.HAS_PREFIX, prefix)


def has_suffix(field: str, suffix: str) -> FieldPredicate:
    return FieldPredicate(field, Op.HAS_SUFFIX, suffix)


def is_null(field: str) -> FieldPredicate:
    return FieldPredicate(field, Op.IS_NULL)


def not_null(field: str) -> FieldPredicate:
    return FieldPredicate(field, Op.NOT_NULL)


def and_(*predicates: Predicate) -> Compound:
    return Compound("AND", tuple(predicates))


def or_(*predicates: Predicate) -> Compound:
    return Compound("OR", tuple(predicates))


def not_(predicate: Predicate) -> Negation:
    return Negation(predicate)
