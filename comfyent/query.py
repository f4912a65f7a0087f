"""
Query builder for comfyent.

A Query is an immutable descriptor: every builder call (where, order_by,
limit, offset) returns a new Query and nothing touches the store until a
terminal call (all, one, first, count, exist, ids, aggregate). Queries can be
shared between threads and extended independently.

Invariants:
    - Predicates and ordering keys reference declared fields (or ``id``)
    - limit >= 0 and offset >= 0
    - Predicates combine conjunctively
    - An offset past the last row yields an empty list, never an error

Aggregation over an empty set:
    - count returns 0
    - avg, sum, min and max raise QueryError(EMPTY_SET)

Example:
    >>> users = (
    ...     client.user.query()
    ...     .where(gt("age", 30), contains("name", "a"))
    ...     .order_by("age", Direction.DESC)
    ...     .all()
    ... )
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from .entity import Entity
from .errors import NotFoundError, NotSingularError, QueryError, QueryErrorKind
from .predicates import Compound, Predicate
from .schema.types import ID_FIELD, EntityDef, FieldKind
from .store import Executor

logger = logging.getLogger(__name__)


class Direction(Enum):
    """Sort direction."""

    ASC = "ASC"
    DESC = "DESC"


@dataclass(frozen=True)
class OrderTerm:
    """One ORDER BY key."""

    field: str
    direction: Direction = Direction.ASC


class AggFunc(Enum):
    """Supported aggregate functions."""

    AVG = "AVG"
    SUM = "SUM"
    MIN = "MIN"
    MAX = "MAX"
    COUNT = "COUNT"


@dataclass(frozen=True)
class Aggregate:
    """Aggregation expression over a query's result set.

    Example:
        >>> client.user.query().aggregate(Aggregate.avg("age"))
        32.33
    """

    func: AggFunc
    field: str | None = None

    @classmethod
    def avg(cls, field: str) -> Aggregate:
        return cls(AggFunc.AVG, field)

    @classmethod
    def sum(cls, field: str) -> Aggregate:
        return cls(AggFunc.SUM, field)

    @classmethod
    def min(cls, field: str) -> Aggregate:
        return cls(AggFunc.MIN, field)

    @classmethod
    def max(cls, field: str) -> Aggregate:
        return cls(AggFunc.MAX, field)

    @classmethod
    def count(cls, field: str | None = None) -> Aggregate:
        return cls(AggFunc.COUNT, field)

    def check(self, entity: EntityDef) -> None:
        """Verify the aggregate applies to the entity."""
        if self.field is None:
            if self.func != AggFunc.COUNT:
                raise QueryError(
                    f"{self.func.value} requires a field",
                    kind=QueryErrorKind.INVALID_ARGUMENT,
                )
            return

        kind = entity.kind_of(self.field)
        if kind is None:
            raise QueryError(
                f"Unknown field '{self.field}' in entity '{entity.name}'",
                kind=QueryErrorKind.UNKNOWN_FIELD,
                field_name=self.field,
            )
        if self.func in (AggFunc.AVG, AggFunc.SUM) and not kind.is_numeric:
            raise QueryError(
                f"{self.func.value} requires a numeric field, '{self.field}' is {kind.value}",
                kind=QueryErrorKind.INVALID_ARGUMENT,
                field_name=self.field,
            )

    @property
    def column(self) -> str:
        return f'"{self.field}"' if self.field else "*"


def _check_count(name: str, n: Any) -> None:
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        raise QueryError(
            f"{name} must be a non-negative integer, got {n!r}",
            kind=QueryErrorKind.INVALID_ARGUMENT,
        )


@dataclass(frozen=True)
class Query:
    """Immutable query descriptor bound to an entity and an executor.

    Attributes:
        entity: Entity being queried
        executor: Store or transaction the query runs against
        predicates: Conjunctive filter predicates
        ordering: ORDER BY keys, most significant first
        row_limit: Maximum rows (None = no limit)
        row_offset: Rows to skip (None = 0)
    """

    entity: EntityDef
    executor: Executor = field(repr=False, compare=False)
    predicates: tuple[Predicate, ...] = ()
    ordering: tuple[OrderTerm, ...] = ()
    row_limit: int | None = None
    row_offset: int | None = None

    def where(self, *predicates: Predicate) -> Query:
        """Add predicates; all of them must hold.

        Raises:
            QueryError: If a predicate references an undeclared field or
                does not apply to the field's kind
        """
        for predicate in predicates:
            predicate.check(self.entity)
        return replace(self, predicates=self.predicates + tuple(predicates))

    def order_by(self, field: str, direction: Direction | str = Direction.ASC) -> Query:
        """Add an ordering key. Later keys break ties of earlier ones."""
        if isinstance(direction, str):
            try:
                direction = Direction(direction.upper())
            except ValueError:
                raise QueryError(
                    f"Invalid direction {direction!r}",
                    kind=QueryErrorKind.INVALID_ARGUMENT,
                ) from None

        if self.entity.kind_of(field) is None:
            raise QueryError(
                f"Unknown field '{field}' in entity '{self.entity.name}'",
                kind=QueryErrorKind.UNKNOWN_FIELD,
                field_name=field,
            )
        return replace(self, ordering=self.ordering + (OrderTerm(field, direction),))

    def limit(self, n: int) -> Query:
        _check_count("limit", n)
        return replace(self, row_limit=n)

    def offset(self, n: int) -> Query:
        _check_count("offset", n)
        return replace(self, row_offset=n)

    def _select_sql(self, columns: str = "*") -> tuple[str, list[Any]]:
        sql = f'SELECT {columns} FROM "{self.entity.table}"'
        params: list[Any] = []

        if self.predicates:
            where_sql, params = Compound("AND", self.predicates).to_sql()
            sql += f" WHERE {where_sql}"

        if self.ordering:
            keys = ", ".join(f'"{o.field}" {o.direction.value}' for o in self.ordering)
            sql += f" ORDER BY {keys}"

        if self.row_limit is not None or self.row_offset is not None:
            # SQLite needs a LIMIT before OFFSET; -1 means unbounded.
            sql += " LIMIT ? OFFSET ?"
            params.extend([
                -1 if self.row_limit is None else self.row_limit,
                self.row_offset or 0,
            ])

        return sql, params

    def _fetch(self) -> list[Entity]:
        sql, params = self._select_sql()
        logger.debug("Executing query", extra={"entity": self.entity.name, "sql": sql})
        rows = self.executor.execute(sql, params).rows
        return [Entity.from_row(self.entity, row) for row in rows]

    def all(self) -> list[Entity]:
        """Execute and return every matching instance."""
        return self._fetch()

    def one(self) -> Entity:
        """Execute and return the only matching instance.

        Raises:
            NotFoundError: If nothing matches
            NotSingularError: If more than one instance matches
        """
        probe = self if self.row_limit is not None and self.row_limit < 2 else self.limit(2)
        found = probe._fetch()
        if not found:
            raise NotFoundError(f"{self.entity.name} not found", entity=self.entity.name)
        if len(found) > 1:
            raise NotSingularError(self.entity.name, self.count())
        return found[0]

    def first(self) -> Entity:
        """Execute and return the first matching instance.

        Raises:
            NotFoundError: If nothing matches
        """
        found = self.limit(1)._fetch()
        if not found:
            raise NotFoundError(f"{self.entity.name} not found", entity=self.entity.name)
        return found[0]

    def ids(self) -> list[int]:
        """Execute and return the identities of matching instances."""
        sql, params = self._select_sql(f'"{ID_FIELD}"')
        return [row[0] for row in self.executor.execute(sql, params).rows]

    def count(self) -> int:
        """Number of matching instances."""
        return self.aggregate(Aggregate.count())

    def exist(self) -> bool:
        """Whether at least one instance matches."""
        return bool(self.limit(1).ids())

    def aggregate(self, expression: Aggregate) -> Any:
        """Compute a scalar over the matching instances.

        Args:
            expression: Aggregate to compute

        Returns:
            The scalar value; ``count`` of an empty set is 0

        Raises:
            QueryError: EMPTY_SET if the set is empty and the aggregate is
                not a count; UNKNOWN_FIELD / INVALID_ARGUMENT for a bad field
        """
        expression.check(self.entity)
        inner, params = self._select_sql()
        column = expression.column
        sql = (
            f"SELECT {expression.func.value}({column}) AS value, COUNT({column}) AS n "
            f"FROM ({inner})"
        )
        row = self.executor.execute(sql, params).rows[0]

        if expression.func == AggFunc.COUNT:
            return int(row["value"])

        if row["n"] == 0:
            raise QueryError(
                f"{expression.func.value}({expression.field}) over an empty set",
                kind=QueryErrorKind.EMPTY_SET,
                field_name=expression.field,
            )

        value = row["value"]
        if expression.func == AggFunc.AVG:
            return float(value)
        if self.entity.kind_of(expression.field or "") == FieldKind.BOOLEAN:
            return bool(value)
        return value
