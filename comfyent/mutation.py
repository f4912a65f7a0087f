"""
Mutation builder for comfyent.

Creates, updates and deletes entity instances. Every payload is validated
against the entity definition before a statement is issued, and every
multi-statement mutation runs inside one atomic block of its executor: a
transaction of its own on a Store, a savepoint inside an open transaction.

Invariants:
    - Nothing is written for a payload that fails validation
    - create_bulk validates every element before inserting any and inserts
      all of them or none
    - update changes only the supplied fields
    - update and delete of a missing identity raise NotFoundError
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from .entity import Entity
from .errors import NotFoundError, ValidationError
from .predicates import Compound, Predicate
from .schema.types import ID_FIELD, EntityDef
from .store import Executor
from .validate import validate_create, validate_update

logger = logging.getLogger(__name__)


def _merge(data: Mapping[str, Any] | None, kwargs: dict[str, Any]) -> dict[str, Any]:
    payload = dict(data or {})
    payload.update(kwargs)
    return payload


class MutationBuilder:
    """Create/update/delete operations for one entity.

    Example:
        >>> users = MutationBuilder(User, store)
        >>> alice = users.create(name="Alice", age=30, email="alice@example.com")
        >>> users.update(alice.id, age=31).age
        31
        >>> users.delete(alice.id)
    """

    def __init__(self, entity: EntityDef, executor: Executor) -> None:
        """Initialize the builder.

        Args:
            entity: Entity definition
            executor: Store or transaction statements are issued through
        """
        self.entity = entity
        self._executor = executor

    def _insert_sql(self) -> str:
        names = self.entity.get_field_names()
        columns = ", ".join(f'"{n}"' for n in names)
        marks = ", ".join("?" for _ in names)
        return f'INSERT INTO "{self.entity.table}" ({columns}) VALUES ({marks})'

    def _insert(self, executor: Executor, values: dict[str, Any]) -> Entity:
        result = executor.execute(self._insert_sql(), list(values.values()))
        return Entity(entity=self.entity.name, id=result.lastrowid, values=dict(values))

    def create(self, data: Mapping[str, Any] | None = None, **kwargs: Any) -> Entity:
        """Create one instance.

        Args:
            data: Field values (or use kwargs)
            **kwargs: Field values

        Returns:
            The stored instance with its identity

        Raises:
            UnknownFieldError: If an undeclared field is supplied
            ValidationError: If a value violates a constraint
            StoreError: If the store rejects the row (e.g. UNIQUE_VIOLATION)
        """
        values = validate_create(self.entity, _merge(data, kwargs))
        created = self._insert(self._executor, values)
        logger.debug("Created entity", extra={"entity": self.entity.name, "id": created.id})
        return created

    def create_bulk(self, items: Iterable[Mapping[str, Any]]) -> list[Entity]:
        """Create many instances atomically.

        Every element is validated before any is inserted; a store failure
        on any element leaves none of them persisted.

        Args:
            items: Field values for each instance

        Returns:
            Stored instances, in input order

        Raises:
            ValidationError: Naming the first invalid element's field
            StoreError: If the store rejects any row
        """
        validated: list[dict[str, Any]] = []
        for index, item in enumerate(items):
            try:
                validated.append(validate_create(self.entity, dict(item)))
            except ValidationError as exc:
                exc.details["index"] = index
                raise

        if not validated:
            return []

        with self._executor.atomic() as tx:
            created = [self._insert(tx, values) for values in validated]

        logger.debug(
            "Created entities",
            extra={"entity": self.entity.name, "count": len(created)},
        )
        return created

    def _select_by_id(self, executor: Executor, identity: int) -> Entity | None:
        rows = executor.execute(
            f'SELECT * FROM "{self.entity.table}" WHERE "{ID_FIELD}" = ?',
            [identity],
        ).rows
        return Entity.from_row(self.entity, rows[0]) if rows else None

    def _not_found(self, identity: int) -> NotFoundError:
        return NotFoundError(
            f"{self.entity.name} {identity} not found",
            entity=self.entity.name,
            identity=identity,
        )

    def update(
        self,
        identity: int,
        data: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> Entity:
        """Update the supplied fields of one instance.

        Args:
            identity: Instance id
            data: Field values to change (or use kwargs)
            **kwargs: Field values to change

        Returns:
            The instance after the update

        Raises:
            NotFoundError: If no instance has this id
            ValidationError: If a supplied value violates a constraint
            StoreError: If the store rejects the change
        """
        values = validate_update(self.entity, _merge(data, kwargs))

        with self._executor.atomic() as tx:
            if values:
                assignments = ", ".join(f'"{name}" = ?' for name in values)
                result = tx.execute(
                    f'UPDATE "{self.entity.table}" SET {assignments} WHERE "{ID_FIELD}" = ?',
                    [*values.values(), identity],
                )
                if result.rowcount == 0:
                    raise self._not_found(identity)
            updated = self._select_by_id(tx, identity)
            if updated is None:
                raise self._not_found(identity)

        logger.debug(
            "Updated entity",
            extra={"entity": self.entity.name, "id": identity, "fields": list(values)},
        )
        return updated

    def delete(self, identity: int) -> None:
        """Delete one instance.

        Raises:
            NotFoundError: If no instance has this id (including one that
                was already deleted)
        """
        result = self._executor.execute(
            f'DELETE FROM "{self.entity.table}" WHERE "{ID_FIELD}" = ?',
            [identity],
        )
        if result.rowcount == 0:
            raise self._not_found(identity)
        logger.debug("Deleted entity", extra={"entity": self.entity.name, "id": identity})

    def _where(self, predicates: Iterable[Predicate]) -> tuple[str, list[Any]]:
        predicates = tuple(predicates)
        for predicate in predicates:
            predicate.check(self.entity)
        if not predicates:
            return "", []
        sql, params = Compound("AND", predicates).to_sql()
        return f" WHERE {sql}", params

    def update_where(
        self,
        predicates: Iterable[Predicate],
        data: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> int:
        """Update every instance matching the predicates.

        Returns:
            Number of instances changed
        """
        values = validate_update(self.entity, _merge(data, kwargs))
        where_sql, where_params = self._where(predicates)
        if not values:
            return 0

        assignments = ", ".join(f'"{name}" = ?' for name in values)
        result = self._executor.execute(
            f'UPDATE "{self.entity.table}" SET {assignments}{where_sql}',
            [*values.values(), *where_params],
        )
        logger.debug(
            "Updated entities",
            extra={"entity": self.entity.name, "count": result.rowcount},
        )
        return result.rowcount

    def delete_where(self, *predicates: Predicate) -> int:
        """Delete every instance matching the predicates.

        Returns:
            Number of instances deleted
        """
        where_sql, where_params = self._where(predicates)
        result = self._executor.execute(
            f'DELETE FROM "{self.entity.table}"{where_sql}',
            where_params,
        )
        logger.debug(
            "Deleted entities",
            extra={"entity": self.entity.name, "count": result.rowcount},
        )
        return result.rowcount
