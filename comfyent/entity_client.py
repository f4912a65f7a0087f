"""
Per-entity operations bound to an executor.

An EntityClient exposes the mutation and query operations of one entity
against one executor: the Store for auto-committed calls, or a Tx for calls
inside a transaction. Client and Tx hand them out through EntityAccess.
"""

from __future__ import annotations

from .entity import Entity
from .errors import NotFoundError
from .mutation import MutationBuilder
from .query import Query
from .schema.registry import SchemaRegistry
from .store import Executor


class EntityClient(MutationBuilder):
    """Create, read, update and delete for one entity.

    Example:
        >>> alice = client.user.create(name="Alice", age=30, email="alice@example.com")
        >>> client.user.get(alice.id).name
        'Alice'
    """

    def query(self) -> Query:
        """Start a query over all instances of the entity."""
        return Query(self.entity, self._executor)

    def get(self, identity: int) -> Entity:
        """Read one instance by identity.

        Raises:
            NotFoundError: If no instance has this id
        """
        found = self._select_by_id(self._executor, identity)
        if found is None:
            raise self._not_found(identity)
        return found


class EntityAccess:
    """Entity lookup shared by Client and Tx."""

    _registry: SchemaRegistry

    def _entity_executor(self) -> Executor:
        raise NotImplementedError

    def entity(self, name: str) -> EntityClient:
        """Operations for a registered entity.

        Raises:
            NotFoundError: If no entity with this name is registered
        """
        entity = self._registry.get_entity(name)
        if entity is None:
            raise NotFoundError(f"Unknown entity '{name}'", entity=name)
        return EntityClient(entity, self._entity_executor())

    @property
    def user(self) -> EntityClient:
        """Operations for the User entity."""
        return self.entity("User")
