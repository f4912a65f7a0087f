"""
Schema registry for comfyent.

The SchemaRegistry is the set of entity definitions a Client serves.
It provides:
- Registration of entity definitions
- Lookup by entity name
- Schema fingerprinting for consistency checks
- Freeze mechanism to prevent runtime modifications

Invariants:
    - Registry is mutable during startup, frozen before serving
    - Once frozen, no new entities can be registered
    - Entity names and table names are unique
    - Fingerprint changes when any definition changes

Example:
    >>> registry = SchemaRegistry()
    >>> registry.register_entity(User)
    >>> registry.freeze()
    'sha256:...'
    >>> registry.get_entity("User")
    EntityDef(name='User', ...)
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from collections.abc import Iterator

from .types import EntityDef

logger = logging.getLogger(__name__)


class RegistryFrozenError(Exception):
    """Registry is frozen and cannot be modified."""

    pass


class DuplicateRegistrationError(Exception):
    """Entity with this name or table is already registered."""

    pass


class SchemaRegistry:
    """Registry for entity definitions.

    Example:
        >>> registry = SchemaRegistry()
        >>> registry.register_entity(User)
        >>> registry.freeze()
    """

    def __init__(self) -> None:
        """Initialize empty registry."""
        self._entities: dict[str, EntityDef] = {}
        self._tables: dict[str, str] = {}
        self._frozen = False
        self._fingerprint: str | None = None
        self._lock = threading.Lock()

    @property
    def frozen(self) -> bool:
        """Whether registry is frozen."""
        return self._frozen

    @property
    def fingerprint(self) -> str | None:
        """Schema fingerprint (available after freeze)."""
        return self._fingerprint

    def register_entity(self, entity: EntityDef) -> None:
        """Register an entity definition.

        Args:
            entity: EntityDef to register

        Raises:
            RegistryFrozenError: If registry is frozen
            DuplicateRegistrationError: If name or table already registered
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Cannot register: registry is frozen")

            if entity.name in self._entities:
                raise DuplicateRegistrationError(f"entity '{entity.name}' already registered")

            if entity.table in self._tables:
                raise DuplicateRegistrationError(
                    f"table '{entity.table}' already registered by '{self._tables[entity.table]}'"
                )

            self._entities[entity.name] = entity
            self._tables[entity.table] = entity.name

    def get_entity(self, name: str) -> EntityDef | None:
        """Get entity by name."""
        return self._entities.get(name)

    def entities(self) -> Iterator[EntityDef]:
        """Iterate over entities in registration order."""
        yield from self._entities.values()

    def __contains__(self, name: object) -> bool:
        return name in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def freeze(self) -> str:
        """Freeze registry and compute fingerprint.

        Returns:
            Schema fingerprint

        Raises:
            RegistryFrozenError: If already frozen
        """
        with self._lock:
            if self._frozen:
                raise RegistryFrozenError("Registry is already frozen")

            self._fingerprint = self._compute_fingerprint()
            self._frozen = True
            logger.debug(
                "Schema registry frozen",
                extra={"entities": len(self._entities), "fingerprint": self._fingerprint},
            )
            return self._fingerprint

    def _compute_fingerprint(self) -> str:
        """Compute SHA-256 fingerprint."""
        canonical = json.dumps(self.to_dict(), sort_keys=True, separators=(",", ":"))
        hash_bytes = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        return f"sha256:{hash_bytes}"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "entities": [self._entities[name].to_dict() for name in sorted(self._entities)],
        }

    def to_json(self, indent: int | None = 2) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, sort_keys=True)

    def validate_all(self) -> list[str]:
        """Check the registered definitions for internal consistency.

        Returns:
            List of problems (empty when consistent)
        """
        errors: list[str] = []
        for entity in self._entities.values():
            seen: set[str] = set()
            for edge in entity.edges:
                if edge.name in seen:
                    errors.append(f"{entity.name}: duplicate edge '{edge.name}'")
                seen.add(edge.name)
                if edge.target not in self._entities:
                    errors.append(
                        f"{entity.name}.{edge.name}: target entity '{edge.target}' is not registered"
                    )
                if edge.name in {f.name for f in entity.fields}:
                    errors.append(f"{entity.name}: edge '{edge.name}' shadows a field")
        return errors


def build_registry(*entities: EntityDef) -> SchemaRegistry:
    """Create a registry holding the given entities (unfrozen)."""
    registry = SchemaRegistry()
    for entity in entities:
        registry.register_entity(entity)
    return registry
