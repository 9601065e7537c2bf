"""
Entity and Index abstraction over the key-value store.

Every record kind is described by an EntityKind: a name, the name of its
global listing index, an initial state, a key extraction function and a JSON
codec. One generic Entity class implements the persistence mechanics for all
kinds, so key construction, serialization and default-value fallback are
written once.

Storage layout:
    <kind.name>:<id>           one JSON document per entity
    <kind.index_name>          global listing index (JSON list of ids)
    habits:<userId>            per-user listing index
    user:email:<email>         uniqueness index record {"id": <userId>}

Invariants:
    - get_state() of a missing entity returns the kind's initial state;
      callers that need "missing" as a distinct case call exists() first
    - mutate() is the only in-place update path; it is read-then-write, not
      compare-and-swap, so concurrent mutations of one key are last-writer-wins
    - Index.add() and Index.remove() are idempotent
    - create() and delete() keep the kind's global listing index in step

How to change safely:
    - Never change a kind's name: it is part of every stored key
    - Add an optimistic version field to the stored JSON before relying on
      mutate() under contention
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from ..kv.base import KeyValueStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class EntityKind(Generic[T]):
    """Capability contract binding a record type to its storage.

    Attributes:
        name: Entity name, used as the key prefix
        index_name: Key of the global listing index for this kind
        initial_state: Value returned for entities that are not stored
        key_of: Extracts the entity id from a state
        to_json: Encodes a state for storage
        from_json: Decodes a stored value
    """

    name: str
    index_name: str
    initial_state: T
    key_of: Callable[[T], str]
    to_json: Callable[[T], Any]
    from_json: Callable[[Any], T]

    def storage_key(self, entity_id: str) -> str:
        return f"{self.name}:{entity_id}"


class Index:
    """Ordered set of string ids stored under one key.

    Used both as a listing index (all ids of a kind, or all habit ids of a
    user) and as the backing list for enumeration. Order is insertion order.

    Example:
        >>> index = Index(store, "habits:u1")
        >>> await index.add("h1")
        >>> await index.add("h1")
        >>> await index.list()
        ['h1']
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self.store = store
        self.key = key

    async def list(self) -> list[str]:
        ids = await self.store.get(self.key)
        return list(ids) if ids else []

    async def add(self, item_id: str) -> None:
        ids = await self.list()
        if item_id in ids:
            return
        ids.append(item_id)
        await self.store.put(self.key, ids)

    async def remove(self, item_id: str) -> bool:
        """Remove an id. Returns True if it was present."""
        ids = await self.list()
        if item_id not in ids:
            return False
        ids.remove(item_id)
        await self.store.put(self.key, ids)
        return True

    async def clear(self) -> None:
        await self.store.delete(self.key)


class UniqueIndex:
    """Maps an alternate natural key to one canonical entity id.

    Each natural key is its own record, "<prefix>:<natural key>", holding
    {"id": <canonical id>}. Records are written once and never updated.
    Uniqueness is checked by the caller with exists() before claim(); there
    is no atomic insert-if-absent.
    """

    def __init__(self, store: KeyValueStore, prefix: str) -> None:
        self.store = store
        self.prefix = prefix

    def _key(self, natural_key: str) -> str:
        return f"{self.prefix}:{natural_key}"

    async def exists(self, natural_key: str) -> bool:
        return await self.store.get(self._key(natural_key)) is not None

    async def lookup(self, natural_key: str) -> str | None:
        """Return the canonical id for natural_key, or None."""
        record = await self.store.get(self._key(natural_key))
        if not record:
            return None
        return record.get("id") or None

    async def claim(self, natural_key: str, entity_id: str) -> None:
        await self.store.put(self._key(natural_key), {"id": entity_id})


class Entity(Generic[T]):
    """Typed handle on one stored record.

    Example:
        >>> habit = Entity(store, HABIT, "h1")
        >>> if await habit.exists():
        ...     updated = await habit.mutate(lambda h: replace(h, name="Run"))
    """

    def __init__(self, store: KeyValueStore, kind: EntityKind[T], entity_id: str) -> None:
        self.store = store
        self.kind = kind
        self.id = entity_id

    @property
    def key(self) -> str:
        return self.kind.storage_key(self.id)

    async def exists(self) -> bool:
        return await self.store.get(self.key) is not None

    async def get_state(self) -> T:
        """Return the stored state, or the kind's initial state if absent."""
        raw = await self.store.get(self.key)
        if raw is None:
            return self.kind.initial_state
        return self.kind.from_json(raw)

    async def save(self, state: T) -> None:
        await self.store.put(self.key, self.kind.to_json(state))

    async def mutate(self, fn: Callable[[T], T]) -> T:
        """Read the current state, apply fn, write and return the result.

        A missing entity is mutated from the kind's initial state.
        """
        current = await self.get_state()
        updated = fn(current)
        await self.save(updated)
        return updated

    @classmethod
    async def create(cls, store: KeyValueStore, kind: EntityKind[T], initial: T) -> Entity[T]:
        """Write a new record keyed by kind.key_of(initial).

        The caller guarantees the id is fresh; collisions are not checked.
        The id is added to the kind's global listing index after the write.
        """
        entity = cls(store, kind, kind.key_of(initial))
        await entity.save(initial)
        await Index(store, kind.index_name).add(entity.id)
        logger.debug("Created entity", extra={"kind": kind.name, "entity_id": entity.id})
        return entity

    @classmethod
    async def delete(cls, store: KeyValueStore, kind: EntityKind[T], entity_id: str) -> bool:
        """Remove a record and its global listing index membership.

        Returns:
            True if a record was removed
        """
        removed = await store.delete(kind.storage_key(entity_id))
        await Index(store, kind.index_name).remove(entity_id)
        if removed:
            logger.debug("Deleted entity", extra={"kind": kind.name, "entity_id": entity_id})
        return removed

    @classmethod
    async def list_all(cls, store: KeyValueStore, kind: EntityKind[T]) -> list[T]:
        """Load every entity in the kind's global listing index, in index order."""
        ids = await Index(store, kind.index_name).list()
        return [await cls(store, kind, entity_id).get_state() for entity_id in ids]
