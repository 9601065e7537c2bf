"""
Base protocol and errors for the key-value store abstraction.

This module defines the KeyValueStore protocol that all backends must
implement. The store is the only shared mutable resource in Ritual; every
entity and index is one key holding one JSON-serializable value.

Invariants:
    - Values round-trip through JSON (dicts, lists, strings, numbers, bools)
    - get() of a missing key returns None, never raises
    - Writes to a single key are last-writer-wins; there is no compare-and-swap

How to change safely:
    - Protocol changes require updating all implementations
    - Keep values JSON-only so backends stay interchangeable
"""

from __future__ import annotations

import json
import logging
from abc import abstractmethod
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import StoreConfig

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Base exception for key-value store operations."""

    pass


class StoreConnectionError(StoreError):
    """Store is not connected or the connection failed."""

    pass


class StoreSerializationError(StoreError):
    """Value could not be encoded to or decoded from JSON."""

    pass


def encode_value(key: str, value: Any) -> str:
    """Encode a value as JSON text.

    Raises:
        StoreSerializationError: If value is not JSON-serializable
    """
    try:
        # NaN and Infinity are not valid JSON
        return json.dumps(value, separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise StoreSerializationError(f"Value for key '{key}' is not JSON-serializable: {e}")


def decode_value(key: str, raw: str) -> Any:
    """Decode JSON text stored under key.

    Raises:
        StoreSerializationError: If the stored text is not valid JSON
    """
    try:
        return json.loads(raw)
    except json.JSONDecodeError as e:
        raise StoreSerializationError(f"Stored value for key '{key}' is not valid JSON: {e}")


@runtime_checkable
class KeyValueStore(Protocol):
    """Protocol for key-value store backends.

    All operations are coroutines; a request handler suspends on each
    read and write. Operations within one request are sequential, operations
    across requests interleave freely.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> await store.connect()
        >>> await store.put("habit:1", {"name": "Read"})
        >>> await store.get("habit:1")
        {'name': 'Read'}
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open the store. Must be called before any other operation.

        Raises:
            StoreConnectionError: If the backend cannot be opened
        """
        ...

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by the store."""
        ...

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the value stored under key, or None if absent."""
        ...

    @abstractmethod
    async def put(self, key: str, value: Any) -> None:
        """Store value under key, replacing any previous value."""
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""
        ...

    @abstractmethod
    async def keys(self, prefix: str = "") -> list[str]:
        """List keys starting with prefix, sorted.

        For inspection and tests only. Services enumerate through Index
        records, which keep insertion order.
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether the store is open."""
        ...


def create_kv_store(config: StoreConfig) -> KeyValueStore:
    """Factory function to create a key-value store from configuration.

    Args:
        config: Store configuration

    Returns:
        Appropriate KeyValueStore implementation

    Raises:
        ValueError: If backend is not supported
    """
    from ..config import KvBackend
    from .memory import InMemoryKeyValueStore
    from .sqlite import SqliteKeyValueStore

    if config.backend == KvBackend.MEMORY:
        return InMemoryKeyValueStore()
    elif config.backend == KvBackend.SQLITE:
        return SqliteKeyValueStore(
            data_dir=config.data_dir,
            db_file=config.db_file,
            wal_mode=config.wal_mode,
            busy_timeout_ms=config.busy_timeout_ms,
        )
    else:
        raise ValueError(f"Unsupported KV backend: {config.backend}")
