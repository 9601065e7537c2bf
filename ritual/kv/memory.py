"""
In-memory key-value store implementation.

This module provides a simple in-memory backend for:
- Unit tests
- Integration tests
- Local development without a data directory

Invariants:
    - All data is lost on close() or process exit
    - Values are stored as encoded JSON, so callers never share mutable state
      with the store

How to change safely:
    - Keep interface compatible with the KeyValueStore protocol
    - Add features to help with testing scenarios
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .base import StoreConnectionError, decode_value, encode_value

logger = logging.getLogger(__name__)


class InMemoryKeyValueStore:
    """In-memory implementation of KeyValueStore.

    Values are kept as JSON text, which gives the same copy semantics as a
    durable backend: mutating a dict returned by get() never changes what is
    stored.

    Thread safety:
        Uses an asyncio lock around writes. Safe to use from
        multiple coroutines.

    Example:
        >>> store = InMemoryKeyValueStore()
        >>> await store.connect()
        >>> await store.put("users", ["u1"])
        >>> await store.get("users")
        ['u1']
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._connected = False
        self._lock = asyncio.Lock()

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    async def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryKeyValueStore connected")

    async def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        self._data.clear()
        logger.debug("InMemoryKeyValueStore closed")

    def _check_connected(self) -> None:
        if not self._connected:
            raise StoreConnectionError("Not connected")

    async def get(self, key: str) -> Any | None:
        self._check_connected()
        raw = self._data.get(key)
        if raw is None:
            return None
        return decode_value(key, raw)

    async def put(self, key: str, value: Any) -> None:
        self._check_connected()
        encoded = encode_value(key, value)
        async with self._lock:
            self._data[key] = encoded

    async def delete(self, key: str) -> bool:
        self._check_connected()
        async with self._lock:
            return self._data.pop(key, None) is not None

    async def keys(self, prefix: str = "") -> list[str]:
        self._check_connected()
        return sorted(k for k in self._data if k.startswith(prefix))

    # Testing helpers

    def get_raw(self, key: str) -> str | None:
        """Get the encoded JSON stored under key (for testing)."""
        return self._data.get(key)

    def size(self) -> int:
        """Number of stored keys (for testing)."""
        return len(self._data)
