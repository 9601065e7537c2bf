"""
Key-value store backends for Ritual.

The store is an external collaborator: get/put/delete of JSON values keyed
by string. Backends:
- InMemoryKeyValueStore: tests and local development
- SqliteKeyValueStore: durable single-file storage
"""

from .base import (
    KeyValueStore,
    StoreConnectionError,
    StoreError,
    StoreSerializationError,
    create_kv_store,
)
from .memory import InMemoryKeyValueStore
from .sqlite import SqliteKeyValueStore

__all__ = [
    "KeyValueStore",
    "StoreError",
    "StoreConnectionError",
    "StoreSerializationError",
    "create_kv_store",
    "InMemoryKeyValueStore",
    "SqliteKeyValueStore",
]
