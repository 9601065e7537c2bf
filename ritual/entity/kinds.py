"""
Concrete entity kinds and index keys.

USER and HABIT bind the domain types to their storage keys. Their initial
states are what get_state() returns for ids that are not stored.
"""

from __future__ import annotations

from ..kv.base import KeyValueStore
from .core import EntityKind, Index, UniqueIndex
from .types import Habit, User

USER: EntityKind[User] = EntityKind(
    name="user",
    index_name="users",
    initial_state=User(id="", name="", email=""),
    key_of=lambda user: user.id,
    to_json=User.to_json,
    from_json=User.from_json,
)

HABIT: EntityKind[Habit] = EntityKind(
    name="habit",
    index_name="habits",
    initial_state=Habit(id="", user_id="", name=""),
    key_of=lambda habit: habit.id,
    to_json=Habit.to_json,
    from_json=Habit.from_json,
)

EMAIL_INDEX_PREFIX = "user:email"


def user_habits_index(store: KeyValueStore, user_id: str) -> Index:
    """Listing index of the habits owned by a user."""
    return Index(store, f"habits:{user_id}")


def email_index(store: KeyValueStore) -> UniqueIndex:
    """Uniqueness index from email to user id."""
    return UniqueIndex(store, EMAIL_INDEX_PREFIX)
