"""
Habit service for Ritual.

CRUD over Habit entities plus the upsert-by-date progress log. Every
operation is scoped to the calling user.

Invariants:
    - A habit id is in habits:<userId> iff the habit exists
    - logs never hold two entries for the same date
    - Only log() changes logs; update() ignores them
    - id, userId and createdAt never change after create()
    - Ownership is checked by load_owned_habit() on every per-habit route

How to change safely:
    - New per-habit operations must start with load_owned_habit()
    - New editable fields go in EDITABLE_FIELDS and _apply_update()
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from ..entity import HABIT, Entity, Goal, Habit, HabitLog, parse_frequency, user_habits_index
from ..entity.types import DEFAULT_COLOR, Daily, parse_color, parse_log_date, parse_log_value
from ..errors import ForbiddenError, NotFoundError, ValidationError
from ..kv.base import KeyValueStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "color", "frequency", "goal")


async def load_owned_habit(store: KeyValueStore, user_id: str, habit_id: str) -> Entity[Habit]:
    """Load a habit and check that user_id owns it.

    Returns:
        Handle on the habit entity

    Raises:
        NotFoundError: If the habit does not exist
        ForbiddenError: If the habit belongs to another user
    """
    entity = Entity(store, HABIT, habit_id)
    if not await entity.exists():
        raise NotFoundError("Habit not found", "habit", habit_id)
    habit = await entity.get_state()
    if habit.user_id != user_id:
        logger.warning(
            "Rejected access to another user's habit",
            extra={"user_id": user_id, "habit_id": habit_id},
        )
        raise ForbiddenError("Forbidden", actor=user_id, resource_id=habit_id)
    return entity


def _apply_update(habit: Habit, fields: dict[str, Any]) -> Habit:
    """Validate and apply editable fields to a habit."""
    changes: dict[str, Any] = {}
    if "name" in fields:
        name = fields["name"]
        if not isinstance(name, str) or not name:
            raise ValidationError("Habit name is required", "name")
        changes["name"] = name
    if "color" in fields:
        changes["color"] = parse_color(fields["color"])
    if "frequency" in fields:
        changes["frequency"] = parse_frequency(fields["frequency"])
    if "goal" in fields:
        goal = fields["goal"]
        changes["goal"] = Goal.from_json(goal) if goal is not None else None
    return replace(habit, **changes)


def upsert_log(habit: Habit, date: str, value: float) -> Habit:
    """Replace any log for date with a new one appended at the end."""
    logs = [log for log in habit.logs if log.date != date]
    logs.append(HabitLog(date=date, value=value))
    return replace(habit, logs=tuple(logs))


class HabitService:
    """User-scoped habit operations.

    Attributes:
        store: Key-value store holding habits and listing indexes
    """

    def __init__(self, store: KeyValueStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self._clock = clock

    async def list(self, user_id: str) -> list[Habit]:
        """Habits in the user's listing index, in insertion order."""
        ids = await user_habits_index(self.store, user_id).list()
        return [await Entity(self.store, HABIT, habit_id).get_state() for habit_id in ids]

    async def get(self, user_id: str, habit_id: str) -> Habit:
        entity = await load_owned_habit(self.store, user_id, habit_id)
        return await entity.get_state()

    async def create(
        self,
        user_id: str,
        name: str | None,
        color: str | None = None,
        frequency: dict[str, Any] | None = None,
        goal: dict[str, Any] | None = None,
    ) -> Habit:
        """Create a habit owned by user_id.

        Raises:
            ValidationError: If name is missing or another field is malformed
        """
        if not name:
            raise ValidationError("Habit name is required", "name")

        habit = Habit(
            id=str(uuid.uuid4()),
            user_id=user_id,
            name=name,
            color=parse_color(color) if color else DEFAULT_COLOR,
            frequency=parse_frequency(frequency) if frequency else Daily(),
            logs=(),
            goal=Goal.from_json(goal) if goal else None,
            created_at=int(self._clock() * 1000),
        )

        await Entity.create(self.store, HABIT, habit)
        await user_habits_index(self.store, user_id).add(habit.id)

        logger.info("Created habit", extra={"user_id": user_id, "habit_id": habit.id})
        return habit

    async def update(self, user_id: str, habit_id: str, fields: dict[str, Any]) -> Habit:
        """Apply a partial update. logs, id, userId and createdAt are ignored.

        Raises:
            NotFoundError: If the habit does not exist
            ForbiddenError: If the caller does not own it
            ValidationError: If a field is malformed
        """
        entity = await load_owned_habit(self.store, user_id, habit_id)
        editable = {k: v for k, v in fields.items() if k in EDITABLE_FIELDS}
        # Validate before writing so a bad field leaves the record untouched
        _apply_update(await entity.get_state(), editable)
        return await entity.mutate(lambda current: _apply_update(current, editable))

    async def log(self, user_id: str, habit_id: str, date: Any, value: Any) -> Habit:
        """Record progress for a date, replacing any earlier entry for it.

        Raises:
            ValidationError: If date or value is missing or malformed
            NotFoundError: If the habit does not exist
            ForbiddenError: If the caller does not own it
        """
        if not date or value is None:
            raise ValidationError("Date and value are required")
        day = parse_log_date(date)
        amount = parse_log_value(value)

        entity = await load_owned_habit(self.store, user_id, habit_id)
        updated = await entity.mutate(lambda current: upsert_log(current, day, amount))

        logger.debug(
            "Logged habit progress",
            extra={"user_id": user_id, "habit_id": habit_id, "date": day},
        )
        return updated

    async def delete(self, user_id: str, habit_id: str) -> dict[str, Any]:
        """Delete a habit and drop it from the user's listing index.

        Returns:
            {"id": habit_id, "deleted": True}

        Raises:
            NotFoundError: If the habit does not exist or was already removed
            ForbiddenError: If the caller does not own it
        """
        await load_owned_habit(self.store, user_id, habit_id)

        deleted = await Entity.delete(self.store, HABIT, habit_id)
        if not deleted:
            raise NotFoundError("Habit not found", "habit", habit_id)
        await user_habits_index(self.store, user_id).remove(habit_id)

        logger.info("Deleted habit", extra={"user_id": user_id, "habit_id": habit_id})
        return {"id": habit_id, "deleted": deleted}
