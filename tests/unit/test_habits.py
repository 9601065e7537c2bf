"""
Unit tests for the habit service.

Tests cover:
- Create defaults and validation
- Listing index order and membership
- Update field filtering (logs are never changed)
- Upsert-by-date logging
- Delete keeping the listing index in step
- Cross-user isolation through load_owned_habit
"""

import pytest
import pytest_asyncio

from ritual.entity import HABIT, Daily, Entity, Habit, Index, WeeklyDays
from ritual.errors import ForbiddenError, NotFoundError, ValidationError
from ritual.kv.memory import InMemoryKeyValueStore
from ritual.services.habits import HabitService, load_owned_habit, upsert_log


@pytest_asyncio.fixture
async def store():
    """Create a connected in-memory store."""
    kv = InMemoryKeyValueStore()
    await kv.connect()
    yield kv
    await kv.close()


@pytest.fixture
def habits(store):
    return HabitService(store, clock=lambda: 1_700_000_000.5)


class TestCreate:
    """Tests for HabitService.create."""

    @pytest.mark.asyncio
    async def test_defaults(self, habits, store):
        habit = await habits.create("u1", "Read")

        assert habit.user_id == "u1"
        assert habit.color == "#3b82f6"
        assert habit.frequency == Daily()
        assert habit.logs == ()
        assert habit.goal is None
        assert habit.created_at == 1_700_000_000_500
        assert await Entity(store, HABIT, habit.id).exists()
        assert await Index(store, "habits:u1").list() == [habit.id]

    @pytest.mark.asyncio
    async def test_explicit_fields(self, habits):
        habit = await habits.create(
            "u1",
            "Run",
            color="#ff0000",
            frequency={"type": "weekly_days", "days": [1, 3]},
            goal={"target": 10, "unit": "km", "timeframe": "weekly"},
        )

        assert habit.color == "#ff0000"
        assert habit.frequency == WeeklyDays(days=(1, 3))
        assert habit.goal.unit == "km"

    @pytest.mark.asyncio
    async def test_name_required(self, habits, store):
        with pytest.raises(ValidationError):
            await habits.create("u1", None)
        assert await Index(store, "habits:u1").list() == []

    @pytest.mark.asyncio
    async def test_bad_frequency_rejected(self, habits, store):
        with pytest.raises(ValidationError):
            await habits.create("u1", "Read", frequency={"type": "weekly_target", "count": 9})
        assert await Index(store, "habits:u1").list() == []


class TestList:
    """Tests for HabitService.list."""

    @pytest.mark.asyncio
    async def test_insertion_order_and_scoping(self, habits):
        first = await habits.create("u1", "A")
        await habits.create("u2", "B")
        third = await habits.create("u1", "C")

        listed = await habits.list("u1")

        assert [h.id for h in listed] == [first.id, third.id]

    @pytest.mark.asyncio
    async def test_create_then_list_shows_once(self, habits):
        habit = await habits.create("u1", "A")

        ids = [h.id for h in await habits.list("u1")]

        assert ids.count(habit.id) == 1


class TestUpdate:
    """Tests for HabitService.update."""

    @pytest.mark.asyncio
    async def test_updates_editable_fields(self, habits):
        habit = await habits.create("u1", "Read")

        updated = await habits.update(
            "u1",
            habit.id,
            {"name": "Read more", "frequency": {"type": "monthly_target", "count": 12}},
        )

        assert updated.name == "Read more"
        assert updated.frequency.to_json() == {"type": "monthly_target", "count": 12}
        assert updated.created_at == habit.created_at

    @pytest.mark.asyncio
    async def test_logs_and_identity_fields_ignored(self, habits):
        habit = await habits.create("u1", "Read")
        await habits.log("u1", habit.id, "2024-01-01", 1)

        updated = await habits.update(
            "u1",
            habit.id,
            {
                "logs": [{"date": "1999-01-01", "value": 99}],
                "userId": "u2",
                "id": "other",
                "createdAt": 0,
            },
        )

        assert [log.date for log in updated.logs] == ["2024-01-01"]
        assert updated.user_id == "u1"
        assert updated.id == habit.id
        assert updated.created_at == habit.created_at

    @pytest.mark.asyncio
    async def test_goal_can_be_cleared(self, habits):
        habit = await habits.create(
            "u1", "Run", goal={"target": 5, "unit": "km", "timeframe": "monthly"}
        )

        updated = await habits.update("u1", habit.id, {"goal": None})

        assert updated.goal is None

    @pytest.mark.asyncio
    async def test_invalid_field_leaves_habit_unchanged(self, habits):
        habit = await habits.create("u1", "Read")

        with pytest.raises(ValidationError):
            await habits.update("u1", habit.id, {"name": "New", "color": "blue"})

        assert (await habits.get("u1", habit.id)).name == "Read"

    @pytest.mark.asyncio
    async def test_missing_habit(self, habits):
        with pytest.raises(NotFoundError):
            await habits.update("u1", "nope", {"name": "x"})


class TestLog:
    """Tests for HabitService.log."""

    @pytest.mark.asyncio
    async def test_same_date_replaces(self, habits):
        habit = await habits.create("u1", "Read")

        await habits.log("u1", habit.id, "2024-01-01", 1)
        updated = await habits.log("u1", habit.id, "2024-01-01", 2)

        assert [log.to_json() for log in updated.logs] == [{"date": "2024-01-01", "value": 2}]

    @pytest.mark.asyncio
    async def test_replaced_entry_moves_to_end(self, habits):
        habit = await habits.create("u1", "Read")

        await habits.log("u1", habit.id, "2024-01-01", 1)
        await habits.log("u1", habit.id, "2024-01-02", 1)
        updated = await habits.log("u1", habit.id, "2024-01-01", 3)

        assert [(log.date, log.value) for log in updated.logs] == [
            ("2024-01-02", 1),
            ("2024-01-01", 3),
        ]

    @pytest.mark.asyncio
    async def test_no_duplicate_dates_after_many_logs(self, habits):
        habit = await habits.create("u1", "Read")
        dates = ["2024-01-01", "2024-01-02", "2024-01-01", "2024-01-03", "2024-01-02"]

        for value, day in enumerate(dates):
            updated = await habits.log("u1", habit.id, day, value)

        logged = [log.date for log in updated.logs]
        assert len(logged) == len(set(logged)) == 3

    @pytest.mark.asyncio
    async def test_zero_value_allowed(self, habits):
        habit = await habits.create("u1", "Read")

        updated = await habits.log("u1", habit.id, "2024-01-01", 0)

        assert updated.logs[0].value == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "day,value",
        [
            (None, 1),
            ("2024-01-01", None),
            ("01/01/2024", 1),
            ("2024-01-01", float("inf")),
            ("2024-01-01", float("nan")),
        ],
    )
    async def test_invalid_input(self, habits, day, value):
        habit = await habits.create("u1", "Read")

        with pytest.raises(ValidationError):
            await habits.log("u1", habit.id, day, value)

    @pytest.mark.asyncio
    async def test_non_finite_value_leaves_habit_readable(self, habits):
        """A rejected infinite value is never stored."""
        habit = await habits.create("u1", "Read")

        with pytest.raises(ValidationError):
            await habits.log("u1", habit.id, "2024-01-01", float("inf"))

        assert (await habits.get("u1", habit.id)).logs == ()
        assert [h.id for h in await habits.list("u1")] == [habit.id]

    def test_upsert_log_is_pure(self):
        habit = Habit(id="h1", user_id="u1", name="Read")
        updated = upsert_log(habit, "2024-01-01", 1)

        assert habit.logs == ()
        assert len(updated.logs) == 1


class TestDelete:
    """Tests for HabitService.delete."""

    @pytest.mark.asyncio
    async def test_delete_then_list_excludes(self, habits, store):
        keep = await habits.create("u1", "Keep")
        drop = await habits.create("u1", "Drop")

        result = await habits.delete("u1", drop.id)

        assert result == {"id": drop.id, "deleted": True}
        assert [h.id for h in await habits.list("u1")] == [keep.id]
        assert await Index(store, "habits").list() == [keep.id]

    @pytest.mark.asyncio
    async def test_delete_missing(self, habits):
        with pytest.raises(NotFoundError):
            await habits.delete("u1", "nope")

    @pytest.mark.asyncio
    async def test_delete_twice(self, habits):
        habit = await habits.create("u1", "Read")
        await habits.delete("u1", habit.id)

        with pytest.raises(NotFoundError):
            await habits.delete("u1", habit.id)


class TestOwnership:
    """Cross-user isolation."""

    @pytest.mark.asyncio
    async def test_load_owned_habit(self, habits, store):
        habit = await habits.create("u1", "Read")

        entity = await load_owned_habit(store, "u1", habit.id)
        assert entity.id == habit.id

        with pytest.raises(ForbiddenError):
            await load_owned_habit(store, "u2", habit.id)
        with pytest.raises(NotFoundError):
            await load_owned_habit(store, "u1", "missing")

    @pytest.mark.asyncio
    async def test_other_user_cannot_touch_habit(self, habits):
        habit = await habits.create("owner", "Read")
        await habits.log("owner", habit.id, "2024-01-01", 1)
        before = await habits.get("owner", habit.id)

        with pytest.raises(ForbiddenError):
            await habits.update("intruder", habit.id, {"name": "Hacked"})
        with pytest.raises(ForbiddenError):
            await habits.log("intruder", habit.id, "2024-01-01", 5)
        with pytest.raises(ForbiddenError):
            await habits.delete("intruder", habit.id)
        with pytest.raises(ForbiddenError):
            await habits.get("intruder", habit.id)

        assert await habits.get("owner", habit.id) == before
        assert [h.id for h in await habits.list("owner")] == [habit.id]
