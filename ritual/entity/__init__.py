"""
Entity and index layer for Ritual.

This package provides:
- EntityKind / Entity: typed records, one key per entity
- Index: ordered id lists for enumeration
- UniqueIndex: alternate-key lookup (email -> user id)
- USER / HABIT: the concrete kinds
"""

from .core import Entity, EntityKind, Index, UniqueIndex
from .kinds import HABIT, USER, email_index, user_habits_index
from .types import (
    Daily,
    Frequency,
    FrequencyType,
    Goal,
    GoalTimeframe,
    Habit,
    HabitLog,
    MonthlyTarget,
    User,
    WeeklyDays,
    WeeklyTarget,
    parse_frequency,
)

__all__ = [
    "Entity",
    "EntityKind",
    "Index",
    "UniqueIndex",
    "USER",
    "HABIT",
    "email_index",
    "user_habits_index",
    "Daily",
    "WeeklyDays",
    "WeeklyTarget",
    "MonthlyTarget",
    "Frequency",
    "FrequencyType",
    "Goal",
    "GoalTimeframe",
    "Habit",
    "HabitLog",
    "User",
    "parse_frequency",
]
