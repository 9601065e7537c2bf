"""
Domain types for Ritual entities.

This module defines the records stored in the key-value store:
- User: account record (password hash never leaves the service)
- Habit: a tracked habit with its recurrence, goal and progress logs
- Frequency: tagged union of Daily, WeeklyDays, WeeklyTarget, MonthlyTarget
- HabitLog: one day of progress
- Goal: optional numeric target per week or month

Invariants:
    - JSON field names are camelCase, matching the wire format
    - Frequency variants are discriminated by the "type" field
    - A Habit's logs hold at most one entry per date (maintained by the
      habit service, not by this module)

How to change safely:
    - Add new optional fields with defaults in from_json
    - Add new frequency variants to FrequencyType, parse_frequency and every
      consumer in ritual.services.stats
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from ..errors import ValidationError

COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")
DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

DEFAULT_COLOR = "#3b82f6"
INITIAL_COLOR = "#000000"


def _is_number(value: Any) -> bool:
    """Finite int or float, bools excluded."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


# =============================================================================
# Frequency
# =============================================================================


class FrequencyType(Enum):
    """Discriminator values for the frequency variants."""

    DAILY = "daily"
    WEEKLY_DAYS = "weekly_days"
    WEEKLY_TARGET = "weekly_target"
    MONTHLY_TARGET = "monthly_target"


@dataclass(frozen=True)
class Daily:
    """Every day."""

    def to_json(self) -> dict[str, Any]:
        return {"type": FrequencyType.DAILY.value}


@dataclass(frozen=True)
class WeeklyDays:
    """Specific weekdays, 0 = Sunday through 6 = Saturday."""

    days: tuple[int, ...]

    def __post_init__(self) -> None:
        if not self.days:
            raise ValidationError("weekly_days frequency needs at least one day", "frequency")
        for day in self.days:
            if not _is_int(day) or not 0 <= day <= 6:
                raise ValidationError(f"Invalid weekday {day!r}; expected 0-6", "frequency")

    def to_json(self) -> dict[str, Any]:
        return {"type": FrequencyType.WEEKLY_DAYS.value, "days": list(self.days)}


@dataclass(frozen=True)
class WeeklyTarget:
    """A number of completions per week, on any days."""

    count: int

    def __post_init__(self) -> None:
        if not _is_int(self.count) or not 1 <= self.count <= 7:
            raise ValidationError("weekly_target count must be between 1 and 7", "frequency")

    def to_json(self) -> dict[str, Any]:
        return {"type": FrequencyType.WEEKLY_TARGET.value, "count": self.count}


@dataclass(frozen=True)
class MonthlyTarget:
    """A number of completions per month, on any days."""

    count: int

    def __post_init__(self) -> None:
        if not _is_int(self.count) or not 1 <= self.count <= 31:
            raise ValidationError("monthly_target count must be between 1 and 31", "frequency")

    def to_json(self) -> dict[str, Any]:
        return {"type": FrequencyType.MONTHLY_TARGET.value, "count": self.count}


Frequency = Union[Daily, WeeklyDays, WeeklyTarget, MonthlyTarget]


def parse_frequency(data: Any) -> Frequency:
    """Parse a frequency from its JSON form.

    Args:
        data: Dict with a "type" discriminator and the variant's payload

    Returns:
        One of the Frequency variants

    Raises:
        ValidationError: If the type is unknown or the payload is malformed
    """
    if not isinstance(data, dict):
        raise ValidationError("frequency must be an object", "frequency")

    type_str = data.get("type")
    try:
        freq_type = FrequencyType(type_str)
    except ValueError:
        valid = ", ".join(t.value for t in FrequencyType)
        raise ValidationError(f"Unknown frequency type {type_str!r}. Must be one of: {valid}", "frequency")

    if freq_type == FrequencyType.DAILY:
        return Daily()
    if freq_type == FrequencyType.WEEKLY_DAYS:
        days = data.get("days")
        if not isinstance(days, list) or not all(_is_int(d) for d in days):
            raise ValidationError("weekly_days frequency needs a list of weekday numbers", "frequency")
        # A set of weekdays, kept sorted for stable output
        return WeeklyDays(days=tuple(sorted(set(days))))
    if freq_type == FrequencyType.WEEKLY_TARGET:
        return WeeklyTarget(count=data.get("count"))
    return MonthlyTarget(count=data.get("count"))


# =============================================================================
# Goal and logs
# =============================================================================


class GoalTimeframe(Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"


@dataclass(frozen=True)
class Goal:
    """Numeric target for a habit over a week or a month.

    Attributes:
        target: Amount to reach within the timeframe
        unit: Free-form unit label ("pages", "km", ...)
        timeframe: Period the target applies to
    """

    target: float
    unit: str
    timeframe: GoalTimeframe

    def to_json(self) -> dict[str, Any]:
        return {"target": self.target, "unit": self.unit, "timeframe": self.timeframe.value}

    @classmethod
    def from_json(cls, data: Any) -> Goal:
        """Parse a goal.

        Raises:
            ValidationError: If any of target, unit, timeframe is missing or invalid
        """
        if not isinstance(data, dict):
            raise ValidationError("goal must be an object", "goal")
        target = data.get("target")
        if not _is_number(target) or target <= 0:
            raise ValidationError("goal target must be a positive finite number", "goal")
        unit = data.get("unit")
        if not isinstance(unit, str) or not unit:
            raise ValidationError("goal unit is required", "goal")
        try:
            timeframe = GoalTimeframe(data.get("timeframe"))
        except ValueError:
            raise ValidationError("goal timeframe must be 'weekly' or 'monthly'", "goal")
        return cls(target=target, unit=unit, timeframe=timeframe)


@dataclass(frozen=True)
class HabitLog:
    """Progress for one calendar day."""

    date: str
    value: float

    def to_json(self) -> dict[str, Any]:
        return {"date": self.date, "value": self.value}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> HabitLog:
        return cls(date=data["date"], value=data["value"])


def parse_log_date(value: Any) -> str:
    """Validate a YYYY-MM-DD calendar day string.

    Raises:
        ValidationError: If value is not a real calendar date in that format
    """
    if not isinstance(value, str) or not DATE_PATTERN.match(value):
        raise ValidationError("date must be a YYYY-MM-DD string", "date")
    try:
        datetime.strptime(value, "%Y-%m-%d")
    except ValueError:
        raise ValidationError(f"date {value!r} is not a valid calendar day", "date")
    return value


def parse_log_value(value: Any) -> float:
    """Validate a log value.

    Raises:
        ValidationError: If value is not a finite number
    """
    if not _is_number(value):
        raise ValidationError("value must be a finite number", "value")
    return value


def parse_color(value: Any) -> str:
    """Validate a #rrggbb color token.

    Raises:
        ValidationError: If value is not a 6-hex-digit color
    """
    if not isinstance(value, str) or not COLOR_PATTERN.match(value):
        raise ValidationError("color must look like #rrggbb", "color")
    return value


# =============================================================================
# Entities
# =============================================================================


@dataclass(frozen=True)
class User:
    """Account record.

    Attributes:
        id: Opaque stable identifier, assigned at creation
        name: Display name (mutable)
        email: Natural key, immutable
        password: Password hash; present only in the stored record
    """

    id: str
    name: str
    email: str
    password: str | None = None

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name, "email": self.email}
        if self.password is not None:
            data["password"] = self.password
        return data

    def public_json(self) -> dict[str, Any]:
        """JSON form with the password hash stripped."""
        return {"id": self.id, "name": self.name, "email": self.email}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> User:
        return cls(
            id=data.get("id", ""),
            name=data.get("name", ""),
            email=data.get("email", ""),
            password=data.get("password"),
        )


@dataclass(frozen=True)
class Habit:
    """A tracked habit.

    Attributes:
        id: Identifier, assigned at creation
        user_id: Owning user, immutable
        name: Display name
        color: #rrggbb color token
        frequency: Recurrence variant
        logs: Progress entries, at most one per date, in logging order
        goal: Optional numeric target
        created_at: Creation timestamp (Unix ms)
    """

    id: str
    user_id: str
    name: str
    color: str = INITIAL_COLOR
    frequency: Frequency = field(default_factory=Daily)
    logs: tuple[HabitLog, ...] = ()
    goal: Goal | None = None
    created_at: int = 0

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "userId": self.user_id,
            "name": self.name,
            "color": self.color,
            "frequency": self.frequency.to_json(),
            "logs": [log.to_json() for log in self.logs],
            "createdAt": self.created_at,
        }
        if self.goal is not None:
            data["goal"] = self.goal.to_json()
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Habit:
        goal = data.get("goal")
        return cls(
            id=data.get("id", ""),
            user_id=data.get("userId", ""),
            name=data.get("name", ""),
            color=data.get("color", INITIAL_COLOR),
            frequency=parse_frequency(data.get("frequency") or {"type": "daily"}),
            logs=tuple(HabitLog.from_json(log) for log in data.get("logs", [])),
            goal=Goal.from_json(goal) if goal is not None else None,
            created_at=data.get("createdAt", 0),
        )

    def log_for(self, date: str) -> HabitLog | None:
        """Return the log entry for a date, if any."""
        for log in self.logs:
            if log.date == date:
                return log
        return None
