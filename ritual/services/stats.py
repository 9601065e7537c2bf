"""
Progress and dashboard statistics over loaded habits.

Pure functions; nothing here touches the store. Weeks start on Sunday and
weekday numbers follow the frequency convention (0 = Sunday).

Every function that looks at a frequency handles all four variants; adding a
variant means adding a branch to each of them.
"""

from __future__ import annotations

import calendar
from dataclasses import dataclass
from datetime import date, timedelta
from enum import Enum
from typing import Any

from ..entity.types import (
    Daily,
    Frequency,
    Habit,
    MonthlyTarget,
    WeeklyDays,
    WeeklyTarget,
)

WEEKDAY_NAMES = ("Sun", "Mon", "Tue", "Wed", "Thu", "Fri", "Sat")


class Period(Enum):
    WEEK = "week"
    MONTH = "month"


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of calendar days."""

    start: date
    end: date

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1


def weekday_number(day: date) -> int:
    """Weekday with Sunday = 0, as used by weekly_days frequencies."""
    return (day.weekday() + 1) % 7


def period_range(period: Period, today: date) -> DateRange:
    """The week (Sunday to Saturday) or month containing today."""
    if period == Period.WEEK:
        start = today - timedelta(days=weekday_number(today))
        return DateRange(start, start + timedelta(days=6))
    last_day = calendar.monthrange(today.year, today.month)[1]
    return DateRange(today.replace(day=1), today.replace(day=last_day))


def _unexpected(frequency: Any) -> TypeError:
    return TypeError(f"Unhandled frequency variant: {type(frequency).__name__}")


def format_frequency(frequency: Frequency) -> str:
    if isinstance(frequency, Daily):
        return "Daily"
    if isinstance(frequency, WeeklyDays):
        return ", ".join(WEEKDAY_NAMES[d] for d in frequency.days)
    if isinstance(frequency, WeeklyTarget):
        return f"{frequency.count} time{'s' if frequency.count > 1 else ''} a week"
    if isinstance(frequency, MonthlyTarget):
        return f"{frequency.count} time{'s' if frequency.count > 1 else ''} a month"
    raise _unexpected(frequency)


def is_due(habit: Habit, day: date) -> bool:
    """Whether the habit is scheduled on day.

    Target frequencies can be completed on any day, so they are always due.
    """
    frequency = habit.frequency
    if isinstance(frequency, Daily):
        return True
    if isinstance(frequency, WeeklyDays):
        return weekday_number(day) in frequency.days
    if isinstance(frequency, (WeeklyTarget, MonthlyTarget)):
        return True
    raise _unexpected(frequency)


def period_target(habit: Habit, period: Period, today: date) -> int:
    """Completions the frequency expects in the period containing today.

    Targets are scaled between weeks and months by the number of days in the
    month and rounded, never below 1.
    """
    frequency = habit.frequency
    span = period_range(period, today)
    if isinstance(frequency, Daily):
        return span.days
    if isinstance(frequency, WeeklyDays):
        return sum(
            1
            for offset in range(span.days)
            if weekday_number(span.start + timedelta(days=offset)) in frequency.days
        )
    month_days = period_range(Period.MONTH, today).days
    if isinstance(frequency, WeeklyTarget):
        if period == Period.WEEK:
            return frequency.count
        return max(1, round(frequency.count * month_days / 7))
    if isinstance(frequency, MonthlyTarget):
        if period == Period.MONTH:
            return frequency.count
        return max(1, round(frequency.count * 7 / month_days))
    raise _unexpected(frequency)


def progress_for_period(habit: Habit, period: Period, today: date) -> float:
    """Sum of logged values inside the week or month containing today."""
    span = period_range(period, today)
    return sum(log.value for log in habit.logs if date.fromisoformat(log.date) in span)


def habit_progress(habit: Habit, today: date) -> dict[str, Any]:
    """Progress summary for one habit.

    The period is the goal's timeframe when the habit has a goal, otherwise
    the natural period of its frequency.
    """
    if habit.goal is not None:
        period = Period.WEEK if habit.goal.timeframe.value == "weekly" else Period.MONTH
        target: float = habit.goal.target
        unit = habit.goal.unit
    else:
        period = Period.MONTH if isinstance(habit.frequency, MonthlyTarget) else Period.WEEK
        target = period_target(habit, period, today)
        unit = None

    progress = progress_for_period(habit, period, today)
    return {
        "habitId": habit.id,
        "frequency": format_frequency(habit.frequency),
        "period": period.value,
        "progress": progress,
        "target": target,
        "unit": unit,
        "completed": progress >= target,
    }


def current_streak(habits: list[Habit], today: date) -> int:
    """Consecutive days ending today on which any habit was logged."""
    logged = {log.date for habit in habits for log in habit.logs}
    streak = 0
    day = today
    while day.isoformat() in logged:
        streak += 1
        day -= timedelta(days=1)
    return streak


def user_stats(user_id: str, habits: list[Habit], today: date) -> dict[str, Any]:
    """Dashboard statistics for a user's habits.

    Returns:
        Dict with userId, currentStreak, totalCompletions, completionRate
        (share of today's due habits already logged today, 0-1), totalHabits,
        bestDay (weekday with most completions this month), lastSevenDays
        and per-habit progress.
    """
    today_str = today.isoformat()
    due_today = [h for h in habits if is_due(h, today)]
    done_today = [h for h in due_today if h.log_for(today_str) is not None]
    completion_rate = len(done_today) / len(due_today) if due_today else 0.0

    last_seven = []
    for offset in range(6, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        completed = sum(1 for h in habits if h.log_for(day) is not None)
        last_seven.append({"date": day, "completed": completed})

    month = period_range(Period.MONTH, today)
    by_weekday: dict[str, int] = {}
    for offset in range(month.days):
        day = month.start + timedelta(days=offset)
        name = WEEKDAY_NAMES[weekday_number(day)]
        completed = sum(1 for h in habits if h.log_for(day.isoformat()) is not None)
        by_weekday[name] = by_weekday.get(name, 0) + completed
    best_day = "N/A"
    if by_weekday and max(by_weekday.values()) > 0:
        best_day = max(by_weekday, key=lambda name: by_weekday[name])

    return {
        "userId": user_id,
        "currentStreak": current_streak(habits, today),
        "totalCompletions": sum(len(h.logs) for h in habits),
        "completionRate": completion_rate,
        "totalHabits": len(habits),
        "bestDay": best_day,
        "lastSevenDays": last_seven,
        "habits": [habit_progress(h, today) for h in habits],
    }
