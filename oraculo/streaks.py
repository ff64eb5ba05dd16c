"""Habit streaks and per-habit check-in grids."""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Iterable

from oraculo.clock import parse_date_key
from oraculo.models import HabitCheckIn

# Safety cap against corrupted histories, not a domain rule.
MAX_STREAK_DAYS = 365


def _dates_for(habit_id: str, check_ins: Iterable[HabitCheckIn]) -> set[str]:
    return {c.date for c in check_ins if c.habit_id == habit_id}


def current_streak(habit_id: str, check_ins: Iterable[HabitCheckIn], today: str) -> int:
    """Consecutive checked-in days ending today, or yesterday if today is open.

    Not having checked in yet today does not break the streak. Duplicate
    check-ins count once and future dates are never reached by the walk.
    """
    dates = _dates_for(habit_id, check_ins)
    if not dates:
        return 0

    day = parse_date_key(today)
    if today not in dates:
        day -= timedelta(days=1)

    streak = 0
    for _ in range(MAX_STREAK_DAYS):
        if day.isoformat() not in dates:
            break
        streak += 1
        day -= timedelta(days=1)
    return streak


def is_checked_in_today(habit_id: str, check_ins: Iterable[HabitCheckIn], today: str) -> bool:
    return any(c.habit_id == habit_id and c.date == today for c in check_ins)


def habit_grid(
    habit_id: str,
    check_ins: Iterable[HabitCheckIn],
    today: str,
    days: int = 90,
) -> list[dict[str, Any]]:
    """Binary done/not-done grid for the last *days* days, oldest first."""
    dates = _dates_for(habit_id, check_ins)
    end = parse_date_key(today)
    grid = []
    for offset in range(days - 1, -1, -1):
        d = end - timedelta(days=offset)
        key = d.isoformat()
        done = key in dates
        grid.append({
            "date": key,
            "completed": done,
            "level": 4 if done else 0,
            "isToday": offset == 0,
            "weekday": d.weekday(),
        })
    return grid
