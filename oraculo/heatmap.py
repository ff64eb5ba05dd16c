"""Activity heatmap and period statistics.

Reads the ledger and habit check-ins; never mutates anything.

Weights per day: completed task 1, habit check-in 2, journal entry 1.
Levels are a fixed step function of the weighted count: one check-in plus
one task is level 2, level 4 needs seven or more.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from oraculo.clock import date_key, parse_date_key, parse_timestamp
from oraculo.models import (
    HORIZON_ORDER,
    INTAKE,
    JOURNAL_WRITTEN,
    PROJECT_COMPLETED,
    TASK_COMPLETED,
    ActivityEvent,
    Document,
    HabitCheckIn,
)
from oraculo.streaks import current_streak

TASK_WEIGHT = 1
HABIT_WEIGHT = 2
JOURNAL_WEIGHT = 1

GRID_WEEKS = 53

PERIODS = ("today", "week", "month", "quarter", "year")


def activity_level(count: int) -> int:
    """Map a weighted daily count to a 0-4 level."""
    if count <= 0:
        return 0
    if count <= 2:
        return 1
    if count <= 4:
        return 2
    if count <= 6:
        return 3
    return 4


def _event_day(event: ActivityEvent, tz: ZoneInfo | None) -> str | None:
    moment = parse_timestamp(event.timestamp)
    if moment is None:
        return None
    return date_key(moment, tz)


# ── Year grid ─────────────────────────────────────────────────


@dataclass(frozen=True)
class HeatmapCell:
    date: str
    raw_count: int
    level: int
    is_today: bool
    is_future: bool
    in_target_year: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "rawCount": self.raw_count,
            "level": self.level,
            "isToday": self.is_today,
            "isFuture": self.is_future,
            "inTargetYear": self.in_target_year,
        }


def daily_counts(
    events: Iterable[ActivityEvent],
    check_ins: Iterable[HabitCheckIn],
    journal_entries: Iterable[ActivityEvent],
    tz: ZoneInfo | None = None,
) -> dict[str, int]:
    """Weighted activity per date key."""
    counts: dict[str, int] = defaultdict(int)
    for e in events:
        if e.kind != TASK_COMPLETED:
            continue
        day = _event_day(e, tz)
        if day:
            counts[day] += TASK_WEIGHT
    for c in check_ins:
        if c.date:
            counts[c.date] += HABIT_WEIGHT
    for j in journal_entries:
        day = _event_day(j, tz)
        if day:
            counts[day] += JOURNAL_WEIGHT
    return counts


def grid_start(year: int) -> date:
    """Monday on or before January 1 of *year*."""
    jan1 = date(year, 1, 1)
    return jan1 - timedelta(days=jan1.weekday())


def build_year_grid(
    events: Iterable[ActivityEvent],
    check_ins: Iterable[HabitCheckIn],
    journal_entries: Iterable[ActivityEvent],
    year: int,
    today: str,
    tz: ZoneInfo | None = None,
) -> list[list[HeatmapCell]]:
    """53 Monday-first weeks covering *year*.

    Cells outside the target year (leading days of the prior year, trailing
    days of the next) and future cells always get level 0.
    """
    counts = daily_counts(events, check_ins, journal_entries, tz)
    today_date = parse_date_key(today)
    current = grid_start(year)
    grid = []
    for _ in range(GRID_WEEKS):
        week = []
        for _ in range(7):
            key = current.isoformat()
            raw = counts.get(key, 0)
            in_year = current.year == year
            future = current > today_date
            week.append(HeatmapCell(
                date=key,
                raw_count=raw,
                level=activity_level(raw) if in_year and not future else 0,
                is_today=current == today_date,
                is_future=future,
                in_target_year=in_year,
            ))
            current += timedelta(days=1)
        grid.append(week)
    return grid


# ── Periods ───────────────────────────────────────────────────


def period_range(period: str, today: str) -> tuple[date, date]:
    """Calendar-aligned [start, end) for a period containing *today*.

    Weeks start on Monday; quarters start in Jan/Apr/Jul/Oct.
    """
    d = parse_date_key(today)
    if period == "today":
        return d, d + timedelta(days=1)
    if period == "week":
        start = d - timedelta(days=d.weekday())
        return start, start + timedelta(days=7)
    if period == "month":
        start = d.replace(day=1)
        return start, _add_months(start, 1)
    if period == "quarter":
        start = date(d.year, (d.month - 1) // 3 * 3 + 1, 1)
        return start, _add_months(start, 3)
    if period == "year":
        return date(d.year, 1, 1), date(d.year + 1, 1, 1)
    raise ValueError(f"Unknown period: {period}")


def _add_months(d: date, months: int) -> date:
    month = d.month - 1 + months
    return date(d.year + month // 12, month % 12 + 1, 1)


def _in_range(key: str | None, start: date, end: date) -> bool:
    if not key:
        return False
    try:
        return start <= parse_date_key(key) < end
    except ValueError:
        return False


@dataclass
class PeriodStats:
    period: str = "week"
    total_tasks: int = 0
    tasks_by_horizon: dict[str, int] = field(default_factory=dict)
    habit_days: int = 0
    period_days: int = 0
    habit_percentage: int = 0
    current_streak: int = 0
    journal_entries: int = 0
    projects_completed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "period": self.period,
            "totalTasks": self.total_tasks,
            "tasksByHorizon": self.tasks_by_horizon,
            "habitDays": self.habit_days,
            "periodDays": self.period_days,
            "habitPercentage": self.habit_percentage,
            "currentStreak": self.current_streak,
            "journalEntries": self.journal_entries,
            "projectsCompleted": self.projects_completed,
        }


def period_stats(
    document: Document,
    period: str,
    today: str,
    tz: ZoneInfo | None = None,
) -> PeriodStats:
    """Totals for the calendar period containing *today*.

    Habit figures follow the active habit, or every habit when none is
    active. The percentage is taken over the full period, future days
    included.
    """
    start, end = period_range(period, today)
    stats = PeriodStats(period=period, period_days=(end - start).days)
    stats.tasks_by_horizon = {h: 0 for h in HORIZON_ORDER if h != INTAKE}

    for e in document.events:
        if not _in_range(_event_day(e, tz), start, end):
            continue
        if e.kind == TASK_COMPLETED:
            stats.total_tasks += 1
            if e.horizon in stats.tasks_by_horizon:
                stats.tasks_by_horizon[e.horizon] += 1
        elif e.kind == JOURNAL_WRITTEN:
            stats.journal_entries += 1
        elif e.kind == PROJECT_COMPLETED:
            stats.projects_completed += 1

    habit_id = document.active_habit_id
    habit_dates = {
        c.date for c in document.check_ins
        if (habit_id is None or c.habit_id == habit_id) and _in_range(c.date, start, end)
    }
    stats.habit_days = len(habit_dates)
    if stats.period_days:
        stats.habit_percentage = math.floor(stats.habit_days * 100 / stats.period_days + 0.5)
    if habit_id:
        stats.current_streak = current_streak(habit_id, document.check_ins, today)
    return stats


# ── Recap ─────────────────────────────────────────────────────

PERIOD_NAMES = {
    "today": "today",
    "week": "this week",
    "month": "this month",
    "quarter": "this quarter",
    "year": "this year",
}


def _plural(n: int, word: str, plural: str | None = None) -> str:
    return f"{n} {word if n == 1 else (plural or word + 's')}"


def recap_text(stats: PeriodStats) -> str:
    """One-sentence narrative summary of a period's stats."""
    name = PERIOD_NAMES.get(stats.period, stats.period)
    parts = []
    if stats.total_tasks:
        parts.append(f"you completed {_plural(stats.total_tasks, 'task')}")
    if stats.habit_days:
        parts.append(
            f"kept your habit {stats.habit_days} of {stats.period_days} days "
            f"({stats.habit_percentage}%)"
        )
    if stats.journal_entries:
        parts.append(f"wrote {_plural(stats.journal_entries, 'journal entry', 'journal entries')}")
    if stats.projects_completed:
        parts.append(f"finished {_plural(stats.projects_completed, 'project')}")

    if not parts:
        return f"No achievements recorded {name} yet. Every small step counts!"
    if len(parts) == 1:
        text = parts[0]
    else:
        text = ", ".join(parts[:-1]) + " and " + parts[-1]
    return f"{name[0].upper()}{name[1:]}, {text}."
