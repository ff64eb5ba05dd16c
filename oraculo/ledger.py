"""Append-only activity ledger: completion events and habit check-ins.

The ledger is the source of truth for analytics. Nothing here mutates or
deletes a recorded entry; readers get tuples, i.e. a prefix of the log.
"""

from __future__ import annotations

import logging

from oraculo.clock import Clock, date_key
from oraculo.models import (
    EVENT_KINDS,
    HABIT_CHECKED,
    JOURNAL_WRITTEN,
    PROJECT_COMPLETED,
    TASK_COMPLETED,
    ActivityEvent,
    HabitCheckIn,
)

logger = logging.getLogger(__name__)


class ActivityLedger:
    def __init__(
        self,
        events: list[ActivityEvent],
        check_ins: list[HabitCheckIn],
        clock: Clock,
    ) -> None:
        # Lists are shared with the owning Document so saves see new entries.
        self._events = events
        self._check_ins = check_ins
        self._clock = clock

    # ── Events ────────────────────────────────────────────────

    def append(self, kind: str, horizon: str | None = None, subject_id: str | None = None) -> ActivityEvent:
        """Append an event stamped with the current time."""
        if kind not in EVENT_KINDS:
            raise ValueError(f"Unknown event kind: {kind}")
        event = ActivityEvent(
            kind=kind,
            timestamp=self._clock.now().isoformat(timespec="seconds"),
            horizon=horizon,
            subject_id=subject_id,
        )
        self._events.append(event)
        return event

    def record_task_completed(self, task_id: str, horizon: str) -> ActivityEvent:
        return self.append(TASK_COMPLETED, horizon=horizon, subject_id=task_id)

    def record_journal_entry(self, entry_id: str | None = None) -> ActivityEvent:
        return self.append(JOURNAL_WRITTEN, subject_id=entry_id)

    def record_project_completed(self, project_id: str) -> ActivityEvent:
        return self.append(PROJECT_COMPLETED, subject_id=project_id)

    def events(self, kind: str | None = None) -> tuple[ActivityEvent, ...]:
        if kind is None:
            return tuple(self._events)
        return tuple(e for e in self._events if e.kind == kind)

    # ── Habit check-ins ───────────────────────────────────────

    def check_in(self, habit_id: str, day: str | None = None) -> HabitCheckIn | None:
        """Record a check-in for *habit_id* on *day* (default today).

        Returns None when the habit is already checked in for that day; at
        most one check-in exists per (habit, day).
        """
        if not habit_id:
            raise ValueError("habit_id is required")
        now = self._clock.now()
        day = day or date_key(now)
        if self.has_check_in(habit_id, day):
            logger.debug("habit %s already checked in on %s", habit_id, day)
            return None
        entry = HabitCheckIn(habit_id=habit_id, date=day, recorded_at=now.isoformat(timespec="seconds"))
        self._check_ins.append(entry)
        self.append(HABIT_CHECKED, subject_id=habit_id)
        return entry

    def has_check_in(self, habit_id: str, day: str) -> bool:
        return any(c.habit_id == habit_id and c.date == day for c in self._check_ins)

    def check_ins(self, habit_id: str | None = None) -> tuple[HabitCheckIn, ...]:
        if habit_id is None:
            return tuple(self._check_ins)
        return tuple(c for c in self._check_ins if c.habit_id == habit_id)
