"""One working session over a loaded document.

Wires the document, horizon store, ledger, clock and persistence together.
Callers hold the session and pass it where needed; nothing here is global.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable

from oraculo.clock import Clock, SystemClock, new_id
from oraculo.daily_setup import DailyAllocationPlanner, effective_daily_limit, needs_daily_setup
from oraculo.errors import CapacityExceeded, PersistenceFailure
from oraculo.heatmap import HeatmapCell, PeriodStats, build_year_grid, period_stats, recap_text
from oraculo.horizons import HorizonStore
from oraculo.ledger import ActivityLedger
from oraculo.models import DAILY, HORIZON_ORDER, INTAKE, JOURNAL_WRITTEN, DailySetup, HabitCheckIn
from oraculo.storage import DocumentStore, JsonDocumentStore
from oraculo.streaks import current_streak
from oraculo.workspace import Settings, document_path, load_settings

logger = logging.getLogger(__name__)


class Session:
    def __init__(
        self,
        backend: DocumentStore,
        clock: Clock,
        settings: Settings | None = None,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        self.settings = settings or Settings()
        self.clock = clock
        self.backend = backend
        self.document = backend.load()
        self.ledger = ActivityLedger(self.document.events, self.document.check_ins, clock)
        self.horizons = HorizonStore(self.document.horizons, self.ledger, clock, id_factory)
        self.last_warning: str | None = None
        self._apply_capacities()

    @classmethod
    def open(cls, root: Path | None = None, clock: Clock | None = None) -> Session:
        """Open the workspace's document with its settings."""
        settings = load_settings(root)
        return cls(
            JsonDocumentStore(document_path(root)),
            clock or SystemClock(settings.tz),
            settings,
        )

    def _apply_capacities(self) -> None:
        today = self.clock.today()
        for hid in HORIZON_ORDER:
            if hid == INTAKE:
                continue
            cap = self.settings.capacities.get(hid)
            if hid == DAILY:
                cap = effective_daily_limit(self.document.daily_setups, today, cap)
            if cap is None:
                continue
            try:
                self.horizons.set_capacity(hid, cap)
            except CapacityExceeded as e:
                logger.warning("keeping stored limit for %s: %s", hid, e)

    # ── Persistence ───────────────────────────────────────────

    def save(self) -> str | None:
        """Save the document. Returns a warning message if storage failed.

        A failed save never rolls anything back; the in-memory state stays
        authoritative for the rest of the session.
        """
        try:
            self.backend.save(self.document)
        except PersistenceFailure as e:
            self.last_warning = f"Changes are kept in memory but could not be saved: {e}"
            logger.warning("save failed: %s", e)
            return self.last_warning
        self.last_warning = None
        return None

    # ── Daily setup ───────────────────────────────────────────

    def planner(self) -> DailyAllocationPlanner:
        return DailyAllocationPlanner(
            self.horizons,
            self.document.daily_setups,
            self.clock,
            default_move_out=self.settings.default_move_out_horizon,
        )

    def needs_daily_setup(self) -> bool:
        return needs_daily_setup(self.document.daily_setups, self.clock.today())

    def today_setup(self) -> DailySetup | None:
        return self.document.daily_setups.get(self.clock.today())

    def set_primary(self, task_id: str) -> None:
        """Make a daily task today's primary and remember it on today's setup."""
        self.horizons.set_primary(task_id, DAILY)
        setup = self.today_setup()
        if setup is not None:
            setup.primary_task_id = task_id

    def clear_primary(self) -> None:
        """Drop today's primary from the daily horizon and from today's setup."""
        self.horizons.clear_primary(DAILY)
        setup = self.today_setup()
        if setup is not None:
            setup.primary_task_id = None

    # ── Habits, journal, projects ─────────────────────────────

    def set_active_habit(self, habit_id: str | None) -> None:
        self.document.active_habit_id = habit_id

    def check_in(self, habit_id: str, day: str | None = None) -> HabitCheckIn | None:
        return self.ledger.check_in(habit_id, day)

    def write_journal(self, entry_id: str | None = None) -> None:
        self.ledger.record_journal_entry(entry_id)

    def complete_project(self, project_id: str) -> None:
        self.ledger.record_project_completed(project_id)

    def delete_project(self, project_id: str) -> int:
        """Forget a project; its tasks stay, unlinked."""
        return self.horizons.detach_project(project_id)

    # ── Analytics ─────────────────────────────────────────────

    def streak(self, habit_id: str | None = None) -> int:
        habit_id = habit_id or self.document.active_habit_id
        if not habit_id:
            return 0
        return current_streak(habit_id, self.document.check_ins, self.clock.today())

    def heatmap(self, year: int | None = None) -> list[list[HeatmapCell]]:
        today = self.clock.today()
        return build_year_grid(
            self.document.events,
            self.document.check_ins,
            self.ledger.events(JOURNAL_WRITTEN),
            year or int(today[:4]),
            today,
            self.settings.tz,
        )

    def stats(self, period: str) -> PeriodStats:
        return period_stats(self.document, period, self.clock.today(), self.settings.tz)

    def recap(self, period: str) -> str:
        return recap_text(self.stats(period))

    def snapshot_dict(self) -> dict[str, Any]:
        """Serializable view of every horizon for rendering."""
        snap = self.horizons.snapshot()
        return {
            hid: {
                "capacity": self.horizons.capacity(hid),
                "active": self.horizons.active_count(hid),
                "tasks": [t.to_dict() for t in snap[hid]],
            }
            for hid in HORIZON_ORDER
        }
