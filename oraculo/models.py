"""Typed dataclasses for the Oraculo data model.

All models use from_dict/to_dict for JSON serialization.
camelCase in JSON is mapped to snake_case in Python.
Unknown keys are ignored; missing keys use defaults.
Timestamps are ISO-8601 strings, calendar days are YYYY-MM-DD date keys.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ── Horizons ──────────────────────────────────────────────────

INTAKE = "intake"
QUARTERLY = "quarterly"
MONTHLY = "monthly"
WEEKLY = "weekly"
DAILY = "daily"

# Coarsest to finest.
HORIZON_ORDER = (INTAKE, QUARTERLY, MONTHLY, WEEKLY, DAILY)

# None = unbounded.
DEFAULT_CAPACITIES: dict[str, int | None] = {
    INTAKE: None,
    QUARTERLY: 3,
    MONTHLY: 6,
    WEEKLY: 10,
    DAILY: 3,
}


# ── Ledger event kinds ────────────────────────────────────────

TASK_COMPLETED = "task-completed"
HABIT_CHECKED = "habit-checked"
JOURNAL_WRITTEN = "journal-written"
PROJECT_COMPLETED = "project-completed"

EVENT_KINDS = {TASK_COMPLETED, HABIT_CHECKED, JOURNAL_WRITTEN, PROJECT_COMPLETED}

SCHEMA_VERSION = 1


# ── Tasks ─────────────────────────────────────────────────────


@dataclass
class Task:
    id: str = ""
    text: str = ""
    completed: bool = False
    completed_at: str | None = None
    created_at: str = ""
    project_id: str | None = None
    is_primary: bool = False
    moved_from: str | None = None
    moved_at: str | None = None
    notes: str = ""
    updated_at: str | None = None
    # Earlier provenance, most recent last; a return hop pops it back.
    move_history: list[dict[str, str | None]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Task:
        completed = bool(d.get("completed", False))
        return cls(
            id=str(d.get("id", "")),
            text=str(d.get("text", "")),
            completed=completed,
            completed_at=d.get("completedAt") if completed else None,
            created_at=str(d.get("createdAt", "")),
            project_id=d.get("projectId"),
            is_primary=bool(d.get("isPrimary", False)),
            moved_from=d.get("movedFrom"),
            moved_at=d.get("movedAt"),
            notes=str(d.get("notes", "") or ""),
            updated_at=d.get("updatedAt"),
            move_history=[
                {"movedFrom": h.get("movedFrom"), "movedAt": h.get("movedAt")}
                for h in (d.get("moveHistory") or []) if isinstance(h, dict)
            ],
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "completed": self.completed,
            "completedAt": self.completed_at,
            "createdAt": self.created_at,
            "projectId": self.project_id,
            "isPrimary": self.is_primary,
            "movedFrom": self.moved_from,
            "movedAt": self.moved_at,
        }
        if self.notes:
            d["notes"] = self.notes
        if self.updated_at:
            d["updatedAt"] = self.updated_at
        if self.move_history:
            d["moveHistory"] = [dict(h) for h in self.move_history]
        return d


@dataclass
class Horizon:
    id: str = ""
    capacity: int | None = None
    tasks: list[Task] = field(default_factory=list)

    def active_count(self) -> int:
        """Number of non-completed tasks; only these count against capacity."""
        return sum(1 for t in self.tasks if not t.completed)

    def index_of(self, task_id: str) -> int:
        for i, t in enumerate(self.tasks):
            if t.id == task_id:
                return i
        return -1

    @classmethod
    def from_dict(cls, horizon_id: str, d: dict[str, Any]) -> Horizon:
        return cls(
            id=horizon_id,
            capacity=d.get("capacity", DEFAULT_CAPACITIES.get(horizon_id)),
            tasks=[Task.from_dict(t) for t in (d.get("tasks") or []) if isinstance(t, dict)],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "capacity": self.capacity,
            "tasks": [t.to_dict() for t in self.tasks],
        }


# ── Ledger ────────────────────────────────────────────────────


@dataclass
class HabitCheckIn:
    habit_id: str = ""
    date: str = ""
    recorded_at: str = ""

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> HabitCheckIn:
        return cls(
            habit_id=str(d.get("habitId", "")),
            date=str(d.get("date", "")),
            recorded_at=str(d.get("recordedAt", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"habitId": self.habit_id, "date": self.date, "recordedAt": self.recorded_at}


@dataclass(frozen=True)
class ActivityEvent:
    kind: str = TASK_COMPLETED
    timestamp: str = ""
    horizon: str | None = None
    subject_id: str | None = None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ActivityEvent:
        return cls(
            kind=str(d.get("kind", TASK_COMPLETED)),
            timestamp=str(d.get("timestamp", "")),
            horizon=d.get("horizon"),
            subject_id=d.get("subjectId"),
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"kind": self.kind, "timestamp": self.timestamp}
        if self.horizon:
            d["horizon"] = self.horizon
        if self.subject_id:
            d["subjectId"] = self.subject_id
        return d


# ── Daily setup ───────────────────────────────────────────────


@dataclass
class DailySetup:
    date: str = ""
    time_budget: str | None = None
    energy_level: str | None = None
    computed_limit: int | None = None
    primary_task_id: str | None = None
    setup_at: str | None = None
    skipped_at: str | None = None
    potential_obstacle: str | None = None
    contingency_plan: str | None = None

    @property
    def skipped(self) -> bool:
        return self.skipped_at is not None and self.computed_limit is None

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> DailySetup:
        limit = d.get("computedLimit")
        return cls(
            date=str(d.get("date", "")),
            time_budget=d.get("timeBudget"),
            energy_level=d.get("energyLevel"),
            computed_limit=int(limit) if limit is not None else None,
            primary_task_id=d.get("primaryTaskId"),
            setup_at=d.get("setupAt"),
            skipped_at=d.get("skippedAt"),
            potential_obstacle=d.get("potentialObstacle"),
            contingency_plan=d.get("contingencyPlan"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "timeBudget": self.time_budget,
            "energyLevel": self.energy_level,
            "computedLimit": self.computed_limit,
            "primaryTaskId": self.primary_task_id,
            "setupAt": self.setup_at,
            "skippedAt": self.skipped_at,
            "potentialObstacle": self.potential_obstacle,
            "contingencyPlan": self.contingency_plan,
        }


# ── Document ──────────────────────────────────────────────────


def default_horizons(capacities: dict[str, int | None] | None = None) -> dict[str, Horizon]:
    caps = dict(DEFAULT_CAPACITIES)
    if capacities:
        caps.update(capacities)
    caps[INTAKE] = None
    return {h: Horizon(id=h, capacity=caps[h]) for h in HORIZON_ORDER}


@dataclass
class Document:
    """The full persisted object graph."""

    horizons: dict[str, Horizon] = field(default_factory=default_horizons)
    events: list[ActivityEvent] = field(default_factory=list)
    check_ins: list[HabitCheckIn] = field(default_factory=list)
    daily_setups: dict[str, DailySetup] = field(default_factory=dict)
    active_habit_id: str | None = None
    schema_version: int = SCHEMA_VERSION

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Document:
        if not d or not isinstance(d, dict):
            return cls()
        horizons = default_horizons()
        for hid, hd in (d.get("horizons") or {}).items():
            if hid in horizons and isinstance(hd, dict):
                horizons[hid] = Horizon.from_dict(hid, hd)
        setups = {}
        for s in d.get("dailySetups") or []:
            if isinstance(s, dict) and s.get("date"):
                setup = DailySetup.from_dict(s)
                setups[setup.date] = setup
        return cls(
            horizons=horizons,
            events=[ActivityEvent.from_dict(e) for e in (d.get("events") or []) if isinstance(e, dict)],
            check_ins=[HabitCheckIn.from_dict(c) for c in (d.get("checkIns") or []) if isinstance(c, dict)],
            daily_setups=setups,
            active_habit_id=d.get("activeHabitId"),
            schema_version=int(d.get("schemaVersion", SCHEMA_VERSION)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "schemaVersion": self.schema_version,
            "horizons": {hid: self.horizons[hid].to_dict() for hid in HORIZON_ORDER if hid in self.horizons},
            "events": [e.to_dict() for e in self.events],
            "checkIns": [c.to_dict() for c in self.check_ins],
            "dailySetups": [self.daily_setups[k].to_dict() for k in sorted(self.daily_setups)],
            "activeHabitId": self.active_habit_id,
        }
