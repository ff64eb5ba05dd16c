"""Daily setup: fixed-volume focus planning for today.

The user reports how much time they have and how much energy; that yields a
small daily limit (1-3). They then stage tasks to pull into today (from any
coarser horizon) and tasks to send back out, and commit. Staging never
touches the store, so an abandoned setup leaves no trace.

State machine:
    NOT_STARTED -> TIME_SELECTED -> FULLY_SPECIFIED -> COMMITTED
    any open state -> SKIPPED
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from oraculo.clock import Clock
from oraculo.errors import CapacityExceeded, InvalidSelection, NotFound
from oraculo.horizons import HorizonStore
from oraculo.models import DAILY, DEFAULT_CAPACITIES, HORIZON_ORDER, WEEKLY, DailySetup

logger = logging.getLogger(__name__)


# ── Limit policy ──────────────────────────────────────────────

TIME_BUDGETS = {"short": 1, "medium": 2, "long": 3, "full": 3}
ENERGY_LEVELS = {"low": -1, "medium": 0, "high": 1}

# Labels used by older documents.
TIME_ALIASES = {"2h": "short", "4h": "medium", "6h": "long"}

MIN_LIMIT = 1
MAX_LIMIT = 3

NOT_STARTED = "not-started"
TIME_SELECTED = "time-selected"
FULLY_SPECIFIED = "fully-specified"
COMMITTED = "committed"
SKIPPED = "skipped"


def _normalize_time(time_budget: str) -> str:
    value = TIME_ALIASES.get(time_budget, time_budget)
    if value not in TIME_BUDGETS:
        raise InvalidSelection("time budget", time_budget)
    return value


def _normalize_energy(energy_level: str) -> str:
    if energy_level not in ENERGY_LEVELS:
        raise InvalidSelection("energy level", energy_level)
    return energy_level


def compute_limit(time_budget: str, energy_level: str) -> int:
    """Today's focus capacity: base allowance plus energy modifier, clamped.

    Never zero tasks, never more than three.
    """
    base = TIME_BUDGETS[_normalize_time(time_budget)]
    modifier = ENERGY_LEVELS[_normalize_energy(energy_level)]
    return max(MIN_LIMIT, min(MAX_LIMIT, base + modifier))


def needs_daily_setup(setups: dict[str, DailySetup], today: str) -> bool:
    """True until today's setup has been committed or skipped."""
    return today not in setups


def effective_daily_limit(setups: dict[str, DailySetup], today: str, default: int | None = None) -> int:
    """Committed limit for today, else the default daily capacity."""
    setup = setups.get(today)
    if setup is not None and setup.computed_limit:
        return setup.computed_limit
    return default or DEFAULT_CAPACITIES[DAILY] or MAX_LIMIT


# ── Results ───────────────────────────────────────────────────


@dataclass(frozen=True)
class StagedMove:
    task_id: str
    from_horizon: str
    to_horizon: str


@dataclass(frozen=True)
class FailedMove:
    move: StagedMove | None  # None when applying the new daily limit failed
    reason: str


@dataclass
class CommitResult:
    moved_in: int = 0
    moved_out: int = 0
    succeeded: list[StagedMove] = field(default_factory=list)
    failed: FailedMove | None = None
    not_attempted: list[StagedMove] = field(default_factory=list)
    setup: DailySetup | None = None

    @property
    def ok(self) -> bool:
        return self.failed is None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "movedIn": self.moved_in,
            "movedOut": self.moved_out,
            "succeeded": [m.task_id for m in self.succeeded],
            "failed": (
                {
                    "taskId": self.failed.move.task_id if self.failed.move else None,
                    "reason": self.failed.reason,
                }
                if self.failed else None
            ),
            "notAttempted": [m.task_id for m in self.not_attempted],
            "setup": self.setup.to_dict() if self.setup else None,
        }


# ── Planner ───────────────────────────────────────────────────


class DailyAllocationPlanner:
    def __init__(
        self,
        store: HorizonStore,
        setups: dict[str, DailySetup],
        clock: Clock,
        default_move_out: str = WEEKLY,
    ) -> None:
        self._store = store
        self._setups = setups
        self._clock = clock
        self._default_out = default_move_out
        self.state = NOT_STARTED
        self.time_budget: str | None = None
        self.energy_level: str | None = None
        # task id -> source horizon, in staging order
        self._move_in: dict[str, str] = {}
        # task id -> target horizon
        self._move_out: dict[str, str] = {}

    # ── Selections ────────────────────────────────────────────

    def select_time(self, time_budget: str) -> int:
        self._ensure_open()
        self.time_budget = _normalize_time(time_budget)
        self._advance()
        return self.current_limit()

    def select_energy(self, energy_level: str) -> int:
        self._ensure_open()
        self.energy_level = _normalize_energy(energy_level)
        self._advance()
        return self.current_limit()

    def current_limit(self) -> int:
        if self.time_budget and self.energy_level:
            return compute_limit(self.time_budget, self.energy_level)
        capacity = self._store.capacity(DAILY)
        return capacity if capacity is not None else MAX_LIMIT

    def _advance(self) -> None:
        if self.time_budget and self.energy_level:
            self.state = FULLY_SPECIFIED
        elif self.time_budget:
            self.state = TIME_SELECTED

    # ── Staging ───────────────────────────────────────────────

    def projected_count(self) -> int:
        """Active tasks in daily once the staged moves are applied."""
        return self._store.active_count(DAILY) - len(self._move_out) + len(self._move_in)

    def staged(self) -> dict[str, list[str]]:
        return {"in": list(self._move_in), "out": list(self._move_out)}

    def stage_move_in(self, task_id: str) -> bool:
        """Propose pulling a task into today.

        Returns False when the task is already in daily or already staged.
        """
        self._ensure_open()
        source = self._store.find_horizon_of(task_id)
        if source is None:
            logger.warning("cannot stage %s: task not found", task_id)
            raise NotFound("task", task_id)
        if source == DAILY:
            if task_id in self._move_out:
                return self.unstage(task_id)
            return False
        if task_id in self._move_in:
            return False
        if self._store.get_task(task_id, source).completed:
            raise ValueError("Completed tasks cannot be brought into focus")
        self._check_room()
        self._move_in[task_id] = source
        return True

    def stage_move_out(self, task_id: str) -> str:
        """Propose sending a daily task back out. Returns its destination."""
        self._ensure_open()
        task = self._store.get_task(task_id, DAILY)
        if task.completed:
            raise ValueError("Completed tasks stay in today's record")
        target = task.moved_from
        if target not in HORIZON_ORDER or target == DAILY:
            target = self._default_out
        self._move_out[task_id] = target
        return target

    def unstage(self, task_id: str) -> bool:
        self._ensure_open()
        if task_id in self._move_in:
            del self._move_in[task_id]
            return True
        if task_id in self._move_out:
            # Keeping it in daily takes the slot back.
            self._check_room()
            del self._move_out[task_id]
            return True
        return False

    def _check_room(self) -> None:
        limit = self.current_limit()
        if self.projected_count() + 1 > limit:
            raise CapacityExceeded(DAILY, limit)

    # ── Commit / skip ─────────────────────────────────────────

    def commit(
        self,
        potential_obstacle: str | None = None,
        contingency_plan: str | None = None,
    ) -> CommitResult:
        """Apply every staged move and record today's setup.

        Projected counts are checked for every touched horizon first, so a
        capacity problem rejects the whole commit before anything moves. If a
        move still fails while applying, the commit stops there and reports
        which moves went through; no setup is recorded in that case.
        """
        self._ensure_open()
        if not self.time_budget:
            raise InvalidSelection("time budget")
        if not self.energy_level:
            raise InvalidSelection("energy level")
        limit = compute_limit(self.time_budget, self.energy_level)

        outs = [StagedMove(tid, DAILY, target) for tid, target in self._move_out.items()]
        ins = [StagedMove(tid, source, DAILY) for tid, source in self._move_in.items()]
        self._preflight(outs + ins, limit)

        # Outs first so their slots are free before anything comes in.
        result = CommitResult()
        if not self._apply_moves(outs, result) or not self._apply_limit(limit, result):
            result.not_attempted.extend(ins)
        else:
            self._apply_moves(ins, result)

        for move in result.succeeded:
            self._move_in.pop(move.task_id, None)
            self._move_out.pop(move.task_id, None)
        if not result.ok:
            return result

        today = self._clock.today()
        prior = self._setups.get(today)
        primary = self._store.primary_of(DAILY)
        primary_id = primary.id if primary else None
        if primary_id is None and prior and prior.primary_task_id:
            if self._store.find_horizon_of(prior.primary_task_id) == DAILY:
                primary_id = prior.primary_task_id
        setup = DailySetup(
            date=today,
            time_budget=self.time_budget,
            energy_level=self.energy_level,
            computed_limit=limit,
            primary_task_id=primary_id,
            setup_at=self._clock.now().isoformat(timespec="seconds"),
            potential_obstacle=(potential_obstacle or "").strip() or None,
            contingency_plan=(contingency_plan or "").strip() or None,
        )
        self._setups[today] = setup
        result.setup = setup
        self.state = COMMITTED
        return result

    def skip(self) -> DailySetup:
        """Skip today's setup. Only the date and the skip time are kept."""
        self._ensure_open()
        today = self._clock.today()
        setup = DailySetup(date=today, skipped_at=self._clock.now().isoformat(timespec="seconds"))
        self._setups[today] = setup
        self._move_in.clear()
        self._move_out.clear()
        self.state = SKIPPED
        return setup

    # ── Internals ─────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self.state in (COMMITTED, SKIPPED):
            raise ValueError(f"Today's setup is already {self.state}")

    def _preflight(self, moves: list[StagedMove], limit: int) -> None:
        before = {hid: self._store.active_count(hid) for hid in HORIZON_ORDER}
        after = dict(before)
        for move in moves:
            after[move.from_horizon] -= 1
            after[move.to_horizon] += 1
        if after[DAILY] > limit:
            raise CapacityExceeded(
                DAILY,
                limit,
                f"Today would hold {after[DAILY]} active tasks but the limit is {limit}. "
                f"Send {after[DAILY] - limit} back out before starting the day.",
            )
        for hid in HORIZON_ORDER:
            if hid == DAILY or after[hid] <= before[hid]:
                continue
            cap = self._store.capacity(hid)
            if cap is not None and after[hid] > cap:
                raise CapacityExceeded(hid, cap)

    def _apply_moves(self, moves: list[StagedMove], result: CommitResult) -> bool:
        for i, move in enumerate(moves):
            try:
                self._store.move_task(move.task_id, move.from_horizon, move.to_horizon)
            except (NotFound, CapacityExceeded) as e:
                logger.warning("daily setup move of %s failed: %s", move.task_id, e)
                result.failed = FailedMove(move, str(e))
                result.not_attempted.extend(moves[i + 1:])
                return False
            result.succeeded.append(move)
            if move.to_horizon == DAILY:
                result.moved_in += 1
            else:
                result.moved_out += 1
        return True

    def _apply_limit(self, limit: int, result: CommitResult) -> bool:
        try:
            self._store.set_capacity(DAILY, limit)
        except CapacityExceeded as e:
            logger.warning("could not set daily limit to %d: %s", limit, e)
            result.failed = FailedMove(None, str(e))
            return False
        return True
