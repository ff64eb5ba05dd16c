"""Capacity-bounded horizon store.

Owns every Task. Horizons are ordered coarsest to finest
(intake -> quarterly -> monthly -> weekly -> daily) and each, except intake,
has a hard cap on non-completed tasks. All capacity checks happen here so no
caller can bypass the invariant:

    count(non-completed tasks in H) <= capacity(H)   after every mutation

Completed tasks are capacity-exempt, so a horizon may hold more entries than
its cap once some are done.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Mapping

from oraculo.clock import Clock, new_id
from oraculo.errors import CapacityExceeded, NotFound
from oraculo.ledger import ActivityLedger
from oraculo.models import DAILY, HORIZON_ORDER, INTAKE, Horizon, Task

logger = logging.getLogger(__name__)

Snapshot = Mapping[str, tuple[Task, ...]]
_UNSET: Any = object()


@dataclass
class PendingConfirmation:
    """A destructive action waiting for the user's yes/no.

    Nothing happens until `confirm()` is called; dropping the object
    discards the action.
    """

    action: str
    message: str
    task_id: str
    horizon_id: str
    _apply: Callable[[], Task]

    def confirm(self) -> Task:
        return self._apply()


class HorizonStore:
    def __init__(
        self,
        horizons: dict[str, Horizon],
        ledger: ActivityLedger,
        clock: Clock,
        id_factory: Callable[[], str] = new_id,
    ) -> None:
        for hid in HORIZON_ORDER:
            horizons.setdefault(hid, Horizon(id=hid))
        self._horizons = horizons
        self._ledger = ledger
        self._clock = clock
        self._new_id = id_factory
        self._subscribers: list[Callable[[Snapshot], None]] = []

    # ── Lookup ────────────────────────────────────────────────

    def horizon(self, horizon_id: str) -> Horizon:
        h = self._horizons.get(horizon_id)
        if h is None:
            logger.warning("unknown horizon %r", horizon_id)
            raise NotFound("horizon", horizon_id)
        return h

    def capacity(self, horizon_id: str) -> int | None:
        return self.horizon(horizon_id).capacity

    def active_count(self, horizon_id: str) -> int:
        return self.horizon(horizon_id).active_count()

    def find_horizon_of(self, task_id: str) -> str | None:
        """Linear scan; per-horizon bounds keep this small."""
        for hid in HORIZON_ORDER:
            if self._horizons[hid].index_of(task_id) != -1:
                return hid
        return None

    def find_task(self, task_id: str) -> Task | None:
        hid = self.find_horizon_of(task_id)
        if hid is None:
            return None
        h = self._horizons[hid]
        return h.tasks[h.index_of(task_id)]

    def get_task(self, task_id: str, horizon_id: str) -> Task:
        h = self.horizon(horizon_id)
        idx = h.index_of(task_id)
        if idx == -1:
            logger.warning("task %s not found in %s", task_id, horizon_id)
            raise NotFound("task", task_id, where=horizon_id)
        return h.tasks[idx]

    # ── Capacity ──────────────────────────────────────────────

    def _ensure_room(self, h: Horizon, incoming: int = 1) -> None:
        """Raise CapacityExceeded unless *incoming* more active tasks fit."""
        if h.capacity is None:
            return
        if h.active_count() + incoming > h.capacity:
            logger.debug("capacity check failed for %s (cap %d)", h.id, h.capacity)
            raise CapacityExceeded(h.id, h.capacity)

    def set_capacity(self, horizon_id: str, capacity: int) -> None:
        """Change a horizon's cap. Never below its current active count."""
        h = self.horizon(horizon_id)
        if h.id == INTAKE:
            raise ValueError("The intake horizon is unbounded")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        active = h.active_count()
        if active > capacity:
            raise CapacityExceeded(
                h.id,
                capacity,
                f"Horizon '{h.id}' holds {active} active tasks; "
                f"move {active - capacity} out before lowering its limit to {capacity}.",
            )
        if h.capacity != capacity:
            h.capacity = capacity
            self._notify()

    # ── Mutations ─────────────────────────────────────────────

    def add_task(
        self,
        horizon_id: str,
        text: str,
        project_id: str | None = None,
        notes: str = "",
        is_primary: bool = False,
    ) -> Task:
        text = (text or "").strip()
        if not text:
            raise ValueError("Task text must not be empty")
        h = self.horizon(horizon_id)
        self._ensure_room(h)
        task = Task(
            id=self._new_id(),
            text=text,
            created_at=self._stamp(),
            project_id=project_id,
            notes=notes,
        )
        h.tasks.append(task)
        if is_primary:
            self._mark_primary(h, task.id)
        self._notify()
        return task

    def edit_task(
        self,
        task_id: str,
        horizon_id: str,
        text: str | None = None,
        notes: str | None = None,
        project_id: str | None = _UNSET,
    ) -> Task:
        task = self.get_task(task_id, horizon_id)
        if text is not None:
            text = text.strip()
            if not text:
                raise ValueError("Task text must not be empty")
            task.text = text
        if notes is not None:
            task.notes = notes
        if project_id is not _UNSET:
            task.project_id = project_id
        task.updated_at = self._stamp()
        self._notify()
        return task

    def move_task(self, task_id: str, from_horizon_id: str, to_horizon_id: str) -> Task:
        """Move a task between horizons, recording where it came from.

        The capacity check runs before anything changes, so a rejected move
        leaves both horizons untouched. Moving a task back to the horizon it
        came from restores the provenance it had before that hop.
        """
        source = self.horizon(from_horizon_id)
        target = self.horizon(to_horizon_id)
        idx = source.index_of(task_id)
        if idx == -1:
            logger.warning("move of %s failed: not in %s", task_id, from_horizon_id)
            raise NotFound("task", task_id, where=from_horizon_id)
        task = source.tasks[idx]
        if source is target:
            return task
        if not task.completed:
            self._ensure_room(target)

        source.tasks.pop(idx)
        if task.moved_from == target.id:
            # Return hop: undo the provenance the outbound move recorded.
            prior = task.move_history.pop() if task.move_history else {}
            task.moved_from = prior.get("movedFrom")
            task.moved_at = prior.get("movedAt")
        else:
            if task.moved_from is not None:
                task.move_history.append({"movedFrom": task.moved_from, "movedAt": task.moved_at})
            task.moved_from = source.id
            task.moved_at = self._stamp()
        # Today's primary does not follow the task out of daily.
        if task.is_primary and (source.id == DAILY or any(t.is_primary for t in target.tasks)):
            task.is_primary = False
        target.tasks.append(task)
        self._notify()
        return task

    def toggle_complete(self, task_id: str, horizon_id: str, completed: bool) -> Task:
        """Mark a task done or not done.

        Completing stamps completedAt and appends a task-completed event.
        Un-completing clears the stamp; the ledger keeps its history.
        Repeating the current value changes nothing.
        """
        h = self.horizon(horizon_id)
        task = self.get_task(task_id, horizon_id)
        if task.completed == completed:
            return task
        if completed:
            task.completed = True
            task.completed_at = self._stamp()
            self._ledger.record_task_completed(task.id, h.id)
        else:
            # Reactivating takes a slot again.
            self._ensure_room(h)
            task.completed = False
            task.completed_at = None
        self._notify()
        return task

    def set_primary(self, task_id: str, horizon_id: str) -> Task:
        h = self.horizon(horizon_id)
        task = self.get_task(task_id, horizon_id)
        self._mark_primary(h, task_id)
        self._notify()
        return task

    def clear_primary(self, horizon_id: str) -> None:
        h = self.horizon(horizon_id)
        changed = False
        for t in h.tasks:
            if t.is_primary:
                t.is_primary = False
                changed = True
        if changed:
            self._notify()

    def primary_of(self, horizon_id: str) -> Task | None:
        for t in self.horizon(horizon_id).tasks:
            if t.is_primary:
                return t
        return None

    def remove_task(self, task_id: str, horizon_id: str) -> Task:
        h = self.horizon(horizon_id)
        idx = h.index_of(task_id)
        if idx == -1:
            logger.warning("remove of %s failed: not in %s", task_id, horizon_id)
            raise NotFound("task", task_id, where=horizon_id)
        task = h.tasks.pop(idx)
        self._notify()
        return task

    def request_removal(self, task_id: str, horizon_id: str) -> PendingConfirmation:
        """Prepare a removal that only happens once confirmed."""
        task = self.get_task(task_id, horizon_id)
        return PendingConfirmation(
            action="remove",
            message=f"Delete '{task.text}'?",
            task_id=task_id,
            horizon_id=horizon_id,
            _apply=lambda: self.remove_task(task_id, horizon_id),
        )

    def detach_project(self, project_id: str) -> int:
        """Null out references to a deleted project. Tasks are kept."""
        count = 0
        for hid in HORIZON_ORDER:
            for t in self._horizons[hid].tasks:
                if t.project_id == project_id:
                    t.project_id = None
                    count += 1
        if count:
            self._notify()
        return count

    # ── Views ─────────────────────────────────────────────────

    def snapshot(self) -> Snapshot:
        """Read-only copy of all horizons, coarsest first."""
        return MappingProxyType({
            hid: tuple(copy.deepcopy(t) for t in self._horizons[hid].tasks)
            for hid in HORIZON_ORDER
        })

    def subscribe(self, callback: Callable[[Snapshot], None]) -> Callable[[], None]:
        """Call *callback* with a fresh snapshot after every mutation.

        Returns a function that removes the subscription.
        """
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback)

    # ── Internals ─────────────────────────────────────────────

    def _mark_primary(self, h: Horizon, task_id: str) -> None:
        for t in h.tasks:
            t.is_primary = t.id == task_id

    def _stamp(self) -> str:
        return self._clock.now().isoformat(timespec="seconds")

    def _notify(self) -> None:
        if not self._subscribers:
            return
        snap = self.snapshot()
        for cb in list(self._subscribers):
            cb(snap)
