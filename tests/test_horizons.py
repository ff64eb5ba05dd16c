"""Tests for oraculo/horizons.py — capacity, moves, completion, primary."""

import pytest

from oraculo.errors import CapacityExceeded, NotFound
from oraculo.models import DAILY, INTAKE, MONTHLY, QUARTERLY, TASK_COMPLETED, WEEKLY


def fill(store, horizon_id, n):
    return [store.add_task(horizon_id, f"task {i}") for i in range(n)]


def test_add_task_sets_fields(store, clock):
    task = store.add_task(WEEKLY, "  Write report  ", project_id="p1")
    assert task.id == "t1"
    assert task.text == "Write report"
    assert task.project_id == "p1"
    assert task.created_at == clock.now().isoformat(timespec="seconds")
    assert task.completed is False
    assert task.completed_at is None
    assert store.find_horizon_of(task.id) == WEEKLY


def test_add_task_empty_text_rejected(store):
    with pytest.raises(ValueError):
        store.add_task(WEEKLY, "   ")


def test_add_task_unknown_horizon(store):
    with pytest.raises(NotFound):
        store.add_task("someday", "x")


def test_add_task_capacity_exceeded(store):
    fill(store, QUARTERLY, 3)
    with pytest.raises(CapacityExceeded) as exc:
        store.add_task(QUARTERLY, "one too many")
    assert exc.value.horizon_id == QUARTERLY
    assert exc.value.limit == 3
    assert "quarterly" in str(exc.value)
    assert "3" in str(exc.value)
    assert len(store.snapshot()[QUARTERLY]) == 3


def test_intake_is_unbounded(store):
    fill(store, INTAKE, 50)
    assert store.active_count(INTAKE) == 50
    assert store.capacity(INTAKE) is None


def test_completed_tasks_do_not_count(store):
    tasks = fill(store, QUARTERLY, 3)
    store.toggle_complete(tasks[0].id, QUARTERLY, True)
    extra = store.add_task(QUARTERLY, "fits now")
    assert store.active_count(QUARTERLY) == 3
    assert len(store.snapshot()[QUARTERLY]) == 4
    assert store.find_horizon_of(extra.id) == QUARTERLY


def test_move_task_records_provenance(store, clock):
    task = store.add_task(WEEKLY, "Plan sprint")
    clock.advance(hours=2)
    moved = store.move_task(task.id, WEEKLY, DAILY)
    assert moved.moved_from == WEEKLY
    assert moved.moved_at == clock.now().isoformat(timespec="seconds")
    assert store.find_horizon_of(task.id) == DAILY
    assert store.snapshot()[WEEKLY] == ()


def test_move_task_not_in_source(store):
    task = store.add_task(WEEKLY, "x")
    with pytest.raises(NotFound):
        store.move_task(task.id, MONTHLY, DAILY)
    assert store.find_horizon_of(task.id) == WEEKLY


def test_move_task_capacity_leaves_source_untouched(store):
    fill(store, DAILY, 3)
    task = store.add_task(WEEKLY, "wants in")
    before = store.snapshot()
    with pytest.raises(CapacityExceeded):
        store.move_task(task.id, WEEKLY, DAILY)
    after = store.snapshot()
    assert [t.id for t in after[WEEKLY]] == [t.id for t in before[WEEKLY]]
    assert len(after[DAILY]) == 3
    assert store.get_task(task.id, WEEKLY).moved_from is None


def test_move_into_horizon_full_of_completed_tasks(store):
    for t in fill(store, DAILY, 3):
        store.toggle_complete(t.id, DAILY, True)
    task = store.add_task(WEEKLY, "still fits")
    store.move_task(task.id, WEEKLY, DAILY)
    assert store.active_count(DAILY) == 1
    assert len(store.snapshot()[DAILY]) == 4


def test_move_round_trip_keeps_identity(store, clock):
    task = store.add_task(MONTHLY, "Refactor billing")
    created = task.created_at
    clock.advance(hours=1)
    store.move_task(task.id, MONTHLY, WEEKLY)
    back = store.move_task(task.id, WEEKLY, MONTHLY)
    assert back.id == task.id
    assert back.created_at == created
    assert back.moved_from is None
    assert back.moved_at is None
    assert back.move_history == []
    assert store.find_horizon_of(task.id) == MONTHLY


def test_move_round_trip_restores_earlier_provenance(store, clock):
    task = store.add_task(INTAKE, "Refactor billing")
    clock.advance(hours=1)
    store.move_task(task.id, INTAKE, MONTHLY)
    stamp = store.get_task(task.id, MONTHLY).moved_at
    clock.advance(hours=1)
    store.move_task(task.id, MONTHLY, WEEKLY)
    clock.advance(hours=1)
    back = store.move_task(task.id, WEEKLY, MONTHLY)
    assert back.moved_from == INTAKE
    assert back.moved_at == stamp


def test_move_chain_unwinds_hop_by_hop(store, clock):
    task = store.add_task(QUARTERLY, "Launch plan")
    store.move_task(task.id, QUARTERLY, MONTHLY)
    clock.advance(hours=1)
    store.move_task(task.id, MONTHLY, WEEKLY)
    clock.advance(hours=1)
    store.move_task(task.id, WEEKLY, DAILY)
    assert store.get_task(task.id, DAILY).moved_from == WEEKLY

    assert store.move_task(task.id, DAILY, WEEKLY).moved_from == MONTHLY
    assert store.move_task(task.id, WEEKLY, MONTHLY).moved_from == QUARTERLY
    back = store.move_task(task.id, MONTHLY, QUARTERLY)
    assert back.moved_from is None
    assert back.move_history == []


def test_move_to_unrelated_horizon_overwrites_provenance(store, clock):
    task = store.add_task(MONTHLY, "x")
    store.move_task(task.id, MONTHLY, WEEKLY)
    clock.advance(hours=1)
    moved = store.move_task(task.id, WEEKLY, DAILY)
    assert moved.moved_from == WEEKLY
    assert moved.moved_at == clock.now().isoformat(timespec="seconds")


def test_move_to_same_horizon_is_noop(store):
    task = store.add_task(WEEKLY, "x")
    store.move_task(task.id, WEEKLY, WEEKLY)
    assert store.get_task(task.id, WEEKLY).moved_from is None


def test_invariant_holds_after_random_sequence(store):
    caps = {QUARTERLY: 3, MONTHLY: 6, WEEKLY: 10, DAILY: 3}
    for i in range(30):
        horizon = [QUARTERLY, MONTHLY, WEEKLY, DAILY][i % 4]
        try:
            store.add_task(horizon, f"task {i}")
        except CapacityExceeded:
            pass
    for task in list(store.snapshot()[WEEKLY]):
        for target in (DAILY, MONTHLY, QUARTERLY):
            try:
                store.move_task(task.id, WEEKLY, target)
                break
            except CapacityExceeded:
                continue
    for hid, cap in caps.items():
        assert store.active_count(hid) <= cap


def test_toggle_complete_appends_event(store, ledger, clock):
    task = store.add_task(WEEKLY, "Ship it")
    store.toggle_complete(task.id, WEEKLY, True)
    t = store.get_task(task.id, WEEKLY)
    assert t.completed is True
    assert t.completed_at == clock.now().isoformat(timespec="seconds")
    events = ledger.events(TASK_COMPLETED)
    assert len(events) == 1
    assert events[0].horizon == WEEKLY
    assert events[0].subject_id == task.id


def test_toggle_complete_twice_is_idempotent(store, ledger, clock):
    task = store.add_task(WEEKLY, "Ship it")
    store.toggle_complete(task.id, WEEKLY, True)
    stamp = store.get_task(task.id, WEEKLY).completed_at
    clock.advance(minutes=5)
    store.toggle_complete(task.id, WEEKLY, True)
    assert store.get_task(task.id, WEEKLY).completed_at == stamp
    assert len(ledger.events(TASK_COMPLETED)) == 1


def test_uncomplete_keeps_ledger_history(store, ledger):
    task = store.add_task(WEEKLY, "Ship it")
    store.toggle_complete(task.id, WEEKLY, True)
    store.toggle_complete(task.id, WEEKLY, False)
    t = store.get_task(task.id, WEEKLY)
    assert t.completed is False
    assert t.completed_at is None
    assert len(ledger.events(TASK_COMPLETED)) == 1


def test_uncomplete_into_full_horizon_rejected(store):
    tasks = fill(store, QUARTERLY, 3)
    store.toggle_complete(tasks[0].id, QUARTERLY, True)
    store.add_task(QUARTERLY, "took the slot")
    with pytest.raises(CapacityExceeded):
        store.toggle_complete(tasks[0].id, QUARTERLY, False)
    assert store.get_task(tasks[0].id, QUARTERLY).completed is True


def test_set_primary_clears_others(store):
    a, b = fill(store, DAILY, 2)
    store.set_primary(a.id, DAILY)
    store.set_primary(b.id, DAILY)
    flags = {t.id: t.is_primary for t in store.snapshot()[DAILY]}
    assert flags == {a.id: False, b.id: True}
    assert store.primary_of(DAILY).id == b.id


def test_clear_primary(store):
    a, _ = fill(store, DAILY, 2)
    store.set_primary(a.id, DAILY)
    store.clear_primary(DAILY)
    assert store.primary_of(DAILY) is None


def test_primary_dropped_when_target_has_one(store):
    a = store.add_task(DAILY, "daily primary")
    store.set_primary(a.id, DAILY)
    b = store.add_task(WEEKLY, "weekly primary")
    store.set_primary(b.id, WEEKLY)
    store.move_task(b.id, WEEKLY, DAILY)
    assert store.primary_of(DAILY).id == a.id
    assert sum(t.is_primary for t in store.snapshot()[DAILY]) == 1


def test_primary_dropped_when_leaving_daily(store):
    a, b = fill(store, DAILY, 2)
    store.set_primary(a.id, DAILY)
    moved = store.move_task(a.id, DAILY, WEEKLY)
    assert moved.is_primary is False
    assert store.primary_of(DAILY) is None
    assert store.primary_of(WEEKLY) is None
    assert store.get_task(b.id, DAILY).is_primary is False


def test_remove_task(store):
    task = store.add_task(WEEKLY, "x")
    removed = store.remove_task(task.id, WEEKLY)
    assert removed.id == task.id
    assert store.find_horizon_of(task.id) is None
    with pytest.raises(NotFound):
        store.remove_task(task.id, WEEKLY)


def test_request_removal_needs_confirmation(store):
    task = store.add_task(WEEKLY, "Old idea")
    pending = store.request_removal(task.id, WEEKLY)
    assert "Old idea" in pending.message
    assert store.find_horizon_of(task.id) == WEEKLY
    pending.confirm()
    assert store.find_horizon_of(task.id) is None


def test_edit_task(store, clock):
    task = store.add_task(WEEKLY, "x", project_id="p1")
    edited = store.edit_task(task.id, WEEKLY, text="y", notes="n", project_id=None)
    assert edited.text == "y"
    assert edited.notes == "n"
    assert edited.project_id is None
    assert edited.updated_at == clock.now().isoformat(timespec="seconds")


def test_detach_project_keeps_tasks(store):
    a = store.add_task(WEEKLY, "a", project_id="p1")
    b = store.add_task(DAILY, "b", project_id="p1")
    c = store.add_task(DAILY, "c", project_id="p2")
    assert store.detach_project("p1") == 2
    assert store.find_task(a.id).project_id is None
    assert store.find_task(b.id).project_id is None
    assert store.find_task(c.id).project_id == "p2"


def test_set_capacity_refuses_below_active(store):
    fill(store, DAILY, 2)
    with pytest.raises(CapacityExceeded):
        store.set_capacity(DAILY, 1)
    store.set_capacity(DAILY, 2)
    assert store.capacity(DAILY) == 2
    with pytest.raises(ValueError):
        store.set_capacity(INTAKE, 5)


def test_snapshot_is_read_only_copy(store):
    task = store.add_task(WEEKLY, "x")
    snap = store.snapshot()
    snap[WEEKLY][0].text = "mutated"
    assert store.get_task(task.id, WEEKLY).text == "x"
    with pytest.raises(TypeError):
        snap[WEEKLY] = ()


def test_subscribers_receive_snapshots(store):
    seen = []
    unsubscribe = store.subscribe(lambda snap: seen.append(len(snap[WEEKLY])))
    task = store.add_task(WEEKLY, "x")
    store.move_task(task.id, WEEKLY, DAILY)
    assert seen == [1, 0]
    unsubscribe()
    store.add_task(WEEKLY, "y")
    assert seen == [1, 0]
