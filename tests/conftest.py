"""Shared test fixtures for Oraculo tests."""

from __future__ import annotations

import itertools
import json
import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest
import yaml

from oraculo.clock import FixedClock
from oraculo.daily_setup import DailyAllocationPlanner
from oraculo.horizons import HorizonStore
from oraculo.ledger import ActivityLedger
from oraculo.models import Document
from oraculo.storage import MemoryDocumentStore
from oraculo.session import Session

# Wednesday
NOW = datetime(2026, 2, 11, 9, 30, tzinfo=ZoneInfo("UTC"))


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"t{next(counter)}"


@pytest.fixture
def document() -> Document:
    return Document()


@pytest.fixture
def ledger(document: Document, clock: FixedClock) -> ActivityLedger:
    return ActivityLedger(document.events, document.check_ins, clock)


@pytest.fixture
def store(document: Document, ledger: ActivityLedger, clock: FixedClock, ids) -> HorizonStore:
    return HorizonStore(document.horizons, ledger, clock, id_factory=ids)


@pytest.fixture
def planner(store: HorizonStore, document: Document, clock: FixedClock) -> DailyAllocationPlanner:
    return DailyAllocationPlanner(store, document.daily_setups, clock)


@pytest.fixture
def session(clock: FixedClock, ids) -> Session:
    return Session(MemoryDocumentStore(), clock, id_factory=ids)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a temporary workspace with settings and a small document."""
    root = tmp_path / "workspace"
    (root / "data").mkdir(parents=True)

    settings = {
        "timezone": "UTC",
        "capacities": {"quarterly": 3, "monthly": 6, "weekly": 10},
    }
    (root / "settings.yaml").write_text(
        yaml.dump(settings, default_flow_style=False), encoding="utf-8"
    )

    doc = {
        "schemaVersion": 1,
        "horizons": {
            "intake": {"capacity": None, "tasks": []},
            "weekly": {
                "capacity": 10,
                "tasks": [
                    {
                        "id": "w1",
                        "text": "Draft quarterly report",
                        "completed": False,
                        "createdAt": "2026-02-09T10:00:00+00:00",
                        "projectId": "p1",
                    },
                    {
                        "id": "w2",
                        "text": "Call the plumber",
                        "completed": False,
                        "createdAt": "2026-02-09T10:05:00+00:00",
                    },
                ],
            },
            "daily": {
                "capacity": 3,
                "tasks": [
                    {
                        "id": "d1",
                        "text": "Review pull requests",
                        "completed": False,
                        "createdAt": "2026-02-08T10:00:00+00:00",
                        "movedFrom": "weekly",
                        "movedAt": "2026-02-10T08:00:00+00:00",
                    },
                ],
            },
        },
        "events": [
            {"kind": "task-completed", "timestamp": "2026-02-10T18:00:00+00:00", "horizon": "daily"},
        ],
        "checkIns": [
            {"habitId": "h1", "date": "2026-02-09", "recordedAt": "2026-02-09T07:00:00+00:00"},
            {"habitId": "h1", "date": "2026-02-10", "recordedAt": "2026-02-10T07:00:00+00:00"},
        ],
        "dailySetups": [],
        "activeHabitId": "h1",
    }
    (root / "data" / "oraculo.json").write_text(json.dumps(doc, indent=2), encoding="utf-8")

    os.environ["ORACULO_ROOT"] = str(root)
    yield root
    if "ORACULO_ROOT" in os.environ:
        del os.environ["ORACULO_ROOT"]
