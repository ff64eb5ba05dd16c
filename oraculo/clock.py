"""Calendar-day keys, clocks and id generation.

All bucketing (streaks, heatmap, daily setups) keys on the civil date in the
user's time zone, never the UTC date.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo


def date_key(moment: datetime | date, tz: ZoneInfo | None = None) -> str:
    """Return the YYYY-MM-DD civil date of *moment*.

    Aware datetimes are converted to *tz* first; naive datetimes are taken
    as already local.
    """
    if isinstance(moment, datetime):
        if tz is not None and moment.tzinfo is not None:
            moment = moment.astimezone(tz)
        return moment.date().isoformat()
    return moment.isoformat()


def parse_date_key(key: str) -> date:
    return date.fromisoformat(key)


def parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def new_id() -> str:
    """Opaque unique identifier for tasks and entries."""
    return uuid.uuid4().hex


class Clock(Protocol):
    def now(self) -> datetime: ...

    def today(self) -> str: ...


class SystemClock:
    """Wall clock in the user's time zone."""

    def __init__(self, tz: ZoneInfo | None = None) -> None:
        self.tz = tz or ZoneInfo("UTC")

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> str:
        return date_key(self.now(), self.tz)


class FixedClock:
    """Clock frozen at a given moment; `advance` moves it forward."""

    def __init__(self, moment: datetime) -> None:
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=ZoneInfo("UTC"))
        self.moment = moment

    def now(self) -> datetime:
        return self.moment

    def today(self) -> str:
        return date_key(self.moment)

    def advance(self, **kwargs: float) -> None:
        self.moment = self.moment + timedelta(**kwargs)
