from __future__ import annotations

from datetime import datetime, timedelta
from typing import Protocol

from ..utils.time import utc_now_naive


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in naive UTC."""

    def now(self) -> datetime:
        return utc_now_naive()


class FixedClock:
    """Settable clock for tests and replays."""

    def __init__(self, current: datetime) -> None:
        if current.tzinfo is not None:
            raise ValueError("FixedClock expects a naive UTC datetime")
        self.current = current

    def now(self) -> datetime:
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta
