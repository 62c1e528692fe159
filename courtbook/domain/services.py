from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ..utils.time import parse_iso8601
from .errors import DurationOutOfBoundsError, InvalidRangeError, MalformedInputError, NotInFutureError

if TYPE_CHECKING:
    from ..config import Settings


@dataclass(frozen=True)
class BookingPolicy:
    clock_skew: timedelta = timedelta(minutes=5)
    min_duration: timedelta = timedelta(minutes=30)
    max_duration: timedelta = timedelta(hours=2)
    cancellation_cutoff: timedelta = timedelta(hours=24)
    allow_test_identity: bool = False

    @classmethod
    def from_settings(cls, settings: "Settings") -> "BookingPolicy":
        return cls(
            clock_skew=timedelta(minutes=settings.clock_skew_minutes),
            min_duration=timedelta(minutes=settings.min_duration_minutes),
            max_duration=timedelta(minutes=settings.max_duration_minutes),
            cancellation_cutoff=timedelta(hours=settings.cancellation_cutoff_hours),
            allow_test_identity=settings.allow_test_identity,
        )


@dataclass(frozen=True)
class TimeWindow:
    starts_at: datetime
    ends_at: datetime

    @property
    def duration(self) -> timedelta:
        return self.ends_at - self.starts_at


def intervals_overlap(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    """Half-open overlap test: touching endpoints do not overlap."""
    return a_start < b_end and b_start < a_end


def validate_reservation_window(
    start: object,
    end: object,
    *,
    now: datetime,
    policy: BookingPolicy,
) -> TimeWindow:
    """
    Pure validation of a proposed reservation window.
    Checks run in order and the first failure is raised; returns the parsed naive-UTC window.
    """
    try:
        starts_at = parse_iso8601(start)
        ends_at = parse_iso8601(end)
    except (TypeError, ValueError, OverflowError) as exc:
        raise MalformedInputError() from exc

    if ends_at <= starts_at:
        raise InvalidRangeError()
    if starts_at < now - policy.clock_skew:
        raise NotInFutureError()

    window = TimeWindow(starts_at=starts_at, ends_at=ends_at)
    if window.duration < policy.min_duration or window.duration > policy.max_duration:
        raise DurationOutOfBoundsError(
            f"duration must be between {_minutes(policy.min_duration)} and {_minutes(policy.max_duration)} minutes"
        )
    return window


def _minutes(delta: timedelta) -> int:
    return int(delta.total_seconds() // 60)
