"""
Time-window resolution.

Every booking or block request is reduced to a canonical UTC ``[start, end)``
window before it touches the store. The functions here are pure: they never
read the clock or the database, and they raise ``ValidationError`` for input
that cannot be resolved.

Half-day boundaries use millisecond-precision end stamps (``11:59:59.999``,
``23:59:59.999``) so an AM and a PM slot of the same day never overlap.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import StrEnum
from typing import Any

from cabin_booking.errors import ValidationError

_CLOCK_RE = re.compile(r"^\d{2}:\d{2}$")

MINUTES_PER_DAY = 24 * 60
NOON = 12 * 60
LAST_MS = timedelta(milliseconds=999)


class Half(StrEnum):
    AM = "AM"
    PM = "PM"
    FULL = "FULL"


class Shape(StrEnum):
    SINGLE = "single"
    RANGE = "range"
    EXACT = "exact"


EXACT_FIELDS = frozenset({"start_datetime", "end_datetime"})
SINGLE_FIELDS = frozenset({"date", "half", "start_time", "end_time"})
RANGE_FIELDS = frozenset({"start_date", "end_date", "start_half", "end_half"})
WINDOW_FIELDS = EXACT_FIELDS | SINGLE_FIELDS | RANGE_FIELDS


@dataclass(frozen=True)
class TimeWindow:
    start: datetime
    end: datetime

    def overlaps(self, other: TimeWindow) -> bool:
        """Half-open overlap test: ``[s1, e1)`` and ``[s2, e2)``."""
        return self.start < other.end and other.start < self.end

    @property
    def start_day(self) -> date:
        return self.start.date()

    @property
    def end_day(self) -> date:
        return self.end.date()


@dataclass(frozen=True)
class CabinHours:
    """Clock-time configuration of a cabin, all values ``HH:MM`` or None."""

    halfday_availability: bool = True
    full_day_start_time: str | None = None
    full_day_end_time: str | None = None
    am_start_time: str | None = None
    am_end_time: str | None = None
    pm_start_time: str | None = None
    pm_end_time: str | None = None

    @classmethod
    def from_cabin(cls, cabin: Mapping[str, Any]) -> CabinHours:
        return cls(
            halfday_availability=bool(cabin.get("halfday_availability", False)),
            full_day_start_time=cabin.get("full_day_start_time"),
            full_day_end_time=cabin.get("full_day_end_time"),
            am_start_time=cabin.get("am_start_time"),
            am_end_time=cabin.get("am_end_time"),
            pm_start_time=cabin.get("pm_start_time"),
            pm_end_time=cabin.get("pm_end_time"),
        )

    @property
    def has_full_day_hours(self) -> bool:
        return bool(self.full_day_start_time or self.full_day_end_time)


# ---------------------------------------------------------------------------
# Parsing helpers
# ---------------------------------------------------------------------------


def to_utc(dt: datetime) -> datetime:
    """Ensure a datetime is UTC-aware. Naive values are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_instant(value: datetime | str) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    try:
        return to_utc(datetime.fromisoformat(str(value).strip()))
    except ValueError:
        raise ValidationError(f"Invalid datetime: {value!r}") from None


def parse_day(value: date | datetime | str) -> date:
    """Calendar day of a date, a datetime (UTC day) or an ISO string."""
    if isinstance(value, datetime):
        return to_utc(value).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    return parse_instant(text).date()


def parse_clock(value: str, *, allow_midnight_end: bool = False) -> int:
    """``HH:MM`` to minutes after midnight. ``24:00`` only as an end time."""
    if not isinstance(value, str) or not _CLOCK_RE.match(value):
        raise ValidationError(f"Time must be in HH:MM format, got {value!r}")
    hours, minutes = (int(part) for part in value.split(":"))
    if allow_midnight_end and hours == 24 and minutes == 0:
        return MINUTES_PER_DAY
    if hours > 23 or minutes > 59:
        raise ValidationError(f"Invalid time value: {value}")
    return hours * 60 + minutes


def _at(day: date, minutes: int) -> datetime:
    return datetime(day.year, day.month, day.day, tzinfo=UTC) + timedelta(minutes=minutes)


def _day_end(day: date) -> datetime:
    return _at(day, MINUTES_PER_DAY) - timedelta(milliseconds=1)


def _checked(window: TimeWindow, message: str) -> TimeWindow:
    if window.end <= window.start:
        raise ValidationError(message)
    return window


# ---------------------------------------------------------------------------
# Shape resolvers
# ---------------------------------------------------------------------------


def _custom_half_window(day: date, half: Half, start_time: str | None, end_time: str | None) -> TimeWindow:
    if not start_time or not end_time:
        raise ValidationError(
            "Both start_time and end_time must be provided for half-day custom times"
        )
    start = parse_clock(start_time)
    end = parse_clock(end_time, allow_midnight_end=True)
    if end <= start:
        raise ValidationError("end_time must be after start_time")
    if half == Half.AM and end > NOON:
        raise ValidationError("AM half-time must be between 00:00 and 12:00")
    if half == Half.PM and start < NOON:
        raise ValidationError("PM half-time must be between 12:00 and 24:00")
    return TimeWindow(_at(day, start), _at(day, end))


def resolve_single_day(
    day: date | datetime | str,
    half: Half | str = Half.FULL,
    hours: CabinHours | None = None,
    start_time: str | None = None,
    end_time: str | None = None,
) -> TimeWindow:
    day = parse_day(day)
    try:
        half = Half(half)
    except ValueError:
        raise ValidationError(f"half must be one of AM, PM, FULL, got {half!r}") from None

    if half != Half.FULL and (start_time or end_time):
        return _custom_half_window(day, half, start_time, end_time)

    if half == Half.AM:
        if hours and hours.am_start_time and hours.am_end_time:
            window = TimeWindow(
                _at(day, parse_clock(hours.am_start_time)),
                _at(day, parse_clock(hours.am_end_time, allow_midnight_end=True)),
            )
            return _checked(window, "Cabin AM hours are misconfigured")
        return TimeWindow(_at(day, 0), _at(day, NOON) - timedelta(milliseconds=1))

    if half == Half.PM:
        if hours and hours.pm_start_time and hours.pm_end_time:
            window = TimeWindow(
                _at(day, parse_clock(hours.pm_start_time)),
                _at(day, parse_clock(hours.pm_end_time, allow_midnight_end=True)),
            )
            return _checked(window, "Cabin PM hours are misconfigured")
        return TimeWindow(_at(day, NOON), _day_end(day))

    if hours and hours.has_full_day_hours:
        return _checked(_full_day_window(day, day, hours), "Cabin full-day hours are misconfigured")
    return TimeWindow(_at(day, 0), _day_end(day))


def _full_day_window(start_day: date, end_day: date, hours: CabinHours) -> TimeWindow:
    start = _at(start_day, 0)
    end = _day_end(end_day)
    if hours.full_day_start_time:
        start = _at(start_day, parse_clock(hours.full_day_start_time))
    if hours.full_day_end_time:
        end = _at(end_day, parse_clock(hours.full_day_end_time)) + LAST_MS
    return TimeWindow(start, end)


def resolve_date_range(
    start_day: date | datetime | str,
    end_day: date | datetime | str,
    start_half: Half | str = Half.AM,
    end_half: Half | str = Half.PM,
    hours: CabinHours | None = None,
) -> TimeWindow:
    start_day = parse_day(start_day)
    end_day = parse_day(end_day)
    if start_half not in (Half.AM, Half.PM) or end_half not in (Half.AM, Half.PM):
        raise ValidationError("start_half and end_half must be AM or PM")
    if end_day < start_day:
        raise ValidationError("end_date must be on or after start_date")

    if (
        hours is not None
        and not hours.halfday_availability
        and start_half == Half.AM
        and end_half == Half.PM
        and hours.has_full_day_hours
    ):
        window = _full_day_window(start_day, end_day, hours)
    else:
        start = _at(start_day, 0 if start_half == Half.AM else NOON)
        end = _at(end_day, NOON) if end_half == Half.AM else _day_end(end_day)
        window = TimeWindow(start, end)
    return _checked(window, "end_date must be after start_date")


def resolve_exact(start: datetime | str, end: datetime | str) -> TimeWindow:
    window = TimeWindow(parse_instant(start), parse_instant(end))
    return _checked(window, "end_datetime must be after start_datetime")


def request_shape(values: Mapping[str, Any]) -> Shape:
    """Classify a request by the window fields it carries (None = absent)."""
    present = {key for key, value in values.items() if value is not None} & WINDOW_FIELDS

    if present & EXACT_FIELDS:
        if present & EXACT_FIELDS != EXACT_FIELDS:
            raise ValidationError("Both start_datetime and end_datetime are required")
        mixed = sorted(present - EXACT_FIELDS)
        if mixed:
            raise ValidationError(f"Do not mix {mixed[0]} with start_datetime/end_datetime")
        return Shape.EXACT

    if "date" in present:
        mixed = sorted(present & RANGE_FIELDS)
        if mixed:
            raise ValidationError(f"Do not mix {mixed[0]} with date")
        return Shape.SINGLE

    if {"start_date", "end_date"} <= present:
        mixed = sorted(present & SINGLE_FIELDS)
        if mixed:
            raise ValidationError(f"Do not mix {mixed[0]} with start_date/end_date")
        return Shape.RANGE

    raise ValidationError(
        "Provide either date, start_date/end_date, or start_datetime/end_datetime"
    )


def resolve_request(values: Mapping[str, Any], hours: CabinHours | None = None) -> TimeWindow:
    """Resolve a single-window request of any shape."""
    shape = request_shape(values)
    if shape == Shape.EXACT:
        return resolve_exact(values["start_datetime"], values["end_datetime"])
    if shape == Shape.SINGLE:
        return resolve_single_day(
            values["date"],
            values.get("half") or Half.FULL,
            hours,
            start_time=values.get("start_time"),
            end_time=values.get("end_time"),
        )
    return resolve_date_range(
        values["start_date"],
        values["end_date"],
        values.get("start_half") or Half.AM,
        values.get("end_half") or Half.PM,
        hours,
    )


def resolve_segments(segments: Iterable[Any], hours: CabinHours | None = None) -> list[TimeWindow]:
    """
    Resolve multi-segment requests. Segments are objects exposing
    ``start_date``, ``end_date``, ``start_half`` and ``end_half``.
    Returned windows keep the input order; overlap is checked on the
    start-sorted sequence.
    """
    windows = [
        resolve_date_range(
            seg.start_date,
            seg.end_date,
            seg.start_half or Half.AM,
            seg.end_half or Half.PM,
            hours,
        )
        for seg in segments
    ]
    if not windows:
        raise ValidationError("At least one segment is required")

    ordered = sorted(windows, key=lambda w: w.start)
    for prev, cur in zip(ordered, ordered[1:]):
        if cur.start < prev.end:
            raise ValidationError("Segments overlap each other")
    return windows


def days_in_window(start: date, end: date) -> list[date]:
    """Every calendar day from ``start`` to ``end`` inclusive."""
    days = []
    current = start
    while current <= end:
        days.append(current)
        current += timedelta(days=1)
    return days
