"""
Conflict detection for a single cabin.

All active bookings and all blocks of the cabin are fetched and filtered in
memory. This keeps the store contract to equality/membership filters only;
it is linear in the cabin's booking count, which is fine for per-cabin
volumes but would need an interval index (sorted-by-start sweep) for very
busy cabins.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, date, datetime
from typing import Any

from cabin_booking.models import INACTIVE_STATUSES
from cabin_booking.resolver import TimeWindow, to_utc
from cabin_booking.store import Eq, NotIn, Store


def _as_instant(value: Any) -> datetime:
    if isinstance(value, datetime):
        return to_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    return to_utc(datetime.fromisoformat(str(value)))


def booking_window(booking: dict) -> TimeWindow:
    """Precise window of a booking, falling back to its coarse dates."""
    start = booking.get("start_datetime") or booking["start_date"]
    end = booking.get("end_datetime") or booking["end_date"]
    return TimeWindow(_as_instant(start), _as_instant(end))


def block_window(block: dict) -> TimeWindow:
    return TimeWindow(_as_instant(block["start_date"]), _as_instant(block["end_date"]))


class CabinLocks:
    """
    One ``asyncio.Lock`` per cabin. Held around every check-then-write
    sequence so two requests for the same cabin cannot both pass the
    availability check before either inserts.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._holders: dict[str, int] = {}

    def __len__(self) -> int:
        """Cabins with a holder or waiter right now."""
        return len(self._locks)

    @asynccontextmanager
    async def hold(self, cabin_id: Any) -> AsyncIterator[None]:
        key = str(cabin_id)
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            # dropped with its last holder
            self._holders[key] -= 1
            if not self._holders[key]:
                del self._holders[key]
                del self._locks[key]


class AvailabilityChecker:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def active_bookings(self, cabin_id: Any) -> list[dict]:
        return await self.store.find(
            "bookings",
            Eq("cabin_id", cabin_id),
            NotIn("status", [s.value for s in INACTIVE_STATUSES]),
        )

    async def blocks(self, cabin_id: Any) -> list[dict]:
        return await self.store.find("unavailabilities", Eq("cabin_id", cabin_id))

    async def find_booking_conflict(
        self, cabin_id: Any, window: TimeWindow, exclude_id: Any = None
    ) -> dict | None:
        """Return the first active booking overlapping the window."""
        for booking in await self.active_bookings(cabin_id):
            if exclude_id is not None and str(booking["id"]) == str(exclude_id):
                continue
            if booking_window(booking).overlaps(window):
                return booking
        return None

    async def find_conflict(self, cabin_id: Any, window: TimeWindow) -> dict | None:
        """Return the first active booking or block overlapping the window."""
        bookings, blocks = await asyncio.gather(
            self.active_bookings(cabin_id), self.blocks(cabin_id)
        )
        for booking in bookings:
            if booking_window(booking).overlaps(window):
                return booking
        for block in blocks:
            if block_window(block).overlaps(window):
                return block
        return None

    async def is_available(self, cabin_id: Any, window: TimeWindow) -> bool:
        return await self.find_conflict(cabin_id, window) is None
