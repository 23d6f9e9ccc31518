"""
Month calendar for a cabin.

Each date touched by an active booking, a block or a day note gets an
entry. Blocks win over bookings when both touch a date:

    block reason contains "maintenance"  -> maintenance
    any other block                      -> unavailable
    active booking                       -> booked
    note/legend only                     -> available
"""

from __future__ import annotations

import asyncio
import calendar
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from cabin_booking.availability import AvailabilityChecker, block_window, booking_window
from cabin_booking.errors import ValidationError
from cabin_booking.legends import LegendService
from cabin_booking.notes import NotesService
from cabin_booking.resolver import TimeWindow, days_in_window
from cabin_booking.store import Store

BOOKED = "booked"
MAINTENANCE = "maintenance"
UNAVAILABLE = "unavailable"
AVAILABLE = "available"

_MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def occupancy_rate(booked: int, total: int) -> int:
    """Percentage rounded half-up, so 1/8 days is 13, not banker's 12."""
    if total <= 0:
        return 0
    value = Decimal(booked * 100) / Decimal(total)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _day_bounds(day: date) -> TimeWindow:
    start = datetime(day.year, day.month, day.day, tzinfo=UTC)
    return TimeWindow(start, start + timedelta(days=1) - timedelta(milliseconds=1))


def _slices(window: TimeWindow, first: date, last: date):
    """Yield ``(day, start, end)`` for each day of the window inside [first, last]."""
    # A window ending exactly at midnight does not touch the next day
    end_day = (window.end - timedelta(microseconds=1)).date()
    for day in days_in_window(max(window.start_day, first), min(end_day, last)):
        bounds = _day_bounds(day)
        yield day, max(window.start, bounds.start), min(window.end, bounds.end)


def _legend_view(legend_id: Any, legends: dict[str, dict]) -> dict | None:
    if legend_id is None:
        return None
    legend = legends.get(str(legend_id))
    if legend is None:
        return {"id": legend_id}
    return {
        "id": legend["id"],
        "name": legend["name"],
        "color": legend["color"],
        "is_bookable": legend.get("is_bookable", True),
    }


class CalendarView:
    def __init__(
        self,
        store: Store,
        availability: AvailabilityChecker | None = None,
        notes: NotesService | None = None,
        legends: LegendService | None = None,
    ) -> None:
        self.store = store
        self.availability = availability or AvailabilityChecker(store)
        self.legends = legends or LegendService(store)
        self.notes = notes or NotesService(store, legends=self.legends)

    async def get_calendar_data(self, cabin: dict, year: int, month: int) -> dict:
        if not 1 <= month <= 12:
            raise ValidationError("month must be between 1 and 12")
        total_days = calendar.monthrange(year, month)[1]
        first, last = date(year, month, 1), date(year, month, total_days)

        bookings, blocks, notes = await asyncio.gather(
            self.availability.active_bookings(cabin["id"]),
            self.availability.blocks(cabin["id"]),
            self.notes.get_notes_for_month(cabin["id"], year, month),
        )
        legends = await self.legends.get_many(
            {n["legend_id"] for n in notes.values() if n.get("legend_id")}
        )

        booking_items: dict[date, list[dict]] = {}
        for booking in bookings:
            for day, start, end in _slices(booking_window(booking), first, last):
                booking_items.setdefault(day, []).append(
                    {
                        "type": "booking",
                        "id": booking["id"],
                        "status": booking["status"],
                        "guest_name": booking.get("guest_name"),
                        "start": start,
                        "end": end,
                    }
                )

        block_items: dict[date, list[dict]] = {}
        for block in sorted(blocks, key=lambda b: block_window(b).start):
            for day, start, end in _slices(block_window(block), first, last):
                block_items.setdefault(day, []).append(
                    {
                        "type": "block",
                        "id": block["id"],
                        "reason": block.get("reason"),
                        "start": start,
                        "end": end,
                    }
                )

        touched = set(booking_items) | set(block_items) | {date.fromisoformat(d) for d in notes}
        entries = []
        for day in sorted(touched):
            if day in block_items:
                reason = block_items[day][0]["reason"] or ""
                status = MAINTENANCE if "maintenance" in reason.lower() else UNAVAILABLE
            elif day in booking_items:
                status = BOOKED
            else:
                status = AVAILABLE

            note = notes.get(day.isoformat(), {})
            legend = _legend_view(note.get("legend_id"), legends)
            entries.append(
                {
                    "date": day.isoformat(),
                    "status": status,
                    "items": booking_items.get(day, []) + block_items.get(day, []),
                    "note": note.get("note"),
                    "legend": legend,
                    "bookable": status == AVAILABLE
                    and (legend is None or legend.get("is_bookable", True) is not False),
                }
            )

        counts = {s: sum(1 for e in entries if e["status"] == s) for s in (BOOKED, MAINTENANCE, UNAVAILABLE)}
        return {
            "calendar": entries,
            "stats": {
                "total_days": total_days,
                "booked_days": counts[BOOKED],
                "maintenance_days": counts[MAINTENANCE],
                "unavailable_days": counts[UNAVAILABLE],
                "available_days": total_days - sum(counts.values()),
                "occupancy_rate": occupancy_rate(counts[BOOKED], total_days),
            },
            "month": {"year": year, "month": month, "name": _MONTH_NAMES[month - 1]},
        }
