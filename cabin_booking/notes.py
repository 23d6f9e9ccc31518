"""
Per-day notes and legend assignments.

One ``day_notes`` document per cabin-day with the deterministic id
``{cabin_id}_{YYYY-MM-DD}``. A document carries an optional free-text note
and an optional legend reference; writing an empty note clears the day.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Any

from loguru import logger

from cabin_booking.blocks import BlockManager, resolve_targets
from cabin_booking.cabins import Clock, is_cabin_owner, utcnow
from cabin_booking.errors import ForbiddenError, ValidationError
from cabin_booking.legends import LegendService
from cabin_booking.resolver import days_in_window
from cabin_booking.schemas import LegendApply, NoteEntry
from cabin_booking.store import Eq, Store


def note_id(cabin_id: Any, day: date | str) -> str:
    return f"{cabin_id}_{day}"


def _month_bounds(year: int, month: int) -> tuple[str, str]:
    last = calendar.monthrange(year, month)[1]
    return f"{year:04d}-{month:02d}-01", f"{year:04d}-{month:02d}-{last:02d}"


class NotesService:
    def __init__(
        self,
        store: Store,
        blocks: BlockManager | None = None,
        legends: LegendService | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.blocks = blocks or BlockManager(store, clock=clock)
        self.legends = legends or LegendService(store, clock)
        self.clock = clock

    async def _write(self, cabin: dict, day: str, fields: dict, actor: Any) -> dict:
        doc_id = note_id(cabin["id"], day)
        values = {**fields, "updated_by": actor.id, "updated_at": self.clock()}
        if await self.store.get("day_notes", doc_id) is not None:
            return await self.store.update_by_id("day_notes", doc_id, values)  # type: ignore[return-value]
        return await self.store.insert_one(
            "day_notes", {"id": doc_id, "cabin_id": cabin["id"], "date": day, **values}
        )

    async def upsert_notes(self, cabin: dict, entries: list[NoteEntry], actor: Any) -> dict:
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()

        saved = cleared = 0
        updated = []
        for entry in entries:
            day = entry.date.isoformat()
            text = entry.note.strip() if entry.note else None
            if not text:
                if await self.store.delete_by_id("day_notes", note_id(cabin["id"], day)):
                    cleared += 1
                updated.append({"date": day, "note": None, "legend_id": None})
                continue
            await self._write(cabin, day, {"note": text, "legend_id": entry.legend_id}, actor)
            saved += 1
            updated.append({"date": day, "note": text, "legend_id": entry.legend_id})
        logger.info("Notes upserted: cabin={} saved={} cleared={}", cabin["slug"], saved, cleared)
        return {"saved": saved, "cleared": cleared, "updated": updated}

    async def get_notes_for_month(self, cabin_id: Any, year: int, month: int) -> dict[str, dict]:
        first, last = _month_bounds(year, month)
        notes = await self.store.find("day_notes", Eq("cabin_id", cabin_id))
        return {
            n["date"]: {"note": n.get("note"), "legend_id": n.get("legend_id")}
            for n in notes
            if first <= n["date"] <= last
        }

    async def get_all_notes_for_cabin(self, cabin_id: Any) -> list[dict]:
        notes = await self.store.find("day_notes", Eq("cabin_id", cabin_id), order_by="date")
        return [
            {"date": n["date"], "note": n.get("note"), "legend_id": n.get("legend_id")}
            for n in notes
        ]

    async def upsert_legend_assignments(
        self, cabin: dict, days: list[str], legend_id: Any, actor: Any
    ) -> dict:
        """Point each day at ``legend_id``. Existing note text is kept."""
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()
        for day in days:
            await self._write(cabin, day, {"legend_id": legend_id}, actor)
        return {"saved": len(days), "updated": [{"date": d, "legend_id": legend_id} for d in days]}

    async def apply_legend_to_dates(self, cabin: dict, payload: LegendApply, actor: Any) -> dict:
        """
        Colour dates with a legend. A non-bookable legend also blocks the
        dates, and is refused when any of them holds an active booking.
        """
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()

        legend = await self.legends.get(payload.legend_id)
        if not legend.get("is_active", True):
            raise ValidationError("Legend is inactive")
        if (
            not legend.get("is_default")
            and legend.get("company_slug")
            and legend["company_slug"] != cabin.get("company_slug")
        ):
            raise ValidationError("Legend does not belong to this cabin company")

        windows = resolve_targets(payload)
        days = sorted(
            {d.isoformat() for w in windows for d in days_in_window(w.start_day, w.end_day)}
        )

        created = []
        if not legend.get("is_bookable", True):
            created = await self.blocks.insert_blocks(cabin, windows, legend["name"])
        await self.upsert_legend_assignments(cabin, days, legend["id"], actor)

        message = f"Legend applied to {len(days)} date(s)"
        if not legend.get("is_bookable", True):
            message += f" and {len(created)} block(s) created"
        return {
            "message": message,
            "legend": {
                "id": legend["id"],
                "name": legend["name"],
                "is_bookable": legend.get("is_bookable", True),
            },
            "dates": days,
            "blocks_created": len(created),
        }
