from __future__ import annotations

from datetime import date
from typing import Any

from loguru import logger

from cabin_booking.availability import AvailabilityChecker, CabinLocks, block_window
from cabin_booking.cabins import Clock, is_cabin_owner, utcnow
from cabin_booking.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from cabin_booking.resolver import (
    Half,
    TimeWindow,
    parse_instant,
    resolve_date_range,
    resolve_single_day,
)
from cabin_booking.schemas import BlockCreate, BlockTargets
from cabin_booking.store import Eq, Store

# Only these fields of a block may be changed after creation
_UPDATABLE_FIELDS = ("start_date", "end_date", "reason")


def resolve_targets(targets: BlockTargets) -> list[TimeWindow]:
    """
    Windows covered by a block/unblock/legend request. Blocks always use
    plain calendar-day halves; cabin clock hours do not apply.
    """
    if targets.dates:
        windows = []
        for item in targets.dates:
            if isinstance(item, date):
                windows.append(resolve_single_day(item, Half.FULL))
            else:
                windows.append(resolve_single_day(item.date, item.half))
        return windows
    if targets.date is not None:
        return [resolve_single_day(targets.date, targets.half)]
    if targets.start_date is not None and targets.end_date is not None:
        return [
            resolve_date_range(
                targets.start_date, targets.end_date, targets.start_half, targets.end_half
            )
        ]
    raise ValidationError("Provide dates, date, or start_date/end_date")


class BlockManager:
    def __init__(
        self,
        store: Store,
        availability: AvailabilityChecker | None = None,
        locks: CabinLocks | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.availability = availability or AvailabilityChecker(store)
        self.locks = locks or CabinLocks()
        self.clock = clock

    @staticmethod
    def _require_owner(cabin: dict, actor: Any) -> None:
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()

    async def insert_blocks(
        self, cabin: dict, windows: list[TimeWindow], reason: str | None
    ) -> list[dict]:
        """
        Check every window against active bookings, then insert all blocks
        at once. The first overlapping window aborts the whole request.
        """
        now = self.clock()
        async with self.locks.hold(cabin["id"]):
            async with self.store.transaction():
                for window in windows:
                    if await self.availability.find_booking_conflict(cabin["id"], window):
                        raise ConflictError(
                            f"Cannot block {window.start_day.isoformat()} - overlapping existing bookings"
                        )
                created = await self.store.insert_many(
                    "unavailabilities",
                    [
                        {
                            "cabin_id": cabin["id"],
                            "start_date": w.start,
                            "end_date": w.end,
                            "reason": reason,
                            "created_at": now,
                            "updated_at": now,
                        }
                        for w in windows
                    ],
                )
        logger.info("Blocks created: cabin={} count={}", cabin["slug"], len(created))
        return created

    async def block_dates(self, cabin: dict, payload: BlockCreate, actor: Any) -> list[dict]:
        self._require_owner(cabin, actor)
        return await self.insert_blocks(cabin, resolve_targets(payload), payload.reason)

    async def unblock_dates(self, cabin: dict, payload: BlockTargets, actor: Any) -> list[dict]:
        """Remove every block overlapping any target. Unknown dates are a no-op."""
        self._require_owner(cabin, actor)
        windows = resolve_targets(payload)

        removed: list[dict] = []
        async with self.locks.hold(cabin["id"]):
            for block in await self.availability.blocks(cabin["id"]):
                span = block_window(block)
                if any(span.overlaps(w) for w in windows):
                    await self.store.delete_by_id("unavailabilities", block["id"])
                    removed.append(block)
        logger.info("Blocks removed: cabin={} count={}", cabin["slug"], len(removed))
        return removed

    async def list_blocks(self, cabin: dict, actor: Any) -> list[dict]:
        self._require_owner(cabin, actor)
        return await self.store.find(
            "unavailabilities", Eq("cabin_id", cabin["id"]), order_by="start_date"
        )

    async def _get_block(self, cabin: dict, block_id: Any) -> dict:
        block = await self.store.get("unavailabilities", block_id)
        if block is None or str(block["cabin_id"]) != str(cabin["id"]):
            raise NotFoundError("Block not found")
        return block

    async def update_block(self, cabin: dict, block_id: Any, changes: dict, actor: Any) -> dict:
        self._require_owner(cabin, actor)
        updates = {k: changes[k] for k in _UPDATABLE_FIELDS if k in changes}
        if not updates:
            raise ValidationError("No valid fields to update")

        async with self.locks.hold(cabin["id"]):
            block = await self._get_block(cabin, block_id)
            for key in ("start_date", "end_date"):
                if key in updates:
                    if updates[key] is None:
                        raise ValidationError(f"{key} cannot be empty")
                    updates[key] = parse_instant(updates[key])
            window = TimeWindow(
                updates.get("start_date", block_window(block).start),
                updates.get("end_date", block_window(block).end),
            )
            if window.end <= window.start:
                raise ValidationError("end_date must be after start_date")
            if await self.availability.find_booking_conflict(cabin["id"], window):
                raise ConflictError(
                    f"Cannot block {window.start_day.isoformat()} - overlapping existing bookings"
                )
            updates["updated_at"] = self.clock()
            updated = await self.store.update_by_id("unavailabilities", block["id"], updates)
        if updated is None:
            raise NotFoundError("Block not found")
        return updated

    async def remove_block(self, cabin: dict, block_id: Any, actor: Any) -> None:
        self._require_owner(cabin, actor)
        block = await self._get_block(cabin, block_id)
        await self.store.delete_by_id("unavailabilities", block["id"])
        logger.info("Block removed: cabin={} id={}", cabin["slug"], block["id"])
