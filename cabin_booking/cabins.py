from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from cabin_booking.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from cabin_booking.models import INACTIVE_STATUSES
from cabin_booking.resolver import to_utc
from cabin_booking.slugs import slugify, unique_slug
from cabin_booking.store import Eq, NotIn, Store

Clock = Callable[[], datetime]

# Never writable through an update
_IMMUTABLE_FIELDS = {"id", "owner_id", "slug", "created_at", "updated_at"}


def utcnow() -> datetime:
    return datetime.now(UTC)


def same_id(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


def is_cabin_owner(cabin: dict, actor: Any) -> bool:
    return actor is not None and same_id(cabin.get("owner_id"), actor.id)


class CabinService:
    def __init__(self, store: Store, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    async def _slug_taken(self, slug: str, exclude_id: Any = None) -> bool:
        for cabin in await self.store.find("cabins", Eq("slug", slug)):
            if not same_id(cabin["id"], exclude_id):
                return True
        return False

    async def get_by_slug(self, slug: str) -> dict:
        """Exact slug first, then the normalized form (``"Hytte Øst"`` -> ``hytte-ost``)."""
        found = await self.store.find("cabins", Eq("slug", slug), limit=1)
        if not found:
            normalized = slugify(slug)
            if normalized and normalized != slug:
                found = await self.store.find("cabins", Eq("slug", normalized), limit=1)
        if not found:
            raise NotFoundError("Cabin not found")
        return found[0]

    async def get_owned(self, slug: str, actor: Any) -> dict:
        cabin = await self.get_by_slug(slug)
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()
        return cabin

    async def list_for_owner(self, owner_id: Any, slug: str | None = None) -> list[dict]:
        predicates = [Eq("owner_id", owner_id)]
        if slug:
            predicates.append(Eq("slug", slug))
        return await self.store.find("cabins", *predicates, order_by="name")

    async def create(self, data: dict, actor: Any) -> dict:
        now = self.clock()
        slug = await unique_slug(data["name"], self._slug_taken)
        cabin = await self.store.insert_one(
            "cabins",
            {
                **data,
                "owner_id": actor.id,
                "slug": slug,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("Cabin created: slug={} owner={}", slug, actor.id)
        return cabin

    async def update(self, slug: str, changes: dict, actor: Any) -> dict:
        cabin = await self.get_owned(slug, actor)
        updates = {k: v for k, v in changes.items() if k not in _IMMUTABLE_FIELDS}
        if not updates:
            raise ValidationError("No valid fields to update")

        if "name" in updates and updates["name"] != cabin["name"]:
            updates["slug"] = await unique_slug(
                updates["name"],
                lambda candidate: self._slug_taken(candidate, exclude_id=cabin["id"]),
            )
        updates["updated_at"] = self.clock()
        updated = await self.store.update_by_id("cabins", cabin["id"], updates)
        if updated is None:
            raise NotFoundError("Cabin not found")
        return updated

    async def delete(self, slug: str, actor: Any) -> dict:
        """
        Refused while the cabin has active bookings that have not ended.
        Otherwise its bookings, blocks and day notes go with it.
        """
        cabin = await self.get_owned(slug, actor)
        now = self.clock()
        active = await self.store.find(
            "bookings",
            Eq("cabin_id", cabin["id"]),
            NotIn("status", [s.value for s in INACTIVE_STATUSES]),
        )
        if any(to_utc(b["end_datetime"]) > now for b in active):
            raise ConflictError("Cannot delete a cabin with active bookings")

        async with self.store.transaction():
            for collection in ("bookings", "unavailabilities", "day_notes"):
                for doc in await self.store.find(collection, Eq("cabin_id", cabin["id"])):
                    await self.store.delete_by_id(collection, doc["id"])
            await self.store.delete_by_id("cabins", cabin["id"])
        logger.info("Cabin deleted: slug={}", cabin["slug"])
        return cabin
