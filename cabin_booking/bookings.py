"""
Booking lifecycle.

    pending --approve--> approved
    pending --reject---> rejected          (terminal)
    any non-cancelled --guest cancel--> cancelled, unless already started
    pending|approved --owner cancel--> cancelled, at any time

Every check-then-insert runs under the cabin's lock and inside a store
transaction, so two concurrent requests for the same window cannot both
succeed. Domain events are published after the write has committed.
"""

from __future__ import annotations

import asyncio
from typing import Any

from loguru import logger

from cabin_booking.availability import AvailabilityChecker, CabinLocks, block_window, booking_window
from cabin_booking.cabins import CabinService, Clock, is_cabin_owner, same_id, utcnow
from cabin_booking.errors import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    PastDateError,
    ValidationError,
)
from cabin_booking.events import BookingCancelled, BookingCreated, BookingStatusChanged, EventBus
from cabin_booking.models import BookingStatus
from cabin_booking.resolver import CabinHours, TimeWindow, resolve_request, resolve_segments
from cabin_booking.roles import Role
from cabin_booking.schemas import (
    AvailabilityQuery,
    BookingCreate,
    BookingFilters,
    MultiBookingCreate,
)
from cabin_booking.store import Eq, In, Predicate, Store


def _is_admin(actor: Any) -> bool:
    return actor is not None and actor.role == Role.ADMIN


class BookingManager:
    def __init__(
        self,
        store: Store,
        availability: AvailabilityChecker | None = None,
        locks: CabinLocks | None = None,
        events: EventBus | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.availability = availability or AvailabilityChecker(store)
        self.locks = locks or CabinLocks()
        self.events = events or EventBus()
        self.clock = clock
        self.cabins = CabinService(store, clock)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _new_booking(
        self, cabin: dict, window: TimeWindow, guest: dict, actor: Any
    ) -> dict:
        now = self.clock()
        return {
            "cabin_id": cabin["id"],
            "user_id": actor.id if actor is not None else None,
            "start_date": window.start_day,
            "end_date": window.end_day,
            "start_datetime": window.start,
            "end_datetime": window.end,
            **guest,
            "status": BookingStatus.PENDING,
            "created_at": now,
            "updated_at": now,
        }

    async def create_booking(
        self, cabin: dict, payload: BookingCreate, actor: Any = None
    ) -> dict | list[dict]:
        """
        Create one pending booking. A payload carrying ``segments`` is
        delegated to ``create_multi_booking`` and returns a list.
        """
        if payload.segments:
            multi = MultiBookingCreate(**payload.guest_fields(), segments=payload.segments)
            return await self.create_multi_booking(cabin, multi, actor)

        window = resolve_request(payload.window_values(), CabinHours.from_cabin(cabin))
        if window.end < self.clock():
            raise PastDateError()

        async with self.locks.hold(cabin["id"]):
            async with self.store.transaction():
                if await self.availability.find_conflict(cabin["id"], window):
                    raise ConflictError(
                        f"Cabin is not available on {window.start_day.isoformat()}"
                    )
                booking = await self.store.insert_one(
                    "bookings", self._new_booking(cabin, window, payload.guest_fields(), actor)
                )

        logger.info(
            "Booking created: id={} cabin={} {} -> {}",
            booking["id"],
            cabin["slug"],
            window.start.isoformat(),
            window.end.isoformat(),
        )
        await self.events.publish(BookingCreated(booking=booking, cabin=cabin))
        return booking

    async def create_multi_booking(
        self, cabin: dict, payload: MultiBookingCreate, actor: Any = None
    ) -> list[dict]:
        """All segments are validated before any is stored; either all are created or none."""
        windows = resolve_segments(payload.segments, CabinHours.from_cabin(cabin))
        now = self.clock()
        if any(w.end < now for w in windows):
            raise PastDateError()

        guest = payload.guest_fields()
        async with self.locks.hold(cabin["id"]):
            async with self.store.transaction():
                for window in windows:
                    if await self.availability.find_conflict(cabin["id"], window):
                        raise ConflictError(
                            f"Segment starting {window.start_day.isoformat()} is not available"
                        )
                created = await self.store.insert_many(
                    "bookings", [self._new_booking(cabin, w, guest, actor) for w in windows]
                )

        logger.info("Multi-segment booking created: cabin={} segments={}", cabin["slug"], len(created))
        await self.events.publish_all(
            [BookingCreated(booking=booking, cabin=cabin) for booking in created]
        )
        return created

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    async def _load(self, booking_id: Any) -> tuple[dict, dict]:
        booking = await self.store.get("bookings", booking_id)
        if booking is None:
            raise NotFoundError("Booking not found")
        cabin = await self.store.get("cabins", booking["cabin_id"])
        if cabin is None:
            raise NotFoundError("Cabin not found")
        return booking, cabin

    async def _set_status(self, booking: dict, fields: dict) -> dict:
        updated = await self.store.update_by_id(
            "bookings", booking["id"], {**fields, "updated_at": self.clock()}
        )
        if updated is None:
            raise NotFoundError("Booking not found")
        return updated

    async def cancel_booking(self, booking_id: Any, actor: Any) -> dict:
        booking, cabin = await self._load(booking_id)
        by_owner = is_cabin_owner(cabin, actor)
        if not (by_owner or same_id(booking.get("user_id"), actor.id)):
            raise ForbiddenError()
        if booking["status"] == BookingStatus.CANCELLED:
            raise ValidationError("Booking is already cancelled")
        # Guests may not cancel once the stay has started; owners always may
        if not by_owner and self.clock() > booking_window(booking).start:
            raise PastDateError("Cannot cancel past bookings")

        updated = await self._set_status(
            booking,
            {
                "status": BookingStatus.CANCELLED,
                "cancelled_by": "owner" if by_owner else "guest",
                "cancelled_at": self.clock(),
            },
        )
        logger.info("Booking cancelled: id={} by={}", booking["id"], updated["cancelled_by"])
        await self.events.publish(
            BookingCancelled(booking=updated, cabin=cabin, cancelled_by=updated["cancelled_by"])
        )
        return updated

    async def owner_cancel_booking(self, booking_id: Any, actor: Any) -> tuple[dict, BookingStatus]:
        """Returns the cancelled booking and the status it had before."""
        booking, cabin = await self._load(booking_id)
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()
        previous = BookingStatus(booking["status"])
        if previous == BookingStatus.CANCELLED:
            raise ValidationError("Booking is already cancelled")
        if previous == BookingStatus.REJECTED:
            raise ValidationError("Cannot cancel a rejected booking")

        updated = await self._set_status(
            booking,
            {
                "status": BookingStatus.CANCELLED,
                "cancelled_by": "owner",
                "cancelled_at": self.clock(),
            },
        )
        logger.info("Booking cancelled by owner: id={} previous={}", booking["id"], previous)
        await self.events.publish(BookingCancelled(booking=updated, cabin=cabin, cancelled_by="owner"))
        return updated, previous

    async def _decide(
        self, booking_id: Any, actor: Any, status: BookingStatus, verb: str, send_email: bool
    ) -> dict:
        booking, cabin = await self._load(booking_id)
        if not (_is_admin(actor) or is_cabin_owner(cabin, actor)):
            raise ForbiddenError()
        if booking["status"] != BookingStatus.PENDING:
            raise ValidationError(f"Only pending bookings can be {verb}")

        updated = await self._set_status(booking, {"status": status})
        logger.info("Booking {}: id={} by={}", verb, booking["id"], actor.id)
        await self.events.publish(
            BookingStatusChanged(booking=updated, cabin=cabin, status=status, notify=send_email)
        )
        return updated

    async def approve_booking(self, booking_id: Any, actor: Any, send_email: bool = True) -> dict:
        return await self._decide(booking_id, actor, BookingStatus.APPROVED, "approved", send_email)

    async def reject_booking(self, booking_id: Any, actor: Any, send_email: bool = True) -> dict:
        return await self._decide(booking_id, actor, BookingStatus.REJECTED, "rejected", send_email)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_booking(self, booking_id: Any, actor: Any) -> dict:
        booking, cabin = await self._load(booking_id)
        if not (
            same_id(booking.get("user_id"), actor.id)
            or is_cabin_owner(cabin, actor)
            or _is_admin(actor)
        ):
            raise ForbiddenError()
        return booking

    async def _page(
        self, predicates: list[Predicate], filters: BookingFilters, order_by: str
    ) -> dict:
        if filters.status not in (None, "all"):
            predicates = [*predicates, Eq("status", filters.status)]
        skip = (filters.page - 1) * filters.limit
        items, total = await asyncio.gather(
            self.store.find(
                "bookings", *predicates, order_by=order_by, skip=skip, limit=filters.limit
            ),
            self.store.count("bookings", *predicates),
        )
        return {
            "items": items,
            "total": total,
            "page": filters.page,
            "limit": filters.limit,
            "has_more": skip + len(items) < total,
        }

    async def get_user_bookings(self, actor: Any, filters: BookingFilters) -> dict:
        return await self._page([Eq("user_id", actor.id)], filters, "start_datetime")

    async def get_owner_bookings(self, actor: Any, filters: BookingFilters) -> dict:
        cabins = await self.cabins.list_for_owner(actor.id, filters.cabin_slug)
        return await self._page(
            [In("cabin_id", [c["id"] for c in cabins])], filters, "start_datetime"
        )

    async def get_cabin_bookings(self, cabin: dict, actor: Any, filters: BookingFilters) -> dict:
        if not is_cabin_owner(cabin, actor):
            raise ForbiddenError()
        return await self._page([Eq("cabin_id", cabin["id"])], filters, "-created_at")

    async def get_pending_bookings(self, actor: Any, filters: BookingFilters) -> dict:
        """Admins see every cabin (or one by slug); owners see their own cabins."""
        predicates: list[Predicate] = [Eq("status", BookingStatus.PENDING.value)]
        if _is_admin(actor):
            if filters.cabin_slug:
                cabin = await self.cabins.get_by_slug(filters.cabin_slug)
                predicates.append(Eq("cabin_id", cabin["id"]))
        elif actor.role == Role.OWNER:
            cabins = await self.cabins.list_for_owner(actor.id, filters.cabin_slug)
            predicates.append(In("cabin_id", [c["id"] for c in cabins]))
        else:
            raise ForbiddenError()
        # the listing is always pending-only
        filters = filters.model_copy(update={"status": None})
        return await self._page(predicates, filters, "-created_at")

    async def check_availability(self, cabin: dict, query: AvailabilityQuery) -> bool:
        window = resolve_request(query.window_values(), CabinHours.from_cabin(cabin))
        return await self.availability.is_available(cabin["id"], window)

    async def get_booked_dates(self, cabin: dict) -> dict:
        bookings, blocks = await asyncio.gather(
            self.availability.active_bookings(cabin["id"]),
            self.availability.blocks(cabin["id"]),
        )
        return {
            "bookings": sorted(bookings, key=lambda b: booking_window(b).start),
            "blocks": sorted(blocks, key=lambda b: block_window(b).start),
        }
