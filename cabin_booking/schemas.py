from __future__ import annotations

import datetime as dt
import re
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cabin_booking.models import BookingStatus
from cabin_booking.resolver import WINDOW_FIELDS, Half

_HEX_COLOR_RE = re.compile(r"^#([0-9a-fA-F]{6}|[0-9a-fA-F]{3})$")
_CLOCK_FIELDS = (
    "full_day_start_time",
    "full_day_end_time",
    "am_start_time",
    "am_end_time",
    "pm_start_time",
    "pm_end_time",
)


def _check_hex(v: str | None) -> str | None:
    if v is not None and not _HEX_COLOR_RE.match(v):
        raise ValueError("color must be a hex value like #1a2b3c or #fff")
    return v


# ---------------------------------------------------------------------------
# Cabins
# ---------------------------------------------------------------------------


class CabinBase(BaseModel):
    address: str | None = Field(default=None, max_length=200)
    postal_code: str | None = Field(default=None, max_length=20)
    city: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=30)
    email: str | None = Field(default=None, max_length=254)
    contact_person_name: str | None = Field(default=None, max_length=100)
    company_slug: str | None = Field(default=None, max_length=120)

    halfday_availability: bool | None = None
    full_day_start_time: str | None = None
    full_day_end_time: str | None = None
    am_start_time: str | None = None
    am_end_time: str | None = None
    pm_start_time: str | None = None
    pm_end_time: str | None = None

    @field_validator(*_CLOCK_FIELDS)
    @classmethod
    def check_clock(cls, v: str | None) -> str | None:
        if v is not None and not re.match(r"^([01]\d|2[0-3]):[0-5]\d$|^24:00$", v):
            raise ValueError("time must be in HH:MM format")
        return v


class CabinCreate(CabinBase):
    name: str = Field(min_length=1, max_length=120)
    color: str = "#3b82f6"
    halfday_availability: bool = False

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        return _check_hex(v)


class CabinUpdate(CabinBase):
    name: str | None = Field(default=None, min_length=1, max_length=120)
    color: str | None = None

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        return _check_hex(v)


class CabinResponse(BaseModel):
    id: UUID
    owner_id: UUID
    slug: str
    name: str
    address: str | None = None
    postal_code: str | None = None
    city: str | None = None
    phone: str | None = None
    email: str | None = None
    contact_person_name: str | None = None
    company_slug: str | None = None
    color: str | None = None
    halfday_availability: bool = False
    full_day_start_time: str | None = None
    full_day_end_time: str | None = None
    am_start_time: str | None = None
    am_end_time: str | None = None
    pm_start_time: str | None = None
    pm_end_time: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Bookings
# ---------------------------------------------------------------------------


class GuestDetails(BaseModel):
    guest_name: str = Field(min_length=1, max_length=100)
    guest_address: str = Field(min_length=1, max_length=200)
    guest_postal_code: str = Field(min_length=1, max_length=20)
    guest_city: str = Field(min_length=1, max_length=100)
    guest_phone: str = Field(min_length=1, max_length=30)
    guest_email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=254)
    guest_affiliation: str | None = Field(default=None, max_length=200)

    def guest_fields(self) -> dict:
        return self.model_dump(include=set(GuestDetails.model_fields))


class BookingSegment(BaseModel):
    start_date: dt.date
    end_date: dt.date
    start_half: Half = Half.AM
    end_half: Half = Half.PM


class BookingCreate(GuestDetails):
    """
    One of three window shapes, never mixed:
      - ``date`` (+ ``half``, optional ``start_time``/``end_time``)
      - ``start_date``/``end_date`` (+ ``start_half``/``end_half``)
      - ``start_datetime``/``end_datetime``
    A body carrying ``segments`` is handled as a multi-segment booking.
    """

    date: dt.date | None = None
    half: Half | None = None
    start_time: str | None = None
    end_time: str | None = None

    start_date: dt.date | None = None
    end_date: dt.date | None = None
    start_half: Half | None = None
    end_half: Half | None = None

    start_datetime: dt.datetime | None = None
    end_datetime: dt.datetime | None = None

    segments: list[BookingSegment] | None = Field(default=None, min_length=1, max_length=10)

    def window_values(self) -> dict:
        return self.model_dump(include=set(WINDOW_FIELDS))


class MultiBookingCreate(GuestDetails):
    segments: list[BookingSegment] = Field(min_length=1, max_length=10)


class BookingResponse(BaseModel):
    id: UUID
    cabin_id: UUID
    user_id: UUID | None = None
    start_date: dt.date
    end_date: dt.date
    start_datetime: dt.datetime
    end_datetime: dt.datetime
    guest_name: str
    guest_address: str
    guest_postal_code: str
    guest_city: str
    guest_phone: str
    guest_email: str
    guest_affiliation: str | None = None
    status: BookingStatus
    cancelled_by: str | None = None
    cancelled_at: dt.datetime | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


class OwnerCancelResponse(BaseModel):
    booking: BookingResponse
    previous_status: BookingStatus


class BookingPage(BaseModel):
    items: list[BookingResponse]
    total: int
    page: int
    limit: int
    has_more: bool


class BookingFilters(BaseModel):
    """Bind to a FastAPI route via Depends(BookingFilters)."""

    # None or "all" means every status
    status: BookingStatus | Literal["all"] | None = None
    cabin_slug: str | None = None

    # Pagination
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1, le=100)


class ApprovalOptions(BaseModel):
    send_email: bool = True


class AvailabilityQuery(BaseModel):
    """Bind to a FastAPI route via Depends(AvailabilityQuery)."""

    date: dt.date | None = None
    half: Half | None = None
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    start_half: Half | None = None
    end_half: Half | None = None

    def window_values(self) -> dict:
        return self.model_dump()


class AvailabilityResponse(BaseModel):
    available: bool


class BookedRange(BaseModel):
    start_date: dt.date
    end_date: dt.date
    start_datetime: dt.datetime | None = None
    end_datetime: dt.datetime | None = None
    status: BookingStatus
    guest_name: str | None = None


class BlockedRange(BaseModel):
    start_date: dt.datetime
    end_date: dt.datetime
    reason: str | None = None


class BookedDates(BaseModel):
    bookings: list[BookedRange]
    blocks: list[BlockedRange]


# ---------------------------------------------------------------------------
# Blocks
# ---------------------------------------------------------------------------


class DateHalf(BaseModel):
    date: dt.date
    half: Half = Half.FULL


class BlockTargets(BaseModel):
    """
    Dates to block or unblock. ``dates`` wins over ``date``, which wins
    over ``start_date``/``end_date``.
    """

    dates: list[dt.date | DateHalf] | None = None
    date: dt.date | None = None
    half: Half = Half.FULL
    start_date: dt.date | None = None
    end_date: dt.date | None = None
    start_half: Half = Half.AM
    end_half: Half = Half.PM


class BlockCreate(BlockTargets):
    reason: str | None = Field(default=None, max_length=200)


class BlockUpdate(BaseModel):
    """Unknown fields are dropped; an empty update is refused by the manager."""

    start_date: dt.datetime | None = None
    end_date: dt.datetime | None = None
    reason: str | None = Field(default=None, max_length=200)

    model_config = ConfigDict(extra="ignore")


class BlockResponse(BaseModel):
    id: UUID
    cabin_id: UUID
    start_date: dt.datetime
    end_date: dt.datetime
    reason: str | None = None
    created_at: dt.datetime | None = None
    updated_at: dt.datetime | None = None

    model_config = ConfigDict(from_attributes=True)


# ---------------------------------------------------------------------------
# Notes and legends
# ---------------------------------------------------------------------------


class NoteEntry(BaseModel):
    date: dt.date
    note: str | None = Field(default=None, max_length=2000)
    legend_id: UUID | None = None


class NotesUpsert(BaseModel):
    notes: list[NoteEntry] = Field(min_length=1, max_length=400)


class LegendApply(BlockTargets):
    legend_id: UUID


class LegendCreate(BaseModel):
    name: str = Field(min_length=1, max_length=60)
    color: str
    description: str = Field(default="", max_length=500)
    is_bookable: bool = True
    company_slug: str | None = Field(default=None, max_length=120)

    @field_validator("color")
    @classmethod
    def check_color(cls, v: str | None) -> str | None:
        return _check_hex(v)


class LegendResponse(BaseModel):
    id: UUID
    name: str
    color: str
    description: str = ""
    is_bookable: bool = True
    is_active: bool = True
    is_default: bool = False
    company_slug: str | None = None

    model_config = ConfigDict(from_attributes=True)


class UnblockResult(BaseModel):
    message: str
    removed_blocks: list[BlockResponse]


class NoteView(BaseModel):
    date: str
    note: str | None = None
    legend_id: UUID | None = None


class NotesUpsertResult(BaseModel):
    saved: int
    cleared: int
    updated: list[NoteView]


class LegendApplyResult(BaseModel):
    message: str
    legend: dict
    dates: list[str]
    blocks_created: int
