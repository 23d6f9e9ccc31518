"""
All test-data builders in one place.
Import from here in every test file; never define dummy data inline.
"""

from __future__ import annotations

from datetime import UTC, date, datetime
from uuid import UUID, uuid4

from cabin_booking.deps import CurrentUser
from cabin_booking.models import BookingStatus
from cabin_booking.roles import Role

# ---------------------------------------------------------------------------
# Stable IDs: use these when a specific, repeatable UUID is needed.
# Call uuid4() inline when you need a fresh one per test.
# ---------------------------------------------------------------------------

GUEST_ID: UUID = uuid4()
OWNER_ID: UUID = uuid4()
OTHER_OWNER_ID: UUID = uuid4()
ADMIN_ID: UUID = uuid4()

CABIN_ID: UUID = uuid4()
BOOKING_ID: UUID = uuid4()
BLOCK_ID: UUID = uuid4()
LEGEND_ID: UUID = uuid4()

CABIN_SLUG = "hytte-ost"

# Every test runs "today" at this instant; dates in June 2025 are upcoming.
NOW = datetime(2025, 5, 15, 9, 0, 0, tzinfo=UTC)


def fixed_clock(at: datetime = NOW):
    return lambda: at


def utc(*args: int) -> datetime:
    """utc(2025, 6, 1, 12) -> 2025-06-01T12:00:00Z; a 7th argument is milliseconds."""
    if len(args) == 7:
        *head, ms = args
        return datetime(*head, ms * 1000, tzinfo=UTC)
    return datetime(*args, tzinfo=UTC)


# ---------------------------------------------------------------------------
# User factories
# ---------------------------------------------------------------------------


def make_guest(user_id: UUID = GUEST_ID) -> CurrentUser:
    return CurrentUser(id=user_id, username=f"guest_{user_id}", role=Role.USER)


def make_owner(user_id: UUID = OWNER_ID, company_slug: str | None = "fjellhytter") -> CurrentUser:
    return CurrentUser(
        id=user_id, username=f"owner_{user_id}", role=Role.OWNER, company_slug=company_slug
    )


def make_other_owner() -> CurrentUser:
    return make_owner(OTHER_OWNER_ID, company_slug="other-company")


def make_admin(user_id: UUID = ADMIN_ID) -> CurrentUser:
    return CurrentUser(id=user_id, username=f"admin_{user_id}", role=Role.ADMIN)


def identity_headers(user: CurrentUser) -> dict[str, str]:
    headers = {"X-User-Id": str(user.id), "X-Username": user.username, "X-User-Role": user.role.value}
    if user.company_slug:
        headers["X-User-Company"] = user.company_slug
    return headers


# ---------------------------------------------------------------------------
# Stored documents
# ---------------------------------------------------------------------------


def cabin_dict(**overrides) -> dict:
    data = {
        "id": CABIN_ID,
        "owner_id": OWNER_ID,
        "slug": CABIN_SLUG,
        "name": "Hytte Øst",
        "address": "Fjellveien 1",
        "postal_code": "3550",
        "city": "Gol",
        "phone": "+47 900 00 000",
        "email": "owner@example.com",
        "contact_person_name": "Kari Nordmann",
        "company_slug": "fjellhytter",
        "color": "#3b82f6",
        "halfday_availability": True,
        "full_day_start_time": None,
        "full_day_end_time": None,
        "am_start_time": None,
        "am_end_time": None,
        "pm_start_time": None,
        "pm_end_time": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return data


def guest_fields(**overrides) -> dict:
    data = {
        "guest_name": "Ola Nordmann",
        "guest_address": "Storgata 5",
        "guest_postal_code": "0155",
        "guest_city": "Oslo",
        "guest_phone": "+47 400 00 000",
        "guest_email": "ola@example.com",
        "guest_affiliation": None,
    }
    data.update(overrides)
    return data


def booking_dict(**overrides) -> dict:
    """A pending full-day booking on 2025-06-10."""
    data = {
        "id": BOOKING_ID,
        "cabin_id": CABIN_ID,
        "user_id": GUEST_ID,
        "start_date": date(2025, 6, 10),
        "end_date": date(2025, 6, 10),
        "start_datetime": utc(2025, 6, 10),
        "end_datetime": utc(2025, 6, 10, 23, 59, 59, 999),
        **guest_fields(),
        "status": BookingStatus.PENDING,
        "cancelled_by": None,
        "cancelled_at": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return data


def block_dict(**overrides) -> dict:
    """A full-day block on 2025-06-20."""
    data = {
        "id": BLOCK_ID,
        "cabin_id": CABIN_ID,
        "start_date": utc(2025, 6, 20),
        "end_date": utc(2025, 6, 20, 23, 59, 59, 999),
        "reason": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return data


def legend_dict(**overrides) -> dict:
    data = {
        "id": LEGEND_ID,
        "name": "Closed",
        "color": "#111827",
        "description": "",
        "is_bookable": False,
        "is_active": True,
        "is_default": False,
        "company_slug": "fjellhytter",
        "created_by": OWNER_ID,
        "created_at": NOW,
        "updated_at": NOW,
    }
    data.update(overrides)
    return data


# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


def booking_payload(**overrides) -> dict:
    """Single AM half-day request for 2025-06-01."""
    data = {k: v for k, v in guest_fields().items() if v is not None}
    data.update({"date": "2025-06-01", "half": "AM"})
    data.update(overrides)
    return data


def range_payload(start: str, end: str, start_half: str = "AM", end_half: str = "PM", **overrides) -> dict:
    data = {k: v for k, v in guest_fields().items() if v is not None}
    data.update(
        {"start_date": start, "end_date": end, "start_half": start_half, "end_half": end_half}
    )
    data.update(overrides)
    return data


def multi_payload(*segments: tuple[str, str], **overrides) -> dict:
    data = {k: v for k, v in guest_fields().items() if v is not None}
    data["segments"] = [{"start_date": s, "end_date": e} for s, e in segments]
    data.update(overrides)
    return data
