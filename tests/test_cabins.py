"""
Cabin registry: slugs, ownership and the /cabins endpoints.
"""

from __future__ import annotations

import asyncio
from uuid import uuid4

import pytest

from cabin_booking.cabins import CabinService
from cabin_booking.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from cabin_booking.models import BookingStatus
from cabin_booking.notes import note_id
from cabin_booking.slugs import slugify, unique_slug
from cabin_booking.store import Eq

from .factories import (
    CABIN_ID,
    CABIN_SLUG,
    OWNER_ID,
    block_dict,
    booking_dict,
    cabin_dict,
    fixed_clock,
    make_other_owner,
    make_owner,
    utc,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("Hytte Øst", "hytte-ost"),
        ("Fjellstue på Toppen!", "fjellstue-pa-toppen"),
        ("  Bjørnebu -- Ærlig  ", "bjornebu-aerlig"),
        ("Café Sol", "cafe-sol"),
        ("!!!", ""),
    ],
)
def test_slugify(raw, expected):
    assert slugify(raw) == expected


async def test_unique_slug_appends_counter():
    taken = {"hytte-ost", "hytte-ost-2"}

    async def exists(candidate: str) -> bool:
        return candidate in taken

    assert await unique_slug("Hytte Øst", exists) == "hytte-ost-3"
    assert await unique_slug("???", exists) == "cabin"


class TestCabinService:
    async def test_get_by_slug_falls_back_to_normalized_name(self, store):
        cabins = CabinService(store)
        assert (await cabins.get_by_slug("Hytte Øst"))["id"] == CABIN_ID
        assert (await cabins.get_by_slug(CABIN_SLUG))["id"] == CABIN_ID

    async def test_unknown_slug_is_not_found(self, store):
        with pytest.raises(NotFoundError, match="Cabin not found"):
            await CabinService(store).get_by_slug("nowhere")

    async def test_create_picks_a_free_slug(self, store):
        cabin = await CabinService(store, fixed_clock()).create({"name": "Hytte Øst"}, make_owner())
        assert cabin["slug"] == "hytte-ost-2"
        assert cabin["owner_id"] == OWNER_ID

    async def test_update_renames_and_reslugs(self, store):
        updated = await CabinService(store).update(CABIN_SLUG, {"name": "Hytte Vest"}, make_owner())
        assert updated["slug"] == "hytte-vest"

    async def test_update_drops_immutable_fields(self, store):
        with pytest.raises(ValidationError, match="No valid fields"):
            await CabinService(store).update(CABIN_SLUG, {"owner_id": uuid4(), "slug": "x"}, make_owner())

    async def test_update_by_stranger_is_forbidden(self, store):
        with pytest.raises(ForbiddenError):
            await CabinService(store).update(CABIN_SLUG, {"city": "Geilo"}, make_other_owner())

    async def test_delete_refused_with_upcoming_booking(self, store):
        store.load("bookings", booking_dict())
        with pytest.raises(ConflictError):
            await CabinService(store, fixed_clock()).delete(CABIN_SLUG, make_owner())

    async def test_delete_removes_everything(self, store):
        store.load(
            "bookings",
            booking_dict(status=BookingStatus.CANCELLED),
            booking_dict(id=uuid4(), start_datetime=utc(2025, 5, 1), end_datetime=utc(2025, 5, 2)),
        )
        store.load("unavailabilities", block_dict())
        store.load("day_notes", {"id": note_id(CABIN_ID, "2025-06-01"), "cabin_id": CABIN_ID, "date": "2025-06-01"})

        await CabinService(store, fixed_clock()).delete(CABIN_SLUG, make_owner())

        assert await store.get("cabins", CABIN_ID) is None
        for collection in ("bookings", "unavailabilities", "day_notes"):
            assert await store.find(collection, Eq("cabin_id", CABIN_ID)) == []

    async def test_list_for_owner(self, store):
        store.load("cabins", cabin_dict(id=uuid4(), slug="annen", name="Annen", owner_id=uuid4()))
        owned = await CabinService(store).list_for_owner(OWNER_ID)
        assert [c["slug"] for c in owned] == [CABIN_SLUG]


class TestCabinEndpoints:
    def test_get_is_public(self, anon_client):
        resp = anon_client.get(f"/cabins/{CABIN_SLUG}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Hytte Øst"

    def test_owner_creates_cabin(self, owner_client):
        resp = owner_client.post("/cabins", json={"name": "Fjellstue på Toppen", "halfday_availability": True})
        assert resp.status_code == 201
        assert resp.json()["slug"] == "fjellstue-pa-toppen"

    def test_guest_cannot_create(self, guest_client):
        assert guest_client.post("/cabins", json={"name": "Nope"}).status_code == 403

    @pytest.mark.parametrize("field,value", [("color", "blue"), ("am_start_time", "9am")])
    def test_invalid_fields_return_400(self, owner_client, field, value):
        assert owner_client.post("/cabins", json={"name": "X", field: value}).status_code == 400

    def test_short_hex_color_is_accepted(self, owner_client):
        assert owner_client.post("/cabins", json={"name": "Kort", "color": "#abc"}).status_code == 201

    def test_update(self, owner_client, redis_mock):
        resp = owner_client.put(f"/cabins/{CABIN_SLUG}", json={"city": "Geilo"})
        assert resp.status_code == 200
        assert resp.json()["city"] == "Geilo"
        redis_mock.delete.assert_awaited_once_with(f"calendar:{CABIN_ID}")

    def test_delete_with_booking_returns_409(self, owner_client, store):
        store.load("bookings", booking_dict())
        assert owner_client.delete(f"/cabins/{CABIN_SLUG}").status_code == 409

    def test_delete_returns_204(self, owner_client, store):
        assert owner_client.delete(f"/cabins/{CABIN_SLUG}").status_code == 204
        assert asyncio.run(store.get("cabins", CABIN_ID)) is None

    def test_availability(self, anon_client, store):
        store.load("bookings", booking_dict())
        url = f"/cabins/{CABIN_SLUG}/availability"
        assert anon_client.get(url, params={"date": "2025-06-10"}).json() == {"available": False}
        assert anon_client.get(url, params={"date": "2025-06-11"}).json() == {"available": True}

    def test_availability_without_window_returns_400(self, anon_client):
        assert anon_client.get(f"/cabins/{CABIN_SLUG}/availability").status_code == 400

    def test_booked_dates_hide_contact_details(self, anon_client, store):
        store.load("bookings", booking_dict())
        store.load("unavailabilities", block_dict(reason="Roof"))
        body = anon_client.get(f"/cabins/{CABIN_SLUG}/booked-dates").json()
        assert len(body["bookings"]) == 1
        assert "guest_email" not in body["bookings"][0]
        assert body["blocks"][0]["reason"] == "Roof"
