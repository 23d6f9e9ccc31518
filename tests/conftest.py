"""
Shared pytest fixtures available to every test file automatically.
No imports needed in test files; pytest discovers this by convention.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from cabin_booking.availability import AvailabilityChecker, CabinLocks
from cabin_booking.blocks import BlockManager
from cabin_booking.bookings import BookingManager
from cabin_booking.deps import (
    get_cabin_locks,
    get_clock,
    get_current_user,
    get_event_bus,
    get_optional_user,
    get_store,
)
from cabin_booking.errors import register_error_handlers
from cabin_booking.events import EventBus
from cabin_booking.routers import blocks, bookings, cabins, legends, notes
from cabin_booking.store import MemoryStore

from .factories import cabin_dict, fixed_clock, make_admin, make_guest, make_owner

# ---------------------------------------------------------------------------
# Redis is never reached from tests; every cache call is a miss
# ---------------------------------------------------------------------------


def _noop_redis():
    mock = MagicMock()
    mock.hget = AsyncMock(return_value=None)
    mock.hset = AsyncMock(return_value=1)
    mock.expire = AsyncMock(return_value=True)
    mock.delete = AsyncMock(return_value=1)
    return mock


@pytest.fixture(autouse=True)
def redis_mock():
    mock = _noop_redis()
    with patch("cabin_booking.cache.get_redis", return_value=mock):
        yield mock


# ---------------------------------------------------------------------------
# App builder, used by all client fixtures
# ---------------------------------------------------------------------------


def build_app(current_user, store: MemoryStore, events: EventBus | None = None, clock=None) -> FastAPI:
    """
    Fresh FastAPI app over an in-memory store, with identity overridden to
    return `current_user` unconditionally. `current_user=None` leaves the
    real header-based identity deps in place (anonymous caller).
    """
    app = FastAPI()
    register_error_handlers(app)
    for router in (
        cabins.router,
        bookings.cabin_router,
        bookings.router,
        blocks.router,
        notes.router,
        legends.router,
    ):
        app.include_router(router)

    if current_user is not None:

        async def _user():
            return current_user

        app.dependency_overrides[get_current_user] = _user
        app.dependency_overrides[get_optional_user] = _user

    bus = events if events is not None else EventBus()
    locks = CabinLocks()
    now = clock or fixed_clock()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_event_bus] = lambda: bus
    app.dependency_overrides[get_cabin_locks] = lambda: locks
    app.dependency_overrides[get_clock] = lambda: now
    return app


# ---------------------------------------------------------------------------
# Store and service fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def store():
    """In-memory store holding one cabin owned by OWNER_ID."""
    s = MemoryStore()
    s.load("cabins", cabin_dict())
    return s


@pytest.fixture()
def cabin():
    return cabin_dict()


@pytest.fixture()
def events():
    return EventBus()


@pytest.fixture()
def manager(store, events):
    return BookingManager(store, AvailabilityChecker(store), CabinLocks(), events, fixed_clock())


@pytest.fixture()
def block_manager(store):
    return BlockManager(store, AvailabilityChecker(store), CabinLocks(), fixed_clock())


# ---------------------------------------------------------------------------
# Reusable client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def guest_client(store):
    return TestClient(build_app(make_guest(), store), raise_server_exceptions=True)


@pytest.fixture()
def owner_client(store):
    return TestClient(build_app(make_owner(), store), raise_server_exceptions=True)


@pytest.fixture()
def admin_client(store):
    return TestClient(build_app(make_admin(), store), raise_server_exceptions=True)


@pytest.fixture()
def anon_client(store):
    """No identity override: real header deps run, so missing headers give 401."""
    return TestClient(build_app(None, store), raise_server_exceptions=True)


@pytest.fixture()
def client_factory(store):
    def _make(current_user, events: EventBus | None = None, clock=None) -> TestClient:
        return TestClient(
            build_app(current_user, store, events=events, clock=clock),
            raise_server_exceptions=True,
        )

    return _make
