from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, patch

from fastapi import FastAPI

from cabin_booking.events import BookingCreated, EventBus
from cabin_booking.main import lifespan

from .factories import booking_dict, cabin_dict


@asynccontextmanager
async def _no_database(*args, **kwargs):
    yield


async def test_restarting_the_app_does_not_duplicate_notifications():
    bus = EventBus()
    mailer = AsyncMock()
    mailer.send = AsyncMock(return_value=True)
    event = BookingCreated(booking=booking_dict(), cabin=cabin_dict())

    with (
        patch("cabin_booking.main.RegisterTortoise", _no_database),
        patch("cabin_booking.main.get_event_bus", return_value=bus),
        patch("cabin_booking.main.SendGridMailer", return_value=mailer),
    ):
        for _ in range(2):
            mailer.send.reset_mock()
            async with lifespan(FastAPI()):
                await bus.publish(event)
            # owner and guest, once each
            assert mailer.send.await_count == 2

    mailer.send.reset_mock()
    await bus.publish(event)
    mailer.send.assert_not_awaited()
