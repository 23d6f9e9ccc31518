import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger
from tortoise.contrib.fastapi import RegisterTortoise

from cabin_booking import settings
from cabin_booking.deps import get_event_bus
from cabin_booking.errors import register_error_handlers
from cabin_booking.notifications import BookingNotifier, SendGridMailer
from cabin_booking.routers import blocks, bookings, cabins, legends, notes

TORTOISE_ORM = {
    "connections": {"default": settings.db_url},
    "apps": {"models": {"models": ["cabin_booking.models"], "default_connection": "default"}},
}


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    bus = get_event_bus()
    notifier = BookingNotifier(SendGridMailer())
    notifier.register(bus)
    try:
        async with RegisterTortoise(app, config=TORTOISE_ORM, generate_schemas=True):
            logger.info("Cabin booking service started")
            yield
    finally:
        notifier.unregister(bus)


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(title="Cabin Booking", lifespan=lifespan)
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

    @app.get("/health", tags=["health"])
    async def health():
        return {"status": "ok"}

    return app


app = create_app()
