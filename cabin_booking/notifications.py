"""
Email notifications for booking events.

``BookingNotifier`` subscribes to the ``EventBus`` and turns booking events
into emails. Delivery goes through ``SendGridMailer``, a thin async wrapper
around the SendGrid v3 HTTP API. Failures are logged and swallowed here;
a booking never fails because an email could not be sent.
"""

from __future__ import annotations

from datetime import datetime
from functools import lru_cache

import httpx
from loguru import logger

from cabin_booking import settings
from cabin_booking.events import BookingCancelled, BookingCreated, BookingStatusChanged, EventBus

_STATUS_SUBJECTS = {
    "approved": "Booking approved for {cabin}",
    "rejected": "Booking rejected for {cabin}",
    "cancelled": "Booking cancelled for {cabin}",
}


def _format_range(start: datetime | str, end: datetime | str) -> str:
    def fmt(value: datetime | str) -> str:
        if isinstance(value, datetime):
            return value.strftime("%d %B %Y")
        return str(value)

    return f"{fmt(start)} - {fmt(end)}"


@lru_cache(maxsize=1)
def _get_sendgrid_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.sendgrid_api_url,
        timeout=httpx.Timeout(5.0),
    )


class SendGridMailer:
    def __init__(
        self,
        api_key: str | None = None,
        from_email: str | None = None,
        client: httpx.AsyncClient | None = None,
        skip: bool | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.sendgrid_api_key
        self.from_email = from_email if from_email is not None else settings.sendgrid_from_email
        self.skip = settings.skip_emails if skip is None else skip
        self._override_client = client

    @property
    def _client(self) -> httpx.AsyncClient:
        return self._override_client or _get_sendgrid_http_client()

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Returns True when SendGrid accepted the message. Raises on misconfiguration."""
        if not to:
            raise ValueError("Recipient email is required")
        if self.skip:
            logger.info("Email sending skipped: to={} subject={!r}", to, subject)
            return False
        if not self.api_key or not self.from_email:
            raise RuntimeError("SENDGRID_API_KEY and SENDGRID_FROM_EMAIL must be set")

        resp = await self._client.post(
            "/v3/mail/send",
            headers={"Authorization": f"Bearer {self.api_key}"},
            json={
                "personalizations": [{"to": [{"email": to}]}],
                "from": {"email": self.from_email},
                "subject": subject,
                "content": [{"type": "text/html", "value": html}],
            },
        )
        if resp.status_code >= 400:
            raise RuntimeError(f"SendGrid returned {resp.status_code}")
        logger.info("Email sent: to={} message_id={}", to, resp.headers.get("x-message-id"))
        return True


class BookingNotifier:
    def __init__(self, mailer: SendGridMailer) -> None:
        self.mailer = mailer

    def register(self, bus: EventBus) -> None:
        bus.subscribe(BookingCreated, self.on_booking_created)
        bus.subscribe(BookingCancelled, self.on_booking_cancelled)
        bus.subscribe(BookingStatusChanged, self.on_status_changed)

    def unregister(self, bus: EventBus) -> None:
        bus.unsubscribe(BookingCreated, self.on_booking_created)
        bus.unsubscribe(BookingCancelled, self.on_booking_cancelled)
        bus.unsubscribe(BookingStatusChanged, self.on_status_changed)

    async def send_booking_created(
        self,
        owner_email: str,
        cabin_name: str,
        guest_name: str,
        start: datetime,
        end: datetime,
        order_ref: str,
    ) -> None:
        html = (
            "<h2>New booking request</h2>"
            f"<p>Cabin: <strong>{cabin_name}</strong></p>"
            f"<p>Guest: <strong>{guest_name or 'Unknown'}</strong></p>"
            f"<p>Dates: <strong>{_format_range(start, end)}</strong></p>"
            f"<p>Order: <strong>{order_ref}</strong></p>"
        )
        await self.mailer.send(owner_email, f"New booking request for {cabin_name}", html)

    async def send_booking_status(
        self,
        email: str,
        guest_name: str,
        cabin_name: str,
        start: datetime,
        end: datetime,
        status: str,
    ) -> None:
        subject = _STATUS_SUBJECTS.get(status, "Booking update for {cabin}").format(cabin=cabin_name)
        status_text = "awaiting approval" if status == "pending" else status
        html = (
            f"<h2>Hi {guest_name or ''}</h2>"
            f"<p>Your booking for <strong>{cabin_name}</strong> is "
            f"<strong>{status_text}</strong>.</p>"
            f"<p>Dates: <strong>{_format_range(start, end)}</strong></p>"
        )
        await self.mailer.send(email, subject, html)

    # -- event handlers ------------------------------------------------------

    async def _deliver(self, what: str, coro) -> None:
        try:
            await coro
        except Exception:
            logger.opt(exception=True).warning("Failed to send {} email", what)

    async def on_booking_created(self, event: BookingCreated) -> None:
        booking, cabin = event.booking, event.cabin
        start, end = booking["start_datetime"], booking["end_datetime"]
        if cabin.get("email"):
            await self._deliver(
                "owner booking-created",
                self.send_booking_created(
                    cabin["email"],
                    cabin["name"],
                    booking["guest_name"],
                    start,
                    end,
                    order_ref(booking),
                ),
            )
        else:
            logger.warning("Cabin {} has no contact email; owner not notified", cabin["slug"])
        await self._deliver(
            "guest booking-created",
            self.send_booking_status(
                booking["guest_email"], booking["guest_name"], cabin["name"], start, end, "pending"
            ),
        )

    async def on_booking_cancelled(self, event: BookingCancelled) -> None:
        booking = event.booking
        await self._deliver(
            "guest cancellation",
            self.send_booking_status(
                booking["guest_email"],
                booking["guest_name"],
                event.cabin["name"],
                booking["start_datetime"],
                booking["end_datetime"],
                "cancelled",
            ),
        )

    async def on_status_changed(self, event: BookingStatusChanged) -> None:
        if not event.notify:
            return
        booking = event.booking
        await self._deliver(
            f"guest {event.status}",
            self.send_booking_status(
                booking["guest_email"],
                booking["guest_name"],
                event.cabin["name"],
                booking["start_datetime"],
                booking["end_datetime"],
                event.status,
            ),
        )


def order_ref(booking: dict) -> str:
    """Short human-readable reference derived from the booking id."""
    return str(booking["id"]).replace("-", "")[:8].upper()
