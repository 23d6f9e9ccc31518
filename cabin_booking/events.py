"""
Domain events emitted by the booking core after a state change is stored.

Handlers run after the write has committed. A failing handler is logged and
skipped; it never fails or rolls back the operation that emitted the event.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from loguru import logger


@dataclass(frozen=True)
class BookingCreated:
    booking: dict
    cabin: dict


@dataclass(frozen=True)
class BookingCancelled:
    booking: dict
    cabin: dict
    cancelled_by: str  # "guest" | "owner"


@dataclass(frozen=True)
class BookingStatusChanged:
    booking: dict
    cabin: dict
    status: str
    notify: bool = True


Handler = Callable[[Any], Awaitable[None]]


@dataclass
class EventBus:
    _handlers: defaultdict[type, list[Handler]] = field(
        default_factory=lambda: defaultdict(list)
    )

    def subscribe(self, event_type: type, handler: Handler) -> None:
        self._handlers[event_type].append(handler)

    def unsubscribe(self, event_type: type, handler: Handler) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    async def publish(self, event: Any) -> None:
        for handler in self._handlers.get(type(event), []):
            try:
                await handler(event)
            except Exception:
                logger.opt(exception=True).warning(
                    "Event handler {} failed for {}",
                    getattr(handler, "__qualname__", handler),
                    type(event).__name__,
                )

    async def publish_all(self, events: list[Any]) -> None:
        for event in events:
            await self.publish(event)
