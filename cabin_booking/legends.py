from __future__ import annotations

from typing import Any

from loguru import logger

from cabin_booking.cabins import Clock, utcnow
from cabin_booking.errors import ConflictError, ForbiddenError, NotFoundError
from cabin_booking.roles import Role
from cabin_booking.schemas import LegendCreate
from cabin_booking.store import Eq, Store

DEFAULT_LEGENDS = (
    {
        "name": "Booked",
        "description": "Confirmed bookings",
        "color": "#ef4444",
        "is_bookable": False,
    },
    {
        "name": "Unavailable",
        "description": "Periods that cannot be booked",
        "color": "#6b7280",
        "is_bookable": False,
    },
)


class LegendService:
    def __init__(self, store: Store, clock: Clock = utcnow) -> None:
        self.store = store
        self.clock = clock

    async def get(self, legend_id: Any) -> dict:
        legend = await self.store.get("legends", legend_id)
        if legend is None:
            raise NotFoundError("Legend not found")
        return legend

    async def get_many(self, legend_ids: set[Any]) -> dict[str, dict]:
        """Legends by stringified id; unknown ids are simply absent."""
        found = {}
        for legend_id in legend_ids:
            legend = await self.store.get("legends", legend_id)
            if legend is not None:
                found[str(legend_id)] = legend
        return found

    async def list_for_company(
        self, company_slug: str | None, active_only: bool = False
    ) -> list[dict]:
        """Default legends plus the company's own ones."""
        legends = await self.store.find("legends", order_by="name")
        return [
            legend
            for legend in legends
            if (legend.get("is_default") or (company_slug and legend.get("company_slug") == company_slug))
            and (legend.get("is_active", True) or not active_only)
        ]

    async def create(self, payload: LegendCreate, actor: Any) -> dict:
        company_slug = payload.company_slug or actor.company_slug
        if (
            actor.role != Role.ADMIN
            and payload.company_slug
            and payload.company_slug != actor.company_slug
        ):
            raise ForbiddenError()

        name = payload.name.strip()
        for legend in await self.store.find("legends", Eq("name", name)):
            if legend.get("company_slug") == company_slug and not legend.get("is_default"):
                raise ConflictError("A legend with this name already exists")

        now = self.clock()
        legend = await self.store.insert_one(
            "legends",
            {
                **payload.model_dump(),
                "name": name,
                "company_slug": company_slug,
                "is_active": True,
                "is_default": False,
                "created_by": actor.id,
                "created_at": now,
                "updated_at": now,
            },
        )
        logger.info("Legend created: name={} company={}", name, company_slug)
        return legend

    async def ensure_defaults(self) -> list[dict]:
        """Create or refresh the default legends. Safe to run repeatedly."""
        now = self.clock()
        result = []
        for template in DEFAULT_LEGENDS:
            existing = await self.store.find(
                "legends", Eq("name", template["name"]), Eq("is_default", True), limit=1
            )
            if existing:
                legend = await self.store.update_by_id(
                    "legends", existing[0]["id"], {**template, "is_active": True, "updated_at": now}
                )
            else:
                legend = await self.store.insert_one(
                    "legends",
                    {
                        **template,
                        "is_active": True,
                        "is_default": True,
                        "company_slug": None,
                        "created_at": now,
                        "updated_at": now,
                    },
                )
                logger.info("Default legend created: {}", template["name"])
            result.append(legend)
        return result
