import json
from typing import Any

from fastapi.encoders import jsonable_encoder
from loguru import logger
from redis.asyncio import Redis

from cabin_booking.settings import CALENDAR_CACHE_TTL, REDIS_URL

_redis: Redis | None = None


def get_redis() -> Redis:
    global _redis
    if _redis is None:
        _redis = Redis.from_url(REDIS_URL, decode_responses=True)
    return _redis


def _calendar_key(cabin_id: Any) -> str:
    return f"calendar:{cabin_id}"


def _month_field(year: int, month: int) -> str:
    return f"{year:04d}-{month:02d}"


async def get_calendar_cache(cabin_id: Any, year: int, month: int) -> dict | None:
    try:
        data = await get_redis().hget(_calendar_key(cabin_id), _month_field(year, month))
    except Exception:
        logger.opt(exception=True).warning("Redis get failed, skipping calendar cache")
        return None
    if data:
        logger.debug("Calendar cache hit: cabin={} month={}", cabin_id, _month_field(year, month))
        return json.loads(data)
    return None


async def set_calendar_cache(cabin_id: Any, year: int, month: int, payload: dict) -> None:
    key = _calendar_key(cabin_id)
    try:
        redis = get_redis()
        await redis.hset(key, _month_field(year, month), json.dumps(jsonable_encoder(payload)))
        await redis.expire(key, CALENDAR_CACHE_TTL)
    except Exception:
        logger.opt(exception=True).warning("Redis set failed, skipping calendar cache")


async def invalidate_calendar_cache(cabin_id: Any) -> None:
    """Drops every cached month of the cabin."""
    try:
        await get_redis().delete(_calendar_key(cabin_id))
    except Exception:
        logger.opt(exception=True).warning("Redis invalidate failed for calendar cache")
