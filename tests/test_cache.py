from __future__ import annotations

import json

from cabin_booking.cache import get_calendar_cache, invalidate_calendar_cache, set_calendar_cache
from cabin_booking.settings import CALENDAR_CACHE_TTL

from .factories import CABIN_ID


class TestCalendarCache:
    async def test_miss_returns_none(self, redis_mock):
        assert await get_calendar_cache(CABIN_ID, 2025, 6) is None
        redis_mock.hget.assert_awaited_once_with(f"calendar:{CABIN_ID}", "2025-06")

    async def test_hit_is_decoded(self, redis_mock):
        redis_mock.hget.return_value = json.dumps({"stats": {"total_days": 30}})
        assert await get_calendar_cache(CABIN_ID, 2025, 6) == {"stats": {"total_days": 30}}

    async def test_set_writes_month_field_and_ttl(self, redis_mock):
        await set_calendar_cache(CABIN_ID, 2025, 7, {"calendar": [{"id": CABIN_ID}]})
        key, field, raw = redis_mock.hset.call_args.args
        assert (key, field) == (f"calendar:{CABIN_ID}", "2025-07")
        assert json.loads(raw) == {"calendar": [{"id": str(CABIN_ID)}]}
        redis_mock.expire.assert_awaited_once_with(key, CALENDAR_CACHE_TTL)

    async def test_invalidate_drops_all_months(self, redis_mock):
        await invalidate_calendar_cache(CABIN_ID)
        redis_mock.delete.assert_awaited_once_with(f"calendar:{CABIN_ID}")

    async def test_redis_errors_are_swallowed(self, redis_mock):
        redis_mock.hget.side_effect = ConnectionError("down")
        redis_mock.hset.side_effect = ConnectionError("down")
        redis_mock.delete.side_effect = ConnectionError("down")
        assert await get_calendar_cache(CABIN_ID, 2025, 6) is None
        await set_calendar_cache(CABIN_ID, 2025, 6, {})
        await invalidate_calendar_cache(CABIN_ID)
