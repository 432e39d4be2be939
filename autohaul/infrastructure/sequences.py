"""
Redis-backed daily document numbers.

Transport jobs and routes carry human-readable numbers of the form
``<PREFIX>-YYYYMMDD-NNN`` (e.g. ``TJ-20241222-001``).  The running counter
for each prefix and day lives in Redis so concurrent API processes never
hand out the same number.

Implementation uses INCR for allocation and EXPIRE so yesterday's
counters age out on their own.
"""

from __future__ import annotations

from datetime import date
from typing import Optional

import redis.asyncio as aioredis

from autohaul.config import settings

_pool: Optional[aioredis.ConnectionPool] = None


async def get_redis() -> aioredis.Redis:
    """Return a Redis client backed by the shared connection pool."""
    global _pool
    if _pool is None:
        _pool = aioredis.ConnectionPool.from_url(
            settings.redis_url, decode_responses=True
        )
    return aioredis.Redis(connection_pool=_pool)


def format_number(prefix: str, day: date, counter: int) -> str:
    return f"{prefix}-{day:%Y%m%d}-{counter:03d}"


class DailySequence:
    def __init__(
        self,
        client: aioredis.Redis,
        prefix: str,
        ttl_seconds: int = settings.sequence_ttl_seconds,
    ):
        self.redis = client
        self.prefix = prefix
        self.ttl = ttl_seconds

    def key(self, day: date) -> str:
        return f"seq:{self.prefix}:{day:%Y%m%d}"

    async def next(self, day: Optional[date] = None) -> str:
        """Allocate the next number for *day* (default: today)."""
        day = day or date.today()
        key = self.key(day)
        counter = await self.redis.incr(key)
        if counter == 1:
            await self.redis.expire(key, self.ttl)
        return format_number(self.prefix, day, int(counter))


async def job_sequence() -> DailySequence:
    return DailySequence(await get_redis(), settings.job_number_prefix)


async def route_sequence() -> DailySequence:
    return DailySequence(await get_redis(), settings.route_number_prefix)
