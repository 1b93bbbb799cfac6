from __future__ import annotations
from typing import Optional
import redis.asyncio as redis

from ...helpers import month_key


# ---- keys
def k_count(user_id: str, month: str) -> str:
    return f"bookings:{user_id}:{month}"


# a month plus slack; the key is dead once the month is over
COUNTER_TTL_SECONDS = 40 * 24 * 3600


class BookingCounter:
    def __init__(self, *, r: redis.Redis,
                 ttl_seconds: int = COUNTER_TTL_SECONDS) -> None:
        self.r = r
        self.ttl = ttl_seconds

    async def count_this_month(
        self, user_id: str, now: Optional[float] = None
    ) -> int:
        v = await self.r.get(k_count(user_id, month_key(now)))
        return int(v or 0)

    async def incr(self, user_id: str, now: Optional[float] = None) -> None:
        key = k_count(user_id, month_key(now))
        pipe = self.r.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, self.ttl)
        await pipe.execute()

    async def decr(self, user_id: str, booked_at: float) -> None:
        # cancellations count against the month the booking was made in
        key = k_count(user_id, month_key(booked_at))
        pipe = self.r.pipeline(transaction=True)
        pipe.decr(key)
        pipe.expire(key, self.ttl)
        v, _ = await pipe.execute()
        if int(v) < 0:
            await self.r.set(key, 0, keepttl=True)
