# model/bookingcount/__init__.py
import os
from typing import Optional
import redis.asyncio as redis

from ...infra.sql import GatedAsyncSession

BACKEND = os.getenv("COUNTER_BACKEND", "sql").lower()  # 'sql' | 'redis'

if BACKEND == "redis":
    from ._redis import BookingCounter as _BookingCounter
else:
    from ._sql import BookingCounter as _BookingCounter


# Factory keeps server.py simple and constructor-agnostic:
def new_counter(*, db: Optional[GatedAsyncSession] = None,
                r: Optional[redis.Redis] = None):
    if BACKEND == "redis":
        if r is None:
            raise RuntimeError(
                "BookingCounter(redis) requires r=redis.Redis"
            )
        return _BookingCounter(r=r)
    else:
        if db is None:
            raise RuntimeError(
                "BookingCounter(sql) requires db=GatedAsyncSession"
            )
        return _BookingCounter(db=db)


BookingCounter = _BookingCounter
__all__ = ["BookingCounter", "new_counter", "BACKEND"]
