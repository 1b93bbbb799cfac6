from __future__ import annotations
from typing import Optional

from sqlalchemy import text

from ...helpers import month_bounds
from ...infra.sql import GatedAsyncSession


class BookingCounter:
    """Monthly booking count derived from the bookings table itself."""

    def __init__(self, *, db: GatedAsyncSession) -> None:
        self.db = db

    async def count_this_month(
        self, user_id: str, now: Optional[float] = None
    ) -> int:
        start, end = month_bounds(now)
        async with self.db.gated():
            async with self.db.session.begin():
                n = (await self.db.session.execute(text("""
                    SELECT COUNT(*) FROM bookings
                    WHERE user_id = :u
                      AND booking_date >= :start AND booking_date < :end
                      AND status != 'cancelled'
                """), {"u": user_id, "start": start, "end": end})
                ).scalar_one()
        return int(n)

    # the booking row is the record; nothing to keep in sync
    async def incr(self, user_id: str, now: Optional[float] = None) -> None:
        return None

    async def decr(self, user_id: str, booked_at: float) -> None:
        return None
