import time
import re
import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple


# ----------------------------
# Helpers
# ----------------------------
def now_ts() -> float:
    return time.time()


def new_id() -> str:
    return uuid.uuid4().hex


def to_iso(ts: float | None) -> Optional[str]:
    if ts is None:
        return None
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def is_valid_email(email: Optional[str]) -> bool:
    if not email:
        return False
    email = email.strip()
    # simple but effective email check
    return re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", email) is not None


def month_key(ts: float | None = None) -> str:
    dt = datetime.fromtimestamp(now_ts() if ts is None else ts,
                                tz=timezone.utc)
    return f"{dt.year:04d}-{dt.month:02d}"


def month_bounds(ts: float | None = None) -> Tuple[float, float]:
    """[start, end) of the UTC calendar month containing `ts`."""
    dt = datetime.fromtimestamp(now_ts() if ts is None else ts,
                                tz=timezone.utc)
    start = datetime(dt.year, dt.month, 1, tzinfo=timezone.utc)
    if dt.month == 12:
        end = datetime(dt.year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(dt.year, dt.month + 1, 1, tzinfo=timezone.utc)
    return start.timestamp(), end.timestamp()
