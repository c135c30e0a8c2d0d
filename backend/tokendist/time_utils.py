from __future__ import annotations

import time
from datetime import datetime, timezone
from typing import Optional


DAY = 86_400
# Fixed month approximation used by every vesting schedule
MONTH = 30 * DAY


def now_ts() -> int:
    """Host clock as integer unix seconds."""
    return int(time.time())


def ts_to_utc_z(ts: Optional[int]) -> Optional[str]:
    """
    Serializes a unix timestamp to ISO-8601 with trailing 'Z'.
    None (event has not happened) stays None.
    """
    if ts is None:
        return None
    dt = datetime.fromtimestamp(ts, tz=timezone.utc)
    return dt.isoformat().replace("+00:00", "Z")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
