"""
Relative time helpers used for reservations ("1h30m" in, "1 hour 30 mins" out).
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

_MINUTES = re.compile(r"([0-9]{1,2})m")
_HOURS = re.compile(r"([0-9]{1,2})h")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_relative_time(text: str, now: Optional[datetime] = None) -> datetime:
    """Turn an offset such as ``2h``, ``45m`` or ``1h30m`` into an absolute time."""
    now = now or utcnow()
    target = now
    minutes = _MINUTES.search(text)
    hours = _HOURS.search(text)

    if minutes:
        target += timedelta(minutes=int(minutes.group(1)))
    if hours:
        target += timedelta(hours=int(hours.group(1)))

    return target + timedelta(milliseconds=5)


def format_relative_time(target: datetime, now: Optional[datetime] = None) -> str:
    now = now or utcnow()
    total_minutes = int((target + timedelta(seconds=1) - now).total_seconds() // 60)
    minutes = total_minutes % 60
    hours = (total_minutes // 60) % 24

    parts = []
    if hours > 0:
        parts.append(f"{hours} {'hour' if hours == 1 else 'hours'}")
    if minutes > 0:
        parts.append(f"{minutes} {'min' if minutes == 1 else 'mins'}")

    return " ".join(parts)
