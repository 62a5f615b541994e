# meeting_patterns/core/timezones.py
from __future__ import annotations

from datetime import datetime, timezone
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class TimeZoneDataError(RuntimeError):
    """
    Raised when transition data for an IANA zone cannot be loaded.

    Callers should treat this as retryable: it usually means the zone
    database is missing or unreachable, not that the pattern is wrong.
    """


@lru_cache(maxsize=128)
def get_zone(name: str) -> ZoneInfo:
    """
    Load an IANA time zone from the system zone database (or `tzdata`).
    """
    if not name:
        raise TimeZoneDataError("Time zone identifier is empty")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise TimeZoneDataError(f"Time zone data unavailable for {name!r}: {exc}") from exc


def as_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC. Naive values are taken to be UTC
    already (SQLite hands them back that way).
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
