from datetime import datetime, date, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def now_ms() -> int:
    """Current time as epoch milliseconds, the timestamp unit of stored records."""
    return int(utcnow().timestamp() * 1000)


def today_utc() -> date:
    return datetime.now(timezone.utc).date()


def today_for_tz(tz_name: str | None) -> date:
    """Return today's date in the user's timezone."""
    if tz_name:
        try:
            return datetime.now(ZoneInfo(tz_name)).date()
        except (ZoneInfoNotFoundError, ValueError):
            pass
    return today_utc()


def parse_date_key(value: str) -> date:
    """Parse a YYYY-MM-DD day key. Raises ValueError on anything else."""
    raw = (value or "").strip()
    if len(raw) != 10:
        raise ValueError(f"Invalid date key: {value!r} (expected YYYY-MM-DD)")
    return date.fromisoformat(raw)


def date_key(d: date) -> str:
    return d.isoformat()


def previous_date_key(value: str) -> str:
    return date_key(parse_date_key(value) - timedelta(days=1))
