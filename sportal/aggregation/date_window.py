from datetime import date, datetime, timedelta
from typing import Optional, Tuple, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger

DateLike = Union[date, datetime, str, None]


def _to_date(value: DateLike) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        logger.debug(f"Ignoring unparseable fixture date: {text!r}")
        return None


def local_now(now: datetime, tz_name: Optional[str]) -> datetime:
    """``now`` expressed in the fixture's own timezone, when it names a known one."""
    if not tz_name or now.tzinfo is None:
        return now
    try:
        return now.astimezone(ZoneInfo(tz_name))
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug(f"Unknown fixture timezone {tz_name!r}, keeping UTC")
        return now


def date_window_bounds(now: Union[date, datetime], window_days: int) -> Tuple[date, date]:
    """First and last calendar day of the window centred on ``now``."""
    today = _to_date(now)
    radius = timedelta(days=window_days)
    return today - radius, today + radius


def is_in_date_window(
    fixture_date: DateLike, now: Union[date, datetime], window_days: int
) -> bool:
    """True iff the fixture date is present and within ``window_days`` of ``now``.

    Comparison is by calendar day, inclusive on both ends. Missing or
    malformed dates are outside the window.
    """
    day = _to_date(fixture_date)
    if day is None:
        return False
    start, end = date_window_bounds(now, window_days)
    return start <= day <= end
