"""Time parsing, formatting and calendar utilities."""

from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Callable

from zoneinfo import ZoneInfo


Clock = Callable[[], datetime]


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Asia/Kolkata".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Asia/Kolkata") from exc


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse user-provided datetime text to a timezone-aware datetime.

    Supported formats:
      - "YYYY-MM-DD HH:MM:SS"
      - "YYYY-MM-DDTHH:MM:SS"
      - with optional timezone offset, e.g. "+05:30"

    If timezone is missing, it will be assumed to be tz_name.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2025-12-18 09:30:00") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def format_dt(dt: datetime | None) -> str | None:
    """ISO-8601 text for persistence (None passes through)."""

    if dt is None:
        return None
    return dt.isoformat()


def parse_iso_dt(text: str | None) -> datetime | None:
    """Inverse of :func:`format_dt`. Naive values are rejected."""

    if text is None or text == "":
        return None
    dt = datetime.fromisoformat(text)
    if dt.tzinfo is None:
        raise ValueError(f"naive datetime in snapshot: {text!r}")
    return dt


def local_date(dt: datetime, tz: tzinfo) -> date:
    """Calendar day of ``dt`` in ``tz``."""

    return dt.astimezone(tz).date()


def start_of_day(day: date, tz: tzinfo) -> datetime:
    """Local midnight of ``day``."""

    return datetime.combine(day, time.min, tzinfo=tz)


def start_of_next_day(dt: datetime, tz: tzinfo) -> datetime:
    """Local midnight following ``dt``."""

    return start_of_day(local_date(dt, tz) + timedelta(days=1), tz)


def start_of_week(dt: datetime, tz: tzinfo, week_start: int = 0) -> datetime:
    """Local midnight of the first day of the week containing ``dt``.

    Args:
        dt: Any timezone-aware datetime.
        tz: Calendar timezone.
        week_start: Weekday the week starts on (0 = Monday ... 6 = Sunday).
    """

    day = local_date(dt, tz)
    offset = (day.weekday() - week_start) % 7
    return start_of_day(day - timedelta(days=offset), tz)


def end_of_week(dt: datetime, tz: tzinfo, week_start: int = 0) -> datetime:
    """Start of week plus 7 calendar days."""

    first = start_of_week(dt, tz, week_start).date()
    return start_of_day(first + timedelta(days=7), tz)


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative if reversed)."""

    return (later - earlier).days


def system_clock(tz_name: str) -> Clock:
    """A clock returning the current time in ``tz_name``."""

    tz = tzinfo_from_name(tz_name)

    def _now() -> datetime:
        return datetime.now(tz)

    return _now
