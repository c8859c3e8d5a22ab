"""
Date/range utilities.

Every helper answers relative to "today" in local time. Pass `today`
(or `now`) explicitly to pin the clock; otherwise the local clock is
read at call time. Malformed inputs never raise - they behave like a
missing date.

Week convention: the week ends on the coming Sunday. On a Sunday the
current week runs through the following Sunday.
"""

from datetime import date, datetime, timedelta
from typing import Any


def local_today() -> date:
    return date.today()


def parse_date(value: Any) -> date | None:
    """Parse an ISO calendar date (or the date part of an ISO timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO timestamp; a bare date becomes local midnight."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if not isinstance(value, str):
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        day = parse_date(text)
        return datetime.combine(day, datetime.min.time()) if day else None


def local_date_of(value: Any) -> date | None:
    """Calendar date of a timestamp in local time."""
    ts = parse_timestamp(value)
    if ts is None:
        return None
    if ts.tzinfo is not None:
        ts = ts.astimezone()
    return ts.date()


def _js_weekday(day: date) -> int:
    # Sunday = 0 ... Saturday = 6
    return (day.weekday() + 1) % 7


def end_of_week(today: date | None = None) -> date:
    today = today or local_today()
    return today + timedelta(days=7 - _js_weekday(today))


def is_today(value: Any, today: date | None = None) -> bool:
    d = parse_date(value)
    return d is not None and d == (today or local_today())


def is_tomorrow(value: Any, today: date | None = None) -> bool:
    d = parse_date(value)
    return d is not None and d == (today or local_today()) + timedelta(days=1)


def is_this_week(value: Any, today: date | None = None) -> bool:
    d = parse_date(value)
    if d is None:
        return False
    today = today or local_today()
    return today <= d <= end_of_week(today)


def is_next_week(value: Any, today: date | None = None) -> bool:
    d = parse_date(value)
    if d is None:
        return False
    this_week_end = end_of_week(today)
    return this_week_end < d <= this_week_end + timedelta(days=7)


def is_overdue(value: Any, today: date | None = None) -> bool:
    """Strictly before today."""
    d = parse_date(value)
    return d is not None and d < (today or local_today())


def days_overdue(value: Any, today: date | None = None) -> int:
    d = parse_date(value)
    if d is None:
        return 0
    return max(0, ((today or local_today()) - d).days)


def timestamp_is_today(value: Any, today: date | None = None) -> bool:
    """True if a timestamp falls on today's local calendar date."""
    d = local_date_of(value)
    return d is not None and d == (today or local_today())


def format_relative_date(value: Any, today: date | None = None) -> str:
    d = parse_date(value)
    if d is None:
        return ""
    today = today or local_today()
    diff = (d - today).days

    if diff == 0:
        return "Today"
    if diff == 1:
        return "Tomorrow"
    if diff == -1:
        return "Yesterday"
    if diff < 0:
        return f"{abs(diff)} days ago"
    return f"{d:%b} {d.day}"


def today_iso(today: date | None = None) -> str:
    return (today or local_today()).isoformat()


def tomorrow_iso(today: date | None = None) -> str:
    return ((today or local_today()) + timedelta(days=1)).isoformat()


def next_week_iso(today: date | None = None) -> str:
    return ((today or local_today()) + timedelta(days=7)).isoformat()


def weekend_iso(today: date | None = None) -> str:
    """The coming Saturday (or the next one, if today is Sunday)."""
    today = today or local_today()
    weekday = _js_weekday(today)
    days_until_saturday = 6 if weekday == 0 else 6 - weekday
    return (today + timedelta(days=days_until_saturday)).isoformat()


def now_iso(now: datetime | None = None) -> str:
    """Timezone-aware local timestamp, second precision."""
    now = now or datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    return now.isoformat(timespec="seconds")


__all__ = [
    "days_overdue",
    "end_of_week",
    "format_relative_date",
    "is_next_week",
    "is_overdue",
    "is_this_week",
    "is_today",
    "is_tomorrow",
    "local_date_of",
    "local_today",
    "next_week_iso",
    "now_iso",
    "parse_date",
    "parse_timestamp",
    "timestamp_is_today",
    "today_iso",
    "tomorrow_iso",
    "weekend_iso",
]
