"""Date and time helpers shared by the calendar, order and reminder code."""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

WEEKDAY_NAMES = ["sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"]


def utcnow() -> datetime:
    """Naive UTC timestamp, matching how DateTime columns are stored"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def tenant_today(tz_name: str) -> date:
    try:
        tz = ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError):
        tz = timezone.utc
    return datetime.now(tz).date()


def day_of_week(d: date) -> int:
    """Weekday index with Sunday = 0, as stored in availability windows"""
    return (d.weekday() + 1) % 7


def parse_date(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def parse_time(value: str) -> time:
    """Parse "HH:MM" (24h) or "h:MM AM" strings"""
    value = value.strip()
    for fmt in ("%H:%M", "%H:%M:%S", "%I:%M %p"):
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time: {value}")


def format_time(t: time) -> str:
    return t.strftime("%H:%M")


def minutes_of(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> str:
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def combine(d: date, hhmm: str) -> datetime:
    return datetime.combine(d, parse_time(hhmm))


def end_of_day_passed(valid_until: Optional[date], today: date) -> bool:
    """True once the whole ``valid_until`` day is over"""
    return valid_until is not None and today > valid_until


def add_days(d: date, days: int) -> date:
    return d + timedelta(days=days)
