"""
Time helpers shared by the admission checker and slot listing.
All wall-clock arithmetic happens in the project's local timezone.
"""
from datetime import date as date_type, datetime, time as time_type, timedelta

from django.utils import timezone


def to_local(dt: datetime) -> datetime:
    """Convert an aware datetime to the current timezone."""
    return timezone.localtime(dt)


def local_date(dt: datetime) -> date_type:
    return to_local(dt).date()


def day_of_week(day: date_type) -> int:
    """Python weekday() is Monday=0; stored weekdays are Sunday=0."""
    return (day.weekday() + 1) % 7


def at_local_time(day: date_type, t: time_type) -> datetime:
    """Aware datetime for wall-clock time `t` on `day` in the current timezone."""
    return timezone.make_aware(datetime.combine(day, t))


def local_day_bounds(day: date_type) -> tuple:
    """(start, end) aware datetimes covering one local calendar day."""
    start = at_local_time(day, time_type.min)
    return start, at_local_time(day + timedelta(days=1), time_type.min)


def overlaps(a_start: datetime, a_end: datetime,
             b_start: datetime, b_end: datetime) -> bool:
    """True if window [a_start, a_end) overlaps [b_start, b_end)."""
    return a_start < b_end and a_end > b_start


def fmt_time(t) -> str:
    """Format a time as '9:00 AM' without a leading zero on the hour."""
    hour = t.hour % 12 or 12
    ampm = 'AM' if t.hour < 12 else 'PM'
    return f"{hour}:{t.strftime('%M')} {ampm}"
