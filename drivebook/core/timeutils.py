"""Time helpers shared by the scheduling engine and the models.

Instants are stored and compared in UTC. Wall-clock values (rule windows,
calendar dates) only become instants once combined with an instructor's
civil timezone.
"""

import re
from datetime import date, datetime, time, timedelta, timezone

import pytz

from drivebook.core import config

DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
WALL_TIME_PATTERN = re.compile(r'^(\d{2}):(\d{2})$')


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime.

    SQLite hands back naive datetimes even for timezone-aware columns; those
    are taken to already be UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_zone(name: str | None = None):
    return pytz.timezone(name or config.BOOKING_TIMEZONE)


def parse_wall_time(value: time | str) -> time:
    if isinstance(value, time):
        return value

    match = WALL_TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError(f'Invalid wall-clock time {value!r}; expected HH:MM.')

    hour, minute = int(match.group(1)), int(match.group(2))
    return time(hour, minute)


def parse_calendar_date(value: str) -> date:
    if not DATE_PATTERN.match(value):
        raise ValueError(f'Invalid date {value!r}; expected YYYY-MM-DD.')
    return date.fromisoformat(value)


def sunday_based_weekday(day: date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return day.isoweekday() % 7


def localize(day: date, wall_time: time, zone) -> datetime:
    return zone.localize(datetime.combine(day, wall_time))


def local_day_bounds(day: date, zone) -> tuple[datetime, datetime]:
    """UTC instants of local midnight on ``day`` and on the following day."""
    start = localize(day, time(0, 0), zone)
    end = localize(day + timedelta(days=1), time(0, 0), zone)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


def local_date_of(instant: datetime, zone) -> date:
    return as_utc(instant).astimezone(zone).date()


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b
