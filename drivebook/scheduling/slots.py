from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Iterator

from drivebook.core.errors import InvalidWindow
from drivebook.core.timeutils import intervals_overlap, localize, parse_wall_time


@dataclass(frozen=True)
class TimeSlot:
    """A half-open [start, end) bookable interval, in UTC."""

    start: datetime
    end: datetime
    available: bool = True

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return intervals_overlap(self.start, self.end, start, end)


def generate_slots(
    day: date,
    start: time | str,
    end: time | str,
    duration_minutes: int,
    zone,
) -> Iterator[TimeSlot]:
    """Split a wall-clock window on ``day`` into back-to-back slots.

    ``start`` and ``end`` are read in ``zone``. A trailing remainder shorter
    than ``duration_minutes`` is dropped. The window is validated before the
    iterator is returned, so bad input fails at the call site.
    """
    try:
        window_start = parse_wall_time(start)
        window_end = parse_wall_time(end)
    except ValueError as exc:
        raise InvalidWindow(str(exc)) from exc

    if window_start >= window_end:
        raise InvalidWindow(
            'Slot window start must be before its end.',
            details={'start': window_start.isoformat(), 'end': window_end.isoformat()},
        )
    if duration_minutes <= 0:
        raise InvalidWindow(
            'Slot duration must be positive.',
            details={'duration_minutes': duration_minutes},
        )

    return _iterate_slots(day, window_start, window_end, duration_minutes, zone)


def _iterate_slots(day: date, start: time, end: time, duration_minutes: int, zone) -> Iterator[TimeSlot]:
    cursor = start.hour * 60 + start.minute
    end_minutes = end.hour * 60 + end.minute

    while cursor + duration_minutes <= end_minutes:
        slot_start = localize(day, time(cursor // 60, cursor % 60), zone).astimezone(timezone.utc)
        yield TimeSlot(start=slot_start, end=slot_start + timedelta(minutes=duration_minutes))
        cursor += duration_minutes
