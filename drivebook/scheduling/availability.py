import logging
from datetime import date, datetime, timedelta
from typing import Callable

from drivebook.core import config
from drivebook.core.errors import InstructorNotFound, InvalidDate
from drivebook.core.timeutils import (
    as_utc,
    get_zone,
    local_day_bounds,
    parse_calendar_date,
    sunday_based_weekday,
    utcnow,
)
from drivebook.scheduling.slots import TimeSlot, generate_slots
from drivebook.scheduling.stores import CalendarRuleStore, ReservationStore

logger = logging.getLogger(__name__)


class AvailabilityResolver:
    """Computes the bookable slots of one instructor on one calendar date.

    Weekly rules give the open window, a same-day override can close the day
    or replace the window, and pending or confirmed bookings knock out every
    slot they overlap. The resolver never writes.
    """

    def __init__(
        self,
        rules: CalendarRuleStore,
        reservations: ReservationStore,
        now: Callable[[], datetime] = utcnow,
        horizon_days: int | None = None,
        default_duration_minutes: int | None = None,
    ):
        self.rules = rules
        self.reservations = reservations
        self.now = now
        self.horizon_days = config.BOOKING_HORIZON_DAYS if horizon_days is None else horizon_days
        self.default_duration_minutes = default_duration_minutes or config.DEFAULT_SLOT_DURATION_MINUTES

    def zone_for(self, instructor_id: str):
        instructor = self.rules.find_instructor(instructor_id)
        if instructor is None or not instructor.is_active:
            raise InstructorNotFound('Instructor not found.', details={'instructor_id': instructor_id})
        return get_zone(instructor.timezone)

    def resolve(self, instructor_id: str, day: str, duration_minutes: int | None = None) -> list[TimeSlot]:
        try:
            target_day = parse_calendar_date(day)
        except ValueError as exc:
            raise InvalidDate('date must be a valid YYYY-MM-DD calendar date.', details={'date': day}) from exc

        zone = self.zone_for(instructor_id)
        now = as_utc(self.now())
        day_start, day_end = local_day_bounds(target_day, zone)

        if day_start > now + timedelta(days=self.horizon_days):
            raise InvalidDate(
                f'Cannot book more than {self.horizon_days} days in advance.',
                details={'date': day, 'horizon_days': self.horizon_days},
            )

        window = self._resolve_window(instructor_id, target_day)
        if window is None:
            return []

        start_time, end_time = window
        candidates = generate_slots(
            target_day,
            start_time,
            end_time,
            duration_minutes or self.default_duration_minutes,
            zone,
        )
        upcoming = [slot for slot in candidates if slot.start > now]
        if not upcoming:
            return []

        taken = [
            (as_utc(booking.scheduled_at), as_utc(booking.scheduled_at) + timedelta(minutes=booking.duration_minutes))
            for booking in self.reservations.active_bookings_between(instructor_id, day_start, day_end)
        ]

        return [
            slot for slot in upcoming
            if not any(slot.overlaps(booking_start, booking_end) for booking_start, booking_end in taken)
        ]

    def _resolve_window(self, instructor_id: str, target_day: date):
        rules = self.rules.active_rules(instructor_id, sunday_based_weekday(target_day))
        if not rules:
            return None

        overrides = self.rules.overrides_on(instructor_id, target_day)
        if any(not item.is_available for item in overrides):
            logger.debug('Instructor %s blocked on %s by override', instructor_id, target_day)
            return None

        rule = rules[0]
        if len(rules) > 1:
            logger.warning(
                'Instructor %s has %d active rules for day %d; using rule %s',
                instructor_id,
                len(rules),
                rule.day_of_week,
                rule.id,
            )

        override = next((item for item in overrides if item.is_available), None)
        if override is None:
            return rule.start_time, rule.end_time

        start_time = override.start_time if override.start_time is not None else rule.start_time
        end_time = override.end_time if override.end_time is not None else rule.end_time
        return start_time, end_time
