import logging
from datetime import datetime, timedelta
from typing import Any, Callable

from drivebook.core import config
from drivebook.core.errors import (
    BookingNotFound,
    Forbidden,
    InvalidInput,
    InvalidTransition,
    LateCancellation,
    ServiceNotFound,
    SlotUnavailable,
    StudentNotFound,
)
from drivebook.core.timeutils import as_utc, local_date_of, utcnow
from drivebook.models.booking import Booking
from drivebook.scheduling.availability import AvailabilityResolver
from drivebook.scheduling.stores import AuditSink, ReservationStore

logger = logging.getLogger(__name__)

ROLE_STUDENT = 'student'
ROLE_INSTRUCTOR = 'instructor'

# rescheduled is reserved: reachable in the table but not a status command target.
BOOKING_TRANSITIONS = {
    'pending': {'confirmed', 'cancelled', 'rescheduled'},
    'confirmed': {'completed', 'cancelled', 'no_show', 'rescheduled'},
    'in_progress': set(),
    'completed': set(),
    'cancelled': set(),
    'no_show': set(),
    'rescheduled': set(),
}
STATUS_COMMAND_TARGETS = ('confirmed', 'cancelled', 'completed', 'no_show')
STUDENT_STATUS_TARGETS = ('cancelled',)
STATUS_TIMESTAMP_FIELDS = {
    'confirmed': 'confirmed_at',
    'cancelled': 'cancelled_at',
    'completed': 'completed_at',
}


class BookingLifecycleManager:
    """Creates bookings and moves them through their status lifecycle.

    Every successful mutation emits one audit event after the store
    transaction has committed. An audit failure is logged and never undoes
    the booking change.
    """

    def __init__(
        self,
        resolver: AvailabilityResolver,
        reservations: ReservationStore,
        audit: AuditSink,
        now: Callable[[], datetime] = utcnow,
        cancellation_notice_hours: int | None = None,
    ):
        self.resolver = resolver
        self.reservations = reservations
        self.audit = audit
        self.now = now
        if cancellation_notice_hours is None:
            cancellation_notice_hours = config.STUDENT_CANCELLATION_NOTICE_HOURS
        self.cancellation_notice = timedelta(hours=cancellation_notice_hours)

    def get_booking_with_details(self, booking_id: str) -> Booking:
        booking = self.reservations.get_booking(booking_id)
        if booking is None:
            raise BookingNotFound('Booking not found.', details={'booking_id': booking_id})
        return booking

    def create_booking(
        self,
        instructor_id: str,
        service_id: str,
        scheduled_at: datetime,
        student_profile_id: str,
        notes: str | None = None,
        meeting_location: str | None = None,
    ) -> Booking:
        student = self.reservations.find_student_by_profile(student_profile_id)
        if student is None:
            raise StudentNotFound('Student profile not found.', details={'profile_id': student_profile_id})

        service = self.reservations.find_active_service(service_id)
        if service is None or service.instructor_id != instructor_id:
            raise ServiceNotFound('Service not found.', details={'service_id': service_id})

        with self.reservations.transaction():
            self.reservations.lock_instructor(instructor_id)

            zone = self.resolver.zone_for(instructor_id)
            if scheduled_at.tzinfo is None:
                scheduled_at = zone.localize(scheduled_at)
            start = as_utc(scheduled_at)

            # The list a client browsed may be stale; only a fresh resolve counts.
            local_day = local_date_of(start, zone).isoformat()
            open_slots = self.resolver.resolve(instructor_id, local_day, duration_minutes=service.duration_minutes)
            if not any(slot.start == start for slot in open_slots):
                raise SlotUnavailable(
                    'This slot is no longer available.',
                    details={'instructor_id': instructor_id, 'scheduled_at': start.isoformat()},
                )

            now = as_utc(self.now())
            booking = self.reservations.add(
                Booking(
                    instructor_id=instructor_id,
                    student_id=student.id,
                    service_id=service.id,
                    scheduled_at=start,
                    duration_minutes=service.duration_minutes,
                    status='pending',
                    meeting_location=meeting_location,
                    notes=notes,
                    created_at=now,
                    updated_at=now,
                )
            )
            booking_id = booking.id

        logger.info('Booking %s created for instructor %s at %s', booking_id, instructor_id, start.isoformat())
        self._emit(
            actor_profile_id=student_profile_id,
            action='BOOKING_CREATED',
            booking_id=booking_id,
            payload={
                'instructor_id': instructor_id,
                'service_id': service.id,
                'scheduled_at': start.isoformat(),
            },
        )
        return self.get_booking_with_details(booking_id)

    def update_booking_status(
        self,
        booking_id: str,
        new_status: str,
        actor_profile_id: str,
        actor_role: str,
        reason: str | None = None,
    ) -> Booking:
        with self.reservations.transaction():
            booking = self.get_booking_with_details(booking_id)

            if new_status not in STATUS_COMMAND_TARGETS:
                raise InvalidInput(
                    f'status must be one of: {", ".join(STATUS_COMMAND_TARGETS)}',
                    details={'status': new_status},
                )

            self._authorize(booking, new_status, actor_profile_id, actor_role)

            previous_status = booking.status
            if new_status not in BOOKING_TRANSITIONS.get(previous_status, set()):
                raise InvalidTransition(
                    f'Cannot change a {previous_status} booking to {new_status}.',
                    details={'from': previous_status, 'to': new_status},
                )

            now = as_utc(self.now())
            if actor_role == ROLE_STUDENT and as_utc(booking.scheduled_at) - now < self.cancellation_notice:
                raise LateCancellation(
                    'Cancellations must be made at least '
                    f'{int(self.cancellation_notice.total_seconds() // 3600)} hours in advance.',
                    details={'scheduled_at': as_utc(booking.scheduled_at).isoformat()},
                )

            booking.status = new_status
            booking.updated_at = now
            timestamp_field = STATUS_TIMESTAMP_FIELDS.get(new_status)
            if timestamp_field:
                setattr(booking, timestamp_field, now)
            if new_status == 'cancelled' and reason:
                booking.cancellation_reason = reason

        logger.info('Booking %s moved from %s to %s by %s', booking_id, previous_status, new_status, actor_role)
        payload: dict[str, Any] = {'previous_status': previous_status, 'new_status': new_status}
        if reason:
            payload['reason'] = reason
        self._emit(
            actor_profile_id=actor_profile_id,
            action=f'BOOKING_{new_status.upper()}',
            booking_id=booking_id,
            payload=payload,
        )
        return self.get_booking_with_details(booking_id)

    def _authorize(self, booking: Booking, new_status: str, actor_profile_id: str, actor_role: str) -> None:
        if actor_role == ROLE_STUDENT:
            if new_status not in STUDENT_STATUS_TARGETS:
                raise Forbidden('Students can only cancel bookings.', details={'status': new_status})
            student = self.reservations.find_student_by_profile(actor_profile_id)
            if student is None or student.id != booking.student_id:
                raise Forbidden('Only the student who booked this lesson can cancel it.')
            return

        if actor_role == ROLE_INSTRUCTOR:
            instructor = self.reservations.find_instructor_by_profile(actor_profile_id)
            if instructor is None or instructor.id != booking.instructor_id:
                raise Forbidden('Only the booked instructor can change this booking.')
            return

        raise Forbidden('Only instructors and students can change booking status.', details={'role': actor_role})

    def _emit(self, *, actor_profile_id: str | None, action: str, booking_id: str, payload: dict[str, Any]) -> None:
        try:
            self.audit.emit(
                actor_profile_id=actor_profile_id,
                action=action,
                entity_type='booking',
                entity_id=booking_id,
                payload=payload,
            )
        except Exception:
            logger.exception('Failed to record audit event %s for booking %s', action, booking_id)
