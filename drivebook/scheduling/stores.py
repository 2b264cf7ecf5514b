"""Collaborator interfaces consumed by the scheduling engine.

The engine only talks to these narrow protocols. The SQLAlchemy
implementations below share the request's session so that a booking
recheck and its insert run inside one database transaction.
"""

import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Protocol

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from drivebook.core.errors import DependencyUnavailable, SlotUnavailable
from drivebook.models.audit_log import AuditLog
from drivebook.models.availability import AvailabilityOverride, AvailabilityRule
from drivebook.models.booking import ACTIVE_BOOKING_STATUSES, Booking
from drivebook.models.instructor import Instructor
from drivebook.models.profile import Profile  # noqa: F401
from drivebook.models.service import Service
from drivebook.models.student import Student

logger = logging.getLogger(__name__)


class CalendarRuleStore(Protocol):
    def find_instructor(self, instructor_id: str) -> Instructor | None: ...

    def active_rules(self, instructor_id: str, day_of_week: int) -> list[AvailabilityRule]: ...

    def overrides_on(self, instructor_id: str, day: date) -> list[AvailabilityOverride]: ...


class ReservationStore(Protocol):
    def active_bookings_between(self, instructor_id: str, start: datetime, end: datetime) -> list[Booking]: ...

    def find_student_by_profile(self, profile_id: str) -> Student | None: ...

    def find_instructor_by_profile(self, profile_id: str) -> Instructor | None: ...

    def find_active_service(self, service_id: str) -> Service | None: ...

    def get_booking(self, booking_id: str) -> Booking | None: ...

    def lock_instructor(self, instructor_id: str) -> None: ...

    def add(self, booking: Booking) -> Booking: ...

    def transaction(self) -> Any: ...


class AuditSink(Protocol):
    def emit(
        self,
        *,
        actor_profile_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any],
    ) -> None: ...


class SqlCalendarRuleStore:
    def __init__(self, db: Session):
        self.db = db

    def find_instructor(self, instructor_id: str) -> Instructor | None:
        return self.db.query(Instructor).filter(Instructor.id == instructor_id).first()

    def active_rules(self, instructor_id: str, day_of_week: int) -> list[AvailabilityRule]:
        # Oldest rule first: the resolver treats the first entry as canonical.
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.instructor_id == instructor_id,
            AvailabilityRule.day_of_week == day_of_week,
            AvailabilityRule.is_active.is_(True),
        ).order_by(AvailabilityRule.created_at.asc(), AvailabilityRule.id.asc()).all()

    def overrides_on(self, instructor_id: str, day: date) -> list[AvailabilityOverride]:
        return self.db.query(AvailabilityOverride).filter(
            AvailabilityOverride.instructor_id == instructor_id,
            AvailabilityOverride.date == day,
        ).order_by(AvailabilityOverride.created_at.asc(), AvailabilityOverride.id.asc()).all()


class SqlReservationStore:
    def __init__(self, db: Session):
        self.db = db

    def active_bookings_between(self, instructor_id: str, start: datetime, end: datetime) -> list[Booking]:
        return self.db.query(Booking).filter(
            Booking.instructor_id == instructor_id,
            Booking.scheduled_at >= start,
            Booking.scheduled_at < end,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        ).order_by(Booking.scheduled_at.asc()).all()

    def find_student_by_profile(self, profile_id: str) -> Student | None:
        return self.db.query(Student).filter(Student.profile_id == profile_id).first()

    def find_instructor_by_profile(self, profile_id: str) -> Instructor | None:
        return self.db.query(Instructor).filter(Instructor.profile_id == profile_id).first()

    def find_active_service(self, service_id: str) -> Service | None:
        return self.db.query(Service).filter(
            Service.id == service_id,
            Service.is_active.is_(True),
        ).first()

    def get_booking(self, booking_id: str) -> Booking | None:
        return self.db.query(Booking).options(
            joinedload(Booking.service),
            joinedload(Booking.student).joinedload(Student.profile),
        ).filter(Booking.id == booking_id).first()

    def lock_instructor(self, instructor_id: str) -> None:
        # Takes the Postgres row lock and the SQLite RESERVED lock before the recheck.
        self.db.query(Instructor).filter(Instructor.id == instructor_id).update(
            {Instructor.booking_version: Instructor.booking_version + 1},
            synchronize_session=False,
        )

    def add(self, booking: Booking) -> Booking:
        self.db.add(booking)
        self.db.flush()
        return booking

    @contextmanager
    def transaction(self) -> Iterator[None]:
        try:
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            raise SlotUnavailable('This slot is no longer available.') from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise DependencyUnavailable('Booking store unavailable.') from exc
        except Exception:
            self.db.rollback()
            raise


class SqlAuditSink:
    def __init__(self, db: Session):
        self.db = db

    def emit(
        self,
        *,
        actor_profile_id: str | None,
        action: str,
        entity_type: str,
        entity_id: str | None,
        payload: dict[str, Any],
    ) -> None:
        entry = AuditLog(
            actor_profile_id=actor_profile_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
        )
        try:
            self.db.add(entry)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        logger.debug('Audit event %s recorded for %s %s', action, entity_type, entity_id)
