from datetime import datetime, time, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from drivebook.core.errors import DependencyUnavailable, SchedulingError, SlotUnavailable
from drivebook.core.timeutils import as_utc
from drivebook.database import Base, ensure_booking_schema
from drivebook.models.availability import AvailabilityRule
from drivebook.models.booking import Booking
from drivebook.models.instructor import Instructor
from drivebook.models.profile import Profile
from drivebook.models.service import Service
from drivebook.models.student import Student
from drivebook.scheduling.availability import AvailabilityResolver
from drivebook.scheduling.lifecycle import BookingLifecycleManager
from drivebook.scheduling.stores import SqlAuditSink, SqlCalendarRuleStore, SqlReservationStore

NOW = datetime(2026, 6, 1, 0, 0, tzinfo=timezone.utc)
FIRST_SLOT = datetime(2026, 6, 2, 23, 0, tzinfo=timezone.utc)


@pytest.fixture
def file_engine(tmp_path):
    engine = create_engine(
        f'sqlite:///{tmp_path / "drivebook.db"}',
        connect_args={'check_same_thread': False, 'timeout': 0.2},
    )
    Base.metadata.create_all(bind=engine)
    ensure_booking_schema(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def two_sessions(file_engine):
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    first, second = session_local(), session_local()
    try:
        yield first, second
    finally:
        first.close()
        second.close()


def _seed(db):
    instructor_profile = Profile(email='coach@example.com', first_name='Coach', role='instructor')
    first_profile = Profile(email='ari@example.com', first_name='Ari', role='student')
    second_profile = Profile(email='bo@example.com', first_name='Bo', role='student')
    db.add_all([instructor_profile, first_profile, second_profile])
    db.flush()

    instructor = Instructor(profile_id=instructor_profile.id, timezone='Australia/Sydney')
    db.add(instructor)
    db.flush()

    db.add_all([
        Student(profile_id=first_profile.id, instructor_id=instructor.id),
        Student(profile_id=second_profile.id, instructor_id=instructor.id),
        AvailabilityRule(instructor_id=instructor.id, day_of_week=3, start_time=time(9, 0), end_time=time(17, 0)),
    ])
    long_lesson = Service(instructor_id=instructor.id, name='Test prep', duration_minutes=120, price_cents=17000)
    short_lesson = Service(instructor_id=instructor.id, name='Standard lesson', duration_minutes=60, price_cents=8500)
    db.add_all([long_lesson, short_lesson])
    db.commit()

    return {
        'instructor_id': instructor.id,
        'first_profile_id': first_profile.id,
        'second_profile_id': second_profile.id,
        'long_service_id': long_lesson.id,
        'short_service_id': short_lesson.id,
    }


def _manager(db) -> BookingLifecycleManager:
    reservations = SqlReservationStore(db)
    resolver = AvailabilityResolver(SqlCalendarRuleStore(db), reservations, now=lambda: NOW)
    return BookingLifecycleManager(resolver, reservations, SqlAuditSink(db), now=lambda: NOW)


def test_racing_bookings_of_different_lengths_never_overlap(two_sessions, monkeypatch) -> None:
    first_db, second_db = two_sessions
    seeded = _seed(first_db)
    first_manager = _manager(first_db)
    second_manager = _manager(second_db)
    racing_outcomes = []

    def book_short_lesson():
        return second_manager.create_booking(
            instructor_id=seeded['instructor_id'],
            service_id=seeded['short_service_id'],
            scheduled_at=FIRST_SLOT + timedelta(hours=1),
            student_profile_id=seeded['second_profile_id'],
        )

    real_resolve = first_manager.resolver.resolve

    def resolve_then_let_rival_in(*args, **kwargs):
        slots = real_resolve(*args, **kwargs)
        # The long lesson has passed its recheck but is not inserted yet.
        try:
            racing_outcomes.append(book_short_lesson())
        except SchedulingError as exc:
            racing_outcomes.append(exc)
        return slots

    monkeypatch.setattr(first_manager.resolver, 'resolve', resolve_then_let_rival_in)

    booking = first_manager.create_booking(
        instructor_id=seeded['instructor_id'],
        service_id=seeded['long_service_id'],
        scheduled_at=FIRST_SLOT,
        student_profile_id=seeded['first_profile_id'],
    )

    assert booking.duration_minutes == 120
    assert len(racing_outcomes) == 1
    assert isinstance(racing_outcomes[0], DependencyUnavailable)

    with pytest.raises(SlotUnavailable):
        book_short_lesson()

    live = second_db.query(Booking).filter(Booking.status.in_(('pending', 'confirmed'))).all()
    assert [(as_utc(item.scheduled_at), item.duration_minutes) for item in live] == [(FIRST_SLOT, 120)]


def test_booking_bumps_instructor_version(two_sessions) -> None:
    first_db, second_db = two_sessions
    seeded = _seed(first_db)

    _manager(first_db).create_booking(
        instructor_id=seeded['instructor_id'],
        service_id=seeded['short_service_id'],
        scheduled_at=FIRST_SLOT,
        student_profile_id=seeded['first_profile_id'],
    )

    instructor = second_db.query(Instructor).filter(Instructor.id == seeded['instructor_id']).one()
    assert instructor.booking_version == 1
