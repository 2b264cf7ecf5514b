import os
from datetime import date, datetime, time, timezone

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from drivebook.auth.dependencies import get_current_profile  # noqa: E402
from drivebook.database import Base, ensure_booking_schema, get_db  # noqa: E402
from drivebook.main import app  # noqa: E402
from drivebook.models.audit_log import AuditLog  # noqa: E402,F401
from drivebook.models.availability import AvailabilityOverride, AvailabilityRule  # noqa: E402
from drivebook.models.booking import Booking  # noqa: E402
from drivebook.models.instructor import Instructor  # noqa: E402
from drivebook.models.profile import Profile  # noqa: E402
from drivebook.models.service import Service  # noqa: E402
from drivebook.models.student import Student  # noqa: E402
from drivebook.routes import availability_routes, booking_routes, service_routes  # noqa: E402
from drivebook.routes.common import get_booking_manager, get_resolver  # noqa: E402
from drivebook.scheduling.availability import AvailabilityResolver  # noqa: E402
from drivebook.scheduling.lifecycle import BookingLifecycleManager  # noqa: E402
from drivebook.scheduling.stores import SqlAuditSink, SqlCalendarRuleStore, SqlReservationStore  # noqa: E402

# Monday 1 June 2026, 10:00 in Sydney (AEST, UTC+10).
FIXED_NOW = datetime(2026, 6, 1, 0, 0, tzinfo=timezone.utc)
# Wednesday, Sunday-based day_of_week 3.
LESSON_DAY_OF_WEEK = 3


class Factory:
    def __init__(self, db):
        self.db = db
        self._counter = 0

    def _save(self, instance):
        self.db.add(instance)
        self.db.commit()
        self.db.refresh(instance)
        return instance

    def profile(self, role: str = 'student', email: str | None = None, **fields) -> Profile:
        self._counter += 1
        return self._save(
            Profile(
                email=email or f'{role}{self._counter}@example.com',
                first_name=fields.pop('first_name', role.title()),
                role=role,
                **fields,
            )
        )

    def instructor(self, timezone_name: str = 'Australia/Sydney', **fields) -> Instructor:
        profile = self.profile(role='instructor')
        return self._save(Instructor(profile_id=profile.id, timezone=timezone_name, **fields))

    def student(self, instructor: Instructor | None = None, **fields) -> Student:
        profile = self.profile(role='student', **fields)
        return self._save(
            Student(profile_id=profile.id, instructor_id=instructor.id if instructor else None)
        )

    def service(self, instructor: Instructor, duration_minutes: int = 60, **fields) -> Service:
        return self._save(
            Service(
                instructor_id=instructor.id,
                name=fields.pop('name', f'{duration_minutes} minute lesson'),
                duration_minutes=duration_minutes,
                price_cents=fields.pop('price_cents', 8500),
                **fields,
            )
        )

    def rule(
        self,
        instructor: Instructor,
        day_of_week: int = LESSON_DAY_OF_WEEK,
        start_time: time = time(9, 0),
        end_time: time = time(17, 0),
        **fields,
    ) -> AvailabilityRule:
        return self._save(
            AvailabilityRule(
                instructor_id=instructor.id,
                day_of_week=day_of_week,
                start_time=start_time,
                end_time=end_time,
                **fields,
            )
        )

    def override(
        self,
        instructor: Instructor,
        day: date,
        is_available: bool = False,
        start_time: time | None = None,
        end_time: time | None = None,
    ) -> AvailabilityOverride:
        return self._save(
            AvailabilityOverride(
                instructor_id=instructor.id,
                date=day,
                is_available=is_available,
                start_time=start_time,
                end_time=end_time,
            )
        )

    def booking(
        self,
        instructor: Instructor,
        student: Student,
        scheduled_at: datetime,
        status: str = 'pending',
        duration_minutes: int = 60,
        service: Service | None = None,
    ) -> Booking:
        return self._save(
            Booking(
                instructor_id=instructor.id,
                student_id=student.id,
                service_id=service.id if service else None,
                scheduled_at=scheduled_at,
                duration_minutes=duration_minutes,
                status=status,
            )
        )


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite:///:memory:',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    ensure_booking_schema(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db_session(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def factory(db_session) -> Factory:
    return Factory(db_session)


class ApiClient:
    def __init__(self, http: TestClient):
        self.http = http
        self.profile = None

    def login(self, profile: Profile) -> None:
        self.profile = profile

    def logout(self) -> None:
        self.profile = None


@pytest.fixture
def api(db_session, monkeypatch):
    client = ApiClient(TestClient(app))

    def override_get_db():
        yield db_session

    def override_current_profile() -> Profile:
        if client.profile is None:
            raise HTTPException(status_code=401, detail='Not authenticated')
        return client.profile

    def override_resolver() -> AvailabilityResolver:
        return AvailabilityResolver(
            SqlCalendarRuleStore(db_session),
            SqlReservationStore(db_session),
            now=lambda: FIXED_NOW,
        )

    def override_booking_manager() -> BookingLifecycleManager:
        reservations = SqlReservationStore(db_session)
        resolver = AvailabilityResolver(SqlCalendarRuleStore(db_session), reservations, now=lambda: FIXED_NOW)
        return BookingLifecycleManager(resolver, reservations, SqlAuditSink(db_session), now=lambda: FIXED_NOW)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_profile] = override_current_profile
    app.dependency_overrides[get_resolver] = override_resolver
    app.dependency_overrides[get_booking_manager] = override_booking_manager
    for module in (availability_routes, booking_routes, service_routes):
        monkeypatch.setattr(module, 'ensure_database_ready', lambda: None)

    try:
        yield client
    finally:
        app.dependency_overrides.clear()
