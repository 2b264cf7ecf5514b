from fastapi import Depends, HTTPException, status
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drivebook.auth.dependencies import get_current_profile
from drivebook.database import ensure_booking_schema, get_db
from drivebook.models.instructor import Instructor
from drivebook.models.profile import Profile
from drivebook.scheduling.availability import AvailabilityResolver
from drivebook.scheduling.lifecycle import BookingLifecycleManager
from drivebook.scheduling.stores import SqlAuditSink, SqlCalendarRuleStore, SqlReservationStore

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


class CamelModel(BaseModel):
    """Request and response models exchanged in camelCase."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def database_unavailable() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


def ensure_database_ready() -> None:
    try:
        ensure_booking_schema()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


def get_resolver(db: Session = Depends(get_db)) -> AvailabilityResolver:
    return AvailabilityResolver(SqlCalendarRuleStore(db), SqlReservationStore(db))


def get_booking_manager(db: Session = Depends(get_db)) -> BookingLifecycleManager:
    reservations = SqlReservationStore(db)
    resolver = AvailabilityResolver(SqlCalendarRuleStore(db), reservations)
    return BookingLifecycleManager(resolver, reservations, SqlAuditSink(db))


def require_instructor(
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
) -> Instructor:
    if profile.role != 'instructor':
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Only instructors can manage this resource.')

    instructor = db.query(Instructor).filter(Instructor.profile_id == profile.id).first()
    if instructor is None:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Instructor record not found.')
    return instructor
