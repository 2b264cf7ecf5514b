from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from drivebook.auth.dependencies import get_current_profile
from drivebook.core import config
from drivebook.core.errors import SchedulingError
from drivebook.core.timeutils import as_utc
from drivebook.database import get_db
from drivebook.models.booking import Booking
from drivebook.models.instructor import Instructor
from drivebook.models.profile import Profile
from drivebook.models.student import Student
from drivebook.routes.common import (
    CamelModel,
    database_unavailable,
    ensure_database_ready,
    get_booking_manager,
)
from drivebook.routes.service_routes import ServiceResponse
from drivebook.scheduling.lifecycle import BookingLifecycleManager

router = APIRouter(tags=['bookings'])

MAX_CANCELLATION_REASON_LENGTH = 500


def _normalize_text(value: str | None, max_length: int, label: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > max_length:
        raise ValueError(f'{label} must be {max_length} characters or fewer.')

    return normalized


class CreateBookingRequest(CamelModel):
    instructor_id: str
    service_id: str
    scheduled_at: datetime
    notes: str | None = None
    meeting_location: str | None = None

    @field_validator('instructor_id', 'service_id')
    @classmethod
    def validate_reference(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('instructorId and serviceId are required.')
        return normalized

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return _normalize_text(value, config.MAX_BOOKING_NOTES_LENGTH, 'Notes')

    @field_validator('meeting_location')
    @classmethod
    def validate_meeting_location(cls, value: str | None) -> str | None:
        return _normalize_text(value, 200, 'Meeting location')


class UpdateBookingStatusRequest(CamelModel):
    status: Literal['confirmed', 'cancelled', 'completed', 'no_show']
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        return _normalize_text(value, MAX_CANCELLATION_REASON_LENGTH, 'Reason')


class StudentSummaryResponse(CamelModel):
    id: str
    first_name: str | None = None
    last_name: str | None = None
    email: str
    phone: str | None = None


class BookingResponse(CamelModel):
    id: str
    instructor_id: str
    student_id: str
    service_id: str | None = None
    scheduled_at: datetime
    duration_minutes: int
    status: str
    meeting_location: str | None = None
    notes: str | None = None
    cancellation_reason: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
    service: ServiceResponse | None = None
    student: StudentSummaryResponse | None = None

    @field_validator('scheduled_at', 'confirmed_at', 'cancelled_at', 'completed_at', 'created_at', 'updated_at')
    @classmethod
    def normalize_instant(cls, value: datetime | None) -> datetime | None:
        return as_utc(value) if value is not None else None


class BookingEnvelope(CamelModel):
    booking: BookingResponse


class BookingListEnvelope(CamelModel):
    bookings: list[BookingResponse]


def serialize_booking(booking: Booking) -> BookingResponse:
    student = None
    if booking.student is not None and booking.student.profile is not None:
        profile = booking.student.profile
        student = StudentSummaryResponse(
            id=booking.student.id,
            first_name=profile.first_name,
            last_name=profile.last_name,
            email=profile.email,
            phone=profile.phone,
        )

    return BookingResponse(
        id=booking.id,
        instructor_id=booking.instructor_id,
        student_id=booking.student_id,
        service_id=booking.service_id,
        scheduled_at=booking.scheduled_at,
        duration_minutes=booking.duration_minutes,
        status=booking.status,
        meeting_location=booking.meeting_location,
        notes=booking.notes,
        cancellation_reason=booking.cancellation_reason,
        confirmed_at=booking.confirmed_at,
        cancelled_at=booking.cancelled_at,
        completed_at=booking.completed_at,
        created_at=booking.created_at,
        updated_at=booking.updated_at,
        service=ServiceResponse.model_validate(booking.service) if booking.service is not None else None,
        student=student,
    )


def can_read_booking(booking: Booking, profile: Profile, db: Session) -> bool:
    if profile.role == 'admin':
        return True

    if profile.role == 'instructor':
        instructor = db.query(Instructor).filter(Instructor.profile_id == profile.id).first()
        return instructor is not None and instructor.id == booking.instructor_id

    if profile.role == 'student':
        student = db.query(Student).filter(Student.profile_id == profile.id).first()
        return student is not None and student.id == booking.student_id

    return False


@router.get('', response_model=BookingListEnvelope)
def list_bookings(
    limit: int = Query(default=config.BOOKING_LIST_DEFAULT_LIMIT, ge=1),
    offset: int = Query(default=0, ge=0),
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
):
    limit = min(limit, config.BOOKING_LIST_MAX_LIMIT)

    try:
        query = db.query(Booking).options(
            joinedload(Booking.service),
            joinedload(Booking.student).joinedload(Student.profile),
        )

        if profile.role == 'instructor':
            instructor = db.query(Instructor).filter(Instructor.profile_id == profile.id).first()
            if instructor is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Instructor not found.')
            query = query.filter(Booking.instructor_id == instructor.id)
        elif profile.role == 'student':
            student = db.query(Student).filter(Student.profile_id == profile.id).first()
            if student is None:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Student not found.')
            query = query.filter(Booking.student_id == student.id)
        else:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')

        bookings = query.order_by(Booking.scheduled_at.desc()).limit(limit).offset(offset).all()

        return BookingListEnvelope(bookings=[serialize_booking(booking) for booking in bookings])
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=BookingEnvelope, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: CreateBookingRequest,
    profile: Profile = Depends(get_current_profile),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    ensure_database_ready()

    try:
        booking = manager.create_booking(
            instructor_id=data.instructor_id,
            service_id=data.service_id,
            scheduled_at=data.scheduled_at,
            student_profile_id=profile.id,
            notes=data.notes,
            meeting_location=data.meeting_location,
        )
        return BookingEnvelope(booking=serialize_booking(booking))
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/{booking_id}', response_model=BookingEnvelope)
def get_booking(
    booking_id: str,
    profile: Profile = Depends(get_current_profile),
    db: Session = Depends(get_db),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    try:
        booking = manager.get_booking_with_details(booking_id)

        if not can_read_booking(booking, profile, db):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail='Forbidden')

        return BookingEnvelope(booking=serialize_booking(booking))
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.patch('/{booking_id}', response_model=BookingEnvelope)
def update_booking_status(
    booking_id: str,
    data: UpdateBookingStatusRequest,
    profile: Profile = Depends(get_current_profile),
    manager: BookingLifecycleManager = Depends(get_booking_manager),
):
    ensure_database_ready()

    try:
        booking = manager.update_booking_status(
            booking_id=booking_id,
            new_status=data.status,
            actor_profile_id=profile.id,
            actor_role=profile.role,
            reason=data.reason,
        )
        return BookingEnvelope(booking=serialize_booking(booking))
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc
