from datetime import date, datetime, time

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import Field, field_validator, model_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drivebook.core import config
from drivebook.core.errors import RuleConflict, SchedulingError
from drivebook.core.timeutils import DATE_PATTERN, intervals_overlap
from drivebook.database import get_db
from drivebook.models.availability import AvailabilityOverride, AvailabilityRule
from drivebook.models.instructor import Instructor
from drivebook.models.service import Service
from drivebook.routes.common import (
    CamelModel,
    database_unavailable,
    ensure_database_ready,
    get_resolver,
    require_instructor,
)
from drivebook.scheduling.availability import AvailabilityResolver

router = APIRouter(tags=['availability'])

MAX_OVERRIDE_REASON_LENGTH = 200


class TimeSlotResponse(CamelModel):
    start: datetime
    end: datetime
    available: bool


class AvailabilityResponse(CamelModel):
    date: str
    instructor_id: str
    slots: list[TimeSlotResponse]


class CreateAvailabilityRuleRequest(CamelModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time

    @model_validator(mode='after')
    def validate_window(self) -> 'CreateAvailabilityRuleRequest':
        if self.start_time >= self.end_time:
            raise ValueError('startTime must be before endTime.')
        return self


class UpdateAvailabilityRuleRequest(CamelModel):
    is_active: bool


class AvailabilityRuleResponse(CamelModel):
    id: str
    instructor_id: str
    day_of_week: int
    start_time: time
    end_time: time
    is_active: bool


class CreateAvailabilityOverrideRequest(CamelModel):
    date: date
    is_available: bool = False
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None

    @field_validator('reason')
    @classmethod
    def validate_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_OVERRIDE_REASON_LENGTH:
            raise ValueError(f'Reason must be {MAX_OVERRIDE_REASON_LENGTH} characters or fewer.')

        return normalized

    @model_validator(mode='after')
    def validate_window(self) -> 'CreateAvailabilityOverrideRequest':
        if not self.is_available:
            # A closed day ignores any hours that were sent along.
            self.start_time = None
            self.end_time = None
            return self

        if (self.start_time is None) != (self.end_time is None):
            raise ValueError('startTime and endTime must be provided together.')

        if self.start_time is not None and self.start_time >= self.end_time:
            raise ValueError('startTime must be before endTime.')

        return self


class AvailabilityOverrideResponse(CamelModel):
    id: str
    instructor_id: str
    date: date
    is_available: bool
    start_time: time | None = None
    end_time: time | None = None
    reason: str | None = None


def find_conflicting_rule(
    db: Session,
    instructor_id: str,
    day_of_week: int,
    start_time: time,
    end_time: time,
    exclude_rule_id: str | None = None,
) -> AvailabilityRule | None:
    candidates = db.query(AvailabilityRule).filter(
        AvailabilityRule.instructor_id == instructor_id,
        AvailabilityRule.day_of_week == day_of_week,
        AvailabilityRule.is_active.is_(True),
    ).all()

    for rule in candidates:
        if rule.id == exclude_rule_id:
            continue
        if intervals_overlap(rule.start_time, rule.end_time, start_time, end_time):
            return rule

    return None


def reject_rule_conflicts(
    db: Session,
    instructor_id: str,
    day_of_week: int,
    start_time: time,
    end_time: time,
    exclude_rule_id: str | None = None,
) -> None:
    if not config.REJECT_OVERLAPPING_RULES:
        return

    conflict = find_conflicting_rule(db, instructor_id, day_of_week, start_time, end_time, exclude_rule_id)
    if conflict is not None:
        raise RuleConflict(
            'An active rule already covers part of this window.',
            details={'conflicting_rule_id': conflict.id},
        )


def resolve_slot_duration(db: Session, instructor_id: str, service_id: str | None) -> int | None:
    if service_id is None:
        return None

    service = db.query(Service).filter(
        Service.id == service_id,
        Service.instructor_id == instructor_id,
        Service.is_active.is_(True),
    ).first()
    if service is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Service not found.')

    return service.duration_minutes


@router.get('', response_model=AvailabilityResponse)
def get_availability(
    instructor_id: str = Query(..., alias='instructorId', min_length=1),
    date: str = Query(...),
    service_id: str | None = Query(default=None, alias='serviceId'),
    db: Session = Depends(get_db),
    resolver: AvailabilityResolver = Depends(get_resolver),
):
    if not DATE_PATTERN.match(date):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='date must be YYYY-MM-DD',
        )

    try:
        duration_minutes = resolve_slot_duration(db, instructor_id, service_id)
        slots = resolver.resolve(instructor_id, date, duration_minutes=duration_minutes)

        return AvailabilityResponse(
            date=date,
            instructor_id=instructor_id,
            slots=[TimeSlotResponse.model_validate(slot) for slot in slots],
        )
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.get('/rules', response_model=list[AvailabilityRuleResponse])
def list_availability_rules(
    instructor_id: str = Query(..., alias='instructorId'),
    db: Session = Depends(get_db),
):
    try:
        return db.query(AvailabilityRule).filter(
            AvailabilityRule.instructor_id == instructor_id,
        ).order_by(
            AvailabilityRule.day_of_week.asc(),
            AvailabilityRule.start_time.asc(),
            AvailabilityRule.created_at.asc(),
        ).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('/rules', response_model=AvailabilityRuleResponse, status_code=status.HTTP_201_CREATED)
def create_availability_rule(
    data: CreateAvailabilityRuleRequest,
    instructor: Instructor = Depends(require_instructor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        reject_rule_conflicts(db, instructor.id, data.day_of_week, data.start_time, data.end_time)

        rule = AvailabilityRule(
            instructor_id=instructor.id,
            day_of_week=data.day_of_week,
            start_time=data.start_time,
            end_time=data.end_time,
            is_active=True,
        )
        db.add(rule)
        db.commit()
        db.refresh(rule)

        return rule
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.patch('/rules/{rule_id}', response_model=AvailabilityRuleResponse)
def update_availability_rule(
    rule_id: str,
    data: UpdateAvailabilityRuleRequest,
    instructor: Instructor = Depends(require_instructor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        rule = db.query(AvailabilityRule).filter(AvailabilityRule.id == rule_id).first()

        if not rule:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Availability rule not found.',
            )

        if rule.instructor_id != instructor.id:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail='Only the owning instructor can change this rule.',
            )

        if data.is_active and not rule.is_active:
            reject_rule_conflicts(
                db,
                instructor.id,
                rule.day_of_week,
                rule.start_time,
                rule.end_time,
                exclude_rule_id=rule.id,
            )

        rule.is_active = data.is_active
        db.commit()
        db.refresh(rule)

        return rule
    except SchedulingError as exc:
        raise exc.to_http_exception() from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc


@router.post('/overrides', response_model=AvailabilityOverrideResponse, status_code=status.HTTP_201_CREATED)
def create_availability_override(
    data: CreateAvailabilityOverrideRequest,
    instructor: Instructor = Depends(require_instructor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        override = AvailabilityOverride(
            instructor_id=instructor.id,
            date=data.date,
            is_available=data.is_available,
            start_time=data.start_time,
            end_time=data.end_time,
            reason=data.reason,
        )
        db.add(override)
        db.commit()
        db.refresh(override)

        return override
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
