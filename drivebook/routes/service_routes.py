from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from drivebook.database import get_db
from drivebook.models.instructor import Instructor
from drivebook.models.service import Service
from drivebook.routes.common import CamelModel, database_unavailable, ensure_database_ready, require_instructor

router = APIRouter(tags=['services'])

MAX_SERVICE_DURATION_MINUTES = 8 * 60


class CreateServiceRequest(CamelModel):
    name: str
    description: str | None = None
    duration_minutes: int = Field(default=60, gt=0, le=MAX_SERVICE_DURATION_MINUTES)
    price_cents: int = Field(ge=0)

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Service name is required.')
        return normalized


class ServiceResponse(CamelModel):
    id: str
    instructor_id: str
    name: str
    description: str | None = None
    duration_minutes: int
    price_cents: int
    is_active: bool


@router.get('', response_model=list[ServiceResponse])
def list_services(
    instructor_id: str | None = Query(default=None, alias='instructorId'),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Service).filter(Service.is_active.is_(True))
        if instructor_id:
            query = query.filter(Service.instructor_id == instructor_id)

        return query.order_by(Service.duration_minutes.asc(), Service.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable() from exc


@router.post('', response_model=ServiceResponse, status_code=status.HTTP_201_CREATED)
def create_service(
    data: CreateServiceRequest,
    instructor: Instructor = Depends(require_instructor),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        service = Service(
            instructor_id=instructor.id,
            name=data.name,
            description=data.description,
            duration_minutes=data.duration_minutes,
            price_cents=data.price_cents,
            is_active=True,
        )
        db.add(service)
        db.commit()
        db.refresh(service)

        return service
    except SQLAlchemyError as exc:
        db.rollback()
        raise database_unavailable() from exc
