"""Service model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id


class Service(Base):
    """Represents a bookable lesson product."""
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=new_id)
    instructor_id = Column(String(36), ForeignKey("instructors.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    description = Column(String)
    duration_minutes = Column(Integer, default=60, nullable=False)
    price_cents = Column(Integer, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
