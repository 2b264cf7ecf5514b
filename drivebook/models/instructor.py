"""Instructor model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id


class Instructor(Base):
    """Represents a driving instructor who publishes services and hours."""
    __tablename__ = "instructors"

    id = Column(String(36), primary_key=True, default=new_id)
    profile_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    business_name = Column(String)
    timezone = Column(String)  # IANA name; falls back to BOOKING_TIMEZONE
    is_active = Column(Boolean, default=True, nullable=False)
    booking_version = Column(Integer, default=0, nullable=False)  # bumped under the booking lock
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    profile = relationship("Profile")
