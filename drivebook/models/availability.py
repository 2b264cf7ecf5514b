"""Availability model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, String, Time

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id


class AvailabilityRule(Base):
    """Recurring weekly open hours for one instructor and one day of the week."""
    __tablename__ = "availability_rules"

    id = Column(String(36), primary_key=True, default=new_id)
    instructor_id = Column(String(36), ForeignKey("instructors.id"), nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0=Sun ... 6=Sat
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="availability_rule_day_valid"),
        CheckConstraint("start_time < end_time", name="availability_rule_window_valid"),
    )


class AvailabilityOverride(Base):
    """A date-specific exception that supersedes the weekly rule."""
    __tablename__ = "availability_overrides"

    id = Column(String(36), primary_key=True, default=new_id)
    instructor_id = Column(String(36), ForeignKey("instructors.id"), index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    is_available = Column(Boolean, default=False, nullable=False)
    start_time = Column(Time)
    end_time = Column(Time)
    reason = Column(String)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
