"""Booking model definitions."""

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id

BOOKING_STATUSES = (
    'pending',
    'confirmed',
    'in_progress',
    'completed',
    'cancelled',
    'no_show',
    'rescheduled',
)
ACTIVE_BOOKING_STATUSES = ('pending', 'confirmed')


class Booking(Base):
    """A reservation of one lesson slot by one student with one instructor."""
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_id)
    instructor_id = Column(String(36), ForeignKey("instructors.id"), nullable=False)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False)
    service_id = Column(String(36), ForeignKey("services.id"))
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    duration_minutes = Column(Integer, default=60, nullable=False)
    status = Column(String, default='pending', nullable=False, index=True)
    meeting_location = Column(String)
    notes = Column(Text)
    cancellation_reason = Column(String)
    confirmed_at = Column(DateTime(timezone=True))
    cancelled_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    service = relationship("Service")
    student = relationship("Student")

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'in_progress', 'completed', 'cancelled', 'no_show', 'rescheduled')",
            name="booking_status_valid",
        ),
        CheckConstraint("duration_minutes > 0", name="booking_duration_positive"),
    )
