"""Student model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id


class Student(Base):
    """Represents a learner driver enrolled with an instructor."""
    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=new_id)
    profile_id = Column(String(36), ForeignKey("profiles.id"), unique=True, nullable=False)
    instructor_id = Column(String(36), ForeignKey("instructors.id"), index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    profile = relationship("Profile")
