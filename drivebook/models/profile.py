"""Profile model definitions."""

from sqlalchemy import Column, DateTime, String

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id

PROFILE_ROLES = ('admin', 'instructor', 'student', 'parent')


class Profile(Base):
    """Represents an application user of any role."""
    __tablename__ = "profiles"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String)
    phone = Column(String)
    role = Column(String, nullable=False, index=True)  # admin/instructor/student/parent
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
