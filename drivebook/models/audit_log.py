"""Audit log model definitions."""

from sqlalchemy import JSON, Column, DateTime, String

from drivebook.core.timeutils import utcnow
from drivebook.database import Base
from drivebook.models._ids import new_id


class AuditLog(Base):
    """Append-only record of a state-changing operation."""
    __tablename__ = "audit_log"

    id = Column(String(36), primary_key=True, default=new_id)
    actor_profile_id = Column(String(36), index=True)  # NULL for system events
    action = Column(String, nullable=False, index=True)
    entity_type = Column(String, nullable=False)
    entity_id = Column(String(36))
    payload = Column(JSON, default=dict)
    severity = Column(String, default='info', nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)
