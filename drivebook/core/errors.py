"""Domain errors raised by the scheduling engine.

Each error carries the HTTP status the request layer should answer with, so
routes can translate them without knowing every subclass.
"""

from typing import Any

from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base class for every caller-actionable scheduling failure."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = 'SCHEDULING_ERROR'

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=self.status_code,
            detail={
                'message': self.message,
                'code': self.code,
                'details': self.details,
            },
        )


class InvalidInput(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'INVALID_INPUT'


class InvalidWindow(InvalidInput):
    code = 'INVALID_WINDOW'


class InvalidDate(InvalidInput):
    code = 'INVALID_DATE'


class InvalidTransition(InvalidInput):
    code = 'INVALID_TRANSITION'


class NotFound(SchedulingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = 'NOT_FOUND'


class InstructorNotFound(NotFound):
    code = 'INSTRUCTOR_NOT_FOUND'


class StudentNotFound(NotFound):
    code = 'STUDENT_NOT_FOUND'


class ServiceNotFound(NotFound):
    code = 'SERVICE_NOT_FOUND'


class BookingNotFound(NotFound):
    code = 'BOOKING_NOT_FOUND'


class Forbidden(SchedulingError):
    status_code = status.HTTP_403_FORBIDDEN
    code = 'FORBIDDEN'


class SlotUnavailable(SchedulingError):
    """The requested start is no longer one of the instructor's open slots."""

    status_code = status.HTTP_409_CONFLICT
    code = 'SLOT_UNAVAILABLE'


class RuleConflict(SchedulingError):
    status_code = status.HTTP_409_CONFLICT
    code = 'RULE_CONFLICT'


class LateCancellation(SchedulingError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'LATE_CANCELLATION'


class DependencyUnavailable(SchedulingError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = 'DEPENDENCY_UNAVAILABLE'
