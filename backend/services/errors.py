"""Errors raised by the scheduling services.

Routes translate these into HTTP responses; the services themselves never
build responses.
"""

from enum import Enum


class ConflictReason(str, Enum):
    DOCTOR_NOT_FOUND = 'doctor_not_found'
    TIME_UNAVAILABLE = 'time_unavailable'
    NOT_SCHEDULED = 'not_scheduled'


class SchedulingError(Exception):
    detail = 'Scheduling request failed.'

    def __init__(self, detail: str | None = None):
        super().__init__(detail or self.detail)
        self.detail = detail or self.detail


class NotFoundError(SchedulingError):
    detail = 'Appointment not found.'


class ConflictError(SchedulingError):
    detail = 'Requested time is not available.'

    def __init__(self, reason: ConflictReason, detail: str | None = None):
        if detail is None:
            detail = {
                ConflictReason.DOCTOR_NOT_FOUND: 'Invalid doctor.',
                ConflictReason.TIME_UNAVAILABLE: 'Requested time is not available.',
                ConflictReason.NOT_SCHEDULED: 'Only scheduled appointments can be changed.',
            }[reason]
        super().__init__(detail)
        self.reason = reason


class NotAuthorizedError(SchedulingError):
    # Same text for every denial so callers cannot tell a wrong role from a
    # wrong owner.
    detail = 'Not authorized.'

    def __init__(self):
        super().__init__(self.detail)


class PatientMismatchError(NotAuthorizedError):
    pass


class InvalidInputError(SchedulingError):
    detail = 'Invalid input.'


class StorageFailureError(SchedulingError):
    detail = 'Database unavailable. Verify DATABASE_URL and database credentials.'
