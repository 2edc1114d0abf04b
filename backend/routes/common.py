from fastapi import HTTPException, status
from sqlalchemy.exc import SQLAlchemyError

from backend.database import ensure_appointment_schema
from backend.services.errors import (
    ConflictError,
    ConflictReason,
    InvalidInputError,
    NotAuthorizedError,
    NotFoundError,
    SchedulingError,
    StorageFailureError,
)

DATABASE_UNAVAILABLE_DETAIL = StorageFailureError.detail


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, NotAuthorizedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=NotAuthorizedError.detail)

    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.detail)

    if isinstance(exc, ConflictError):
        if exc.reason is ConflictReason.DOCTOR_NOT_FOUND:
            return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=exc.detail)

    if isinstance(exc, InvalidInputError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.detail)

    if isinstance(exc, (StorageFailureError, SQLAlchemyError)):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE_DETAIL)

    detail = exc.detail if isinstance(exc, SchedulingError) else 'Internal server error.'
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)
