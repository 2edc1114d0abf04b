from datetime import datetime
from enum import Enum

from sqlalchemy.orm import Session

from backend.models.doctor import Doctor
from backend.services.availability import free_slots_for


class BookingValidation(str, Enum):
    VALID = 'valid'
    DOCTOR_NOT_FOUND = 'doctor_not_found'
    TIME_UNAVAILABLE = 'time_unavailable'


def validate_booking(
    db: Session,
    doctor_id: int | None,
    appointment_time: datetime | None,
    exclude_appointment_id: int | None = None,
) -> BookingValidation:
    """Check that ``doctor_id`` has a free slot starting at ``appointment_time``.

    Read-only. Availability can change between this check and the write, so
    callers re-run it under the booking lock instead of caching the result.
    Storage errors from the doctor lookup propagate; the slot lookup itself
    degrades to "no availability".
    """
    if doctor_id is None or appointment_time is None:
        return BookingValidation.TIME_UNAVAILABLE

    if db.get(Doctor, doctor_id) is None:
        return BookingValidation.DOCTOR_NOT_FOUND

    free_slots = free_slots_for(db, doctor_id, appointment_time.date(), exclude_appointment_id)
    if not free_slots:
        return BookingValidation.TIME_UNAVAILABLE

    requested = appointment_time.time().replace(second=0, microsecond=0)
    if any(slot.start == requested for slot in free_slots if slot.is_parseable):
        return BookingValidation.VALID

    return BookingValidation.TIME_UNAVAILABLE
