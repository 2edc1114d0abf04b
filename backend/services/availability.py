import logging
from datetime import date, datetime, time

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.services.slots import Slot, sort_slots, template_slots_for

logger = logging.getLogger(__name__)


def day_bounds(on_date: date) -> tuple[datetime, datetime]:
    return datetime.combine(on_date, time.min), datetime.combine(on_date, time.max)


def find_by_doctor_and_time_range(
    db: Session,
    doctor_id: int,
    range_start: datetime,
    range_end: datetime,
) -> list[Appointment]:
    return db.query(Appointment).filter(
        Appointment.doctor_id == doctor_id,
        Appointment.appointment_time >= range_start,
        Appointment.appointment_time <= range_end,
    ).order_by(Appointment.appointment_time.asc()).all()


def booked_slots_for(
    db: Session,
    doctor_id: int,
    on_date: date,
    exclude_appointment_id: int | None = None,
) -> set[str]:
    range_start, range_end = day_bounds(on_date)
    appointments = find_by_doctor_and_time_range(db, doctor_id, range_start, range_end)

    return {
        Slot.for_appointment(appointment.appointment_time).text
        for appointment in appointments
        if appointment.id != exclude_appointment_id
    }


def free_slots_for(
    db: Session,
    doctor_id: int,
    on_date: date,
    exclude_appointment_id: int | None = None,
) -> list[Slot]:
    """Return the doctor's template slots still open on ``on_date``.

    Storage errors are logged and reported as no availability.
    """
    try:
        template = template_slots_for(db, doctor_id)
        if not template:
            return []

        booked = booked_slots_for(db, doctor_id, on_date, exclude_appointment_id)
    except SQLAlchemyError:
        logger.exception('Availability lookup failed for doctor %s on %s', doctor_id, on_date)
        return []

    free = [slot for slot in template if not (slot.is_parseable and slot.text in booked)]
    return sort_slots(free)
