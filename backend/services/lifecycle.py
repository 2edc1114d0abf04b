"""Appointment lifecycle: booking, rescheduling, cancellation and status.

Appointments start out SCHEDULED. The owning patient may move them to another
doctor or time while they are still scheduled, or cancel them (which deletes
the row). A downstream event such as a prescription being written marks them
COMPLETED.

Write operations raise a :mod:`backend.services.errors` exception on every
failure. Read operations log storage errors and return empty results.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from threading import Lock

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from backend.models.appointment import Appointment, AppointmentStatus
from backend.models.doctor import Doctor
from backend.models.patient import Patient
from backend.services.authorization import DOCTOR_ROLE, PATIENT_ROLE, CallerContext, normalize_identity, resolve_record
from backend.services.availability import day_bounds
from backend.services.errors import (
    ConflictError,
    ConflictReason,
    InvalidInputError,
    NotAuthorizedError,
    NotFoundError,
    PatientMismatchError,
    SchedulingError,
    StorageFailureError,
)
from backend.services.validation import BookingValidation, validate_booking

logger = logging.getLogger(__name__)

PAST_CONDITION = 'past'
FUTURE_CONDITION = 'future'
APPOINTMENT_CONDITIONS = (PAST_CONDITION, FUTURE_CONDITION)

_locks_guard = Lock()
_doctor_locks: dict[int | None, Lock] = {}


@dataclass
class AppointmentQueryResult:
    appointments: list[Appointment] = field(default_factory=list)
    count: int = 0


def doctor_lock(doctor_id: int | None) -> Lock:
    """Lock held across validate-then-write for one doctor's calendar."""
    with _locks_guard:
        lock = _doctor_locks.get(doctor_id)
        if lock is None:
            lock = Lock()
            _doctor_locks[doctor_id] = lock
        return lock


def normalize_appointment_time(appointment_time: datetime | None) -> datetime | None:
    if appointment_time is None:
        return None
    return appointment_time.replace(second=0, microsecond=0)


def get_appointment(db: Session, appointment_id: int) -> Appointment:
    try:
        appointment = db.get(Appointment, appointment_id)
    except SQLAlchemyError as exc:
        raise StorageFailureError() from exc

    if appointment is None:
        raise NotFoundError()
    return appointment


def _check_doctor(db: Session, doctor_id: int | None) -> None:
    # Runs before doctor_lock so unknown ids never get a lock entry.
    if doctor_id is None:
        raise ConflictError(ConflictReason.TIME_UNAVAILABLE)

    try:
        doctor = db.get(Doctor, doctor_id)
    except SQLAlchemyError as exc:
        raise StorageFailureError() from exc

    if doctor is None:
        raise ConflictError(ConflictReason.DOCTOR_NOT_FOUND)


def _check_booking(
    db: Session,
    doctor_id: int | None,
    appointment_time: datetime | None,
    exclude_appointment_id: int | None = None,
) -> None:
    try:
        result = validate_booking(db, doctor_id, appointment_time, exclude_appointment_id)
    except SQLAlchemyError as exc:
        raise StorageFailureError() from exc

    if result is not BookingValidation.VALID:
        raise ConflictError(ConflictReason(result.value))


def _commit(db: Session) -> None:
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # Lost a race with another writer for the same doctor and time.
        raise ConflictError(ConflictReason.TIME_UNAVAILABLE) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        raise StorageFailureError() from exc


def _refresh(db: Session, instance: object) -> None:
    try:
        db.refresh(instance)
    except SQLAlchemyError as exc:
        raise StorageFailureError() from exc


def create_appointment(
    db: Session,
    caller: CallerContext,
    doctor_id: int | None,
    appointment_time: datetime | None,
) -> Appointment:
    if caller.role != PATIENT_ROLE:
        raise NotAuthorizedError()

    requested_time = normalize_appointment_time(appointment_time)
    _check_doctor(db, doctor_id)

    with doctor_lock(doctor_id):
        _check_booking(db, doctor_id, requested_time)

        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=caller.record_id,
            appointment_time=requested_time,
            status=AppointmentStatus.SCHEDULED.value,
        )
        db.add(appointment)
        _commit(db)

    _refresh(db, appointment)
    logger.info(
        'Booked appointment %s: doctor %s, patient %s at %s',
        appointment.id, doctor_id, caller.record_id, requested_time,
    )
    return appointment


def update_appointment(
    db: Session,
    caller: CallerContext,
    appointment_id: int,
    patient_id: int | None,
    doctor_id: int | None,
    appointment_time: datetime | None,
) -> Appointment:
    appointment = get_appointment(db, appointment_id)

    if (
        patient_id is None
        or patient_id != appointment.patient_id
        or caller.role != PATIENT_ROLE
        or caller.record_id != appointment.patient_id
    ):
        raise PatientMismatchError()

    if appointment.status != AppointmentStatus.SCHEDULED.value:
        raise ConflictError(ConflictReason.NOT_SCHEDULED)

    requested_time = normalize_appointment_time(appointment_time)
    _check_doctor(db, doctor_id)

    with doctor_lock(doctor_id):
        _check_booking(db, doctor_id, requested_time, exclude_appointment_id=appointment.id)

        appointment.doctor_id = doctor_id
        appointment.appointment_time = requested_time
        _commit(db)

    _refresh(db, appointment)
    logger.info('Rescheduled appointment %s: doctor %s at %s', appointment.id, doctor_id, requested_time)
    return appointment


def cancel_appointment(db: Session, caller: CallerContext, appointment_id: int) -> None:
    """Delete the appointment if ``caller`` is the patient who booked it.

    The current status is not checked, so completed appointments can be
    cancelled too.
    """
    appointment = get_appointment(db, appointment_id)

    patient = appointment.patient
    if patient is None or not patient.email or patient.email.strip().lower() != normalize_identity(caller.identity):
        raise NotAuthorizedError()

    db.delete(appointment)
    _commit(db)
    logger.info('Cancelled appointment %s for patient %s', appointment_id, patient.id)


def change_status(db: Session, appointment_id: int, status: int) -> Appointment:
    if isinstance(status, bool) or not isinstance(status, int):
        raise InvalidInputError('Status must be an integer.')

    appointment = get_appointment(db, appointment_id)

    if status not in {item.value for item in AppointmentStatus}:
        logger.warning('Appointment %s set to unrecognized status %s', appointment_id, status)

    appointment.status = status
    _commit(db)
    _refresh(db, appointment)
    logger.info('Appointment %s status is now %s', appointment_id, status)
    return appointment


def complete_appointment_best_effort(db: Session, appointment_id: int) -> bool:
    """Mark an appointment completed without failing the caller.

    Used by downstream events (a prescription being recorded) whose own
    success must not depend on the status update.
    """
    try:
        change_status(db, appointment_id, AppointmentStatus.COMPLETED.value)
    except SchedulingError as exc:
        logger.warning('Could not complete appointment %s: %s', appointment_id, exc.detail)
        return False
    return True


def query_doctor_appointments(
    db: Session,
    doctor_identity: str | None,
    on_date: date,
    patient_name: str | None = None,
) -> AppointmentQueryResult:
    try:
        doctor = resolve_record(db, normalize_identity(doctor_identity), DOCTOR_ROLE)
        if doctor is None:
            logger.info('No appointments: %s is not a doctor', doctor_identity)
            return AppointmentQueryResult()

        range_start, range_end = day_bounds(on_date)
        query = db.query(Appointment).filter(
            Appointment.doctor_id == doctor.id,
            Appointment.appointment_time >= range_start,
            Appointment.appointment_time <= range_end,
        )

        normalized_name = (patient_name or '').strip().lower()
        if normalized_name:
            query = query.join(Patient, Appointment.patient_id == Patient.id).filter(
                func.lower(Patient.name).contains(normalized_name, autoescape=True)
            )

        appointments = query.order_by(Appointment.appointment_time.asc()).all()
    except SQLAlchemyError:
        logger.exception('Appointment query failed for %s on %s', doctor_identity, on_date)
        return AppointmentQueryResult()

    return AppointmentQueryResult(appointments=appointments, count=len(appointments))


def patient_appointments(
    db: Session,
    patient_id: int,
    condition: str | None = None,
    doctor_name: str | None = None,
    now: datetime | None = None,
) -> list[Appointment]:
    """List one patient's appointments, oldest first.

    ``condition`` keeps only ``past`` or ``future`` appointments relative to
    ``now`` (default: the current local time). ``doctor_name`` keeps
    appointments whose doctor's name contains it, ignoring case. Blank values
    apply no filter; any other condition raises :class:`InvalidInputError`.
    """
    normalized_condition = (condition or '').strip().lower()
    if normalized_condition and normalized_condition not in APPOINTMENT_CONDITIONS:
        raise InvalidInputError(f"Condition must be one of: {', '.join(APPOINTMENT_CONDITIONS)}.")

    reference_time = now or datetime.now()

    try:
        query = db.query(Appointment).filter(Appointment.patient_id == patient_id)

        if normalized_condition == PAST_CONDITION:
            query = query.filter(Appointment.appointment_time < reference_time)
        elif normalized_condition == FUTURE_CONDITION:
            query = query.filter(Appointment.appointment_time >= reference_time)

        normalized_doctor_name = (doctor_name or '').strip().lower()
        if normalized_doctor_name:
            query = query.join(Doctor, Appointment.doctor_id == Doctor.id).filter(
                func.lower(Doctor.name).contains(normalized_doctor_name, autoescape=True)
            )

        return query.order_by(Appointment.appointment_time.asc()).all()
    except SQLAlchemyError:
        logger.exception('Appointment lookup failed for patient %s', patient_id)
        return []
