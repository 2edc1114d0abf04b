from datetime import datetime

import pytest
from sqlalchemy.exc import SQLAlchemyError

from backend.models.appointment import Appointment
from backend.services import availability
from backend.services.validation import BookingValidation, validate_booking


def book(db, doctor, patient, when: datetime) -> Appointment:
    appointment = Appointment(doctor_id=doctor.id, patient_id=patient.id, appointment_time=when)
    db.add(appointment)
    db.commit()
    db.refresh(appointment)
    return appointment


def test_validate_booking_accepts_free_template_start(db, clinic) -> None:
    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 1, 10, 0))

    assert result is BookingValidation.VALID


def test_validate_booking_ignores_seconds_at_minute_precision(db, clinic) -> None:
    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 1, 9, 0, 42))

    assert result is BookingValidation.VALID


@pytest.mark.parametrize(
    ('doctor_id', 'requested'),
    [
        (None, datetime(2024, 6, 1, 9, 0)),
        (1, None),
    ],
)
def test_validate_booking_missing_fields_is_time_unavailable(db, clinic, doctor_id, requested) -> None:
    assert validate_booking(db, doctor_id, requested) is BookingValidation.TIME_UNAVAILABLE


def test_validate_booking_unknown_doctor(db, clinic) -> None:
    assert validate_booking(db, 9999, datetime(2024, 6, 1, 9, 0)) is BookingValidation.DOCTOR_NOT_FOUND


def test_validate_booking_misaligned_time_is_unavailable(db, clinic) -> None:
    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 1, 9, 30))

    assert result is BookingValidation.TIME_UNAVAILABLE


def test_validate_booking_booked_slot_is_unavailable(db, clinic) -> None:
    book(db, clinic.doctor, clinic.owner, datetime(2024, 6, 1, 9, 0))

    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 1, 9, 0))

    assert result is BookingValidation.TIME_UNAVAILABLE


def test_validate_booking_same_slot_on_another_day_is_free(db, clinic) -> None:
    book(db, clinic.doctor, clinic.owner, datetime(2024, 6, 1, 9, 0))

    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 2, 9, 0))

    assert result is BookingValidation.VALID


def test_validate_booking_doctor_without_template_is_unavailable(db, clinic) -> None:
    clinic.doctor.available_times = []
    db.commit()

    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 1, 9, 0))

    assert result is BookingValidation.TIME_UNAVAILABLE


def test_validate_booking_can_ignore_the_appointment_being_moved(db, clinic) -> None:
    appointment = book(db, clinic.doctor, clinic.owner, datetime(2024, 6, 1, 9, 0))

    result = validate_booking(
        db,
        clinic.doctor.id,
        datetime(2024, 6, 1, 9, 0),
        exclude_appointment_id=appointment.id,
    )

    assert result is BookingValidation.VALID


def test_validate_booking_availability_failure_is_unavailable(db, clinic, monkeypatch: pytest.MonkeyPatch) -> None:
    def fail(*_args, **_kwargs):
        raise SQLAlchemyError('connection lost')

    monkeypatch.setattr(availability, 'booked_slots_for', fail)

    result = validate_booking(db, clinic.doctor.id, datetime(2024, 6, 1, 9, 0))

    assert result is BookingValidation.TIME_UNAVAILABLE
