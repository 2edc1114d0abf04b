from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_verified_identity
from backend.core import config
from backend.database import get_db
from backend.models.appointment import Appointment
from backend.routes.common import ensure_database_ready, to_http_exception
from backend.services.authorization import ADMIN_ROLE, DOCTOR_ROLE, PATIENT_ROLE, authorize, ensure_owner
from backend.services.errors import SchedulingError
from backend.services.lifecycle import (
    cancel_appointment,
    change_status,
    create_appointment,
    get_appointment,
    query_doctor_appointments,
    update_appointment,
)

router = APIRouter(tags=['appointments'])

ALL_PATIENTS_MARKERS = {'all', '-'}


def _validate_local_time(value: datetime) -> datetime:
    if value.tzinfo is not None:
        raise ValueError('Appointment time must be a local time without a timezone offset.')
    return value


class CreateAppointmentRequest(BaseModel):
    doctor_id: int
    appointment_time: datetime

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: datetime) -> datetime:
        return _validate_local_time(value)


class UpdateAppointmentRequest(BaseModel):
    patient_id: int
    doctor_id: int
    appointment_time: datetime

    @field_validator('appointment_time')
    @classmethod
    def validate_appointment_time(cls, value: datetime) -> datetime:
        return _validate_local_time(value)


class ChangeStatusRequest(BaseModel):
    status: int


class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    doctor_name: str | None = None
    patient_id: int
    patient_name: str | None = None
    appointment_time: datetime
    end_time: datetime
    status: int


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentResponse]
    count: int


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=appointment.id,
        doctor_id=appointment.doctor_id,
        doctor_name=appointment.doctor.name if appointment.doctor else None,
        patient_id=appointment.patient_id,
        patient_name=appointment.patient.name if appointment.patient else None,
        appointment_time=appointment.appointment_time,
        end_time=appointment.appointment_time + timedelta(minutes=config.APPOINTMENT_DURATION_MINUTES),
        status=appointment.status,
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    data: CreateAppointmentRequest,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, PATIENT_ROLE)
        appointment = create_appointment(db, caller, data.doctor_id, data.appointment_time)
        return to_appointment_response(appointment)
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_id: int,
    data: UpdateAppointmentRequest,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, PATIENT_ROLE)
        ensure_owner(caller, get_appointment(db, appointment_id))
        appointment = update_appointment(
            db,
            caller,
            appointment_id,
            patient_id=data.patient_id,
            doctor_id=data.doctor_id,
            appointment_time=data.appointment_time,
        )
        return to_appointment_response(appointment)
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc


@router.delete('/{appointment_id}', status_code=status.HTTP_204_NO_CONTENT)
def cancel_my_appointment(
    appointment_id: int,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, PATIENT_ROLE)
        ensure_owner(caller, get_appointment(db, appointment_id))
        cancel_appointment(db, caller, appointment_id)
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: ChangeStatusRequest,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, (DOCTOR_ROLE, ADMIN_ROLE))
        ensure_owner(caller, get_appointment(db, appointment_id))
        appointment = change_status(db, appointment_id, data.status)
        return to_appointment_response(appointment)
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc


@router.get('', response_model=AppointmentListResponse)
def list_doctor_appointments(
    on_date: date = Query(alias='date'),
    patient_name: str | None = Query(default=None),
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, DOCTOR_ROLE)
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc

    name_filter = patient_name
    if name_filter is not None and name_filter.strip().lower() in ALL_PATIENTS_MARKERS:
        name_filter = None

    result = query_doctor_appointments(db, caller.identity, on_date, name_filter)
    return AppointmentListResponse(
        appointments=[to_appointment_response(appointment) for appointment in result.appointments],
        count=result.count,
    )
