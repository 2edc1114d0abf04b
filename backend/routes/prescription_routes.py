import logging

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_verified_identity
from backend.database import get_db
from backend.models.appointment import AppointmentStatus
from backend.models.prescription import Prescription
from backend.routes.common import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready, to_http_exception
from backend.services.authorization import DOCTOR_ROLE, authorize, ensure_owner
from backend.services.errors import NotFoundError, SchedulingError
from backend.services.lifecycle import complete_appointment_best_effort, get_appointment

router = APIRouter(tags=['prescriptions'])

logger = logging.getLogger(__name__)

MAX_DOCTOR_NOTES_LENGTH = 600


class CreatePrescriptionRequest(BaseModel):
    appointment_id: int
    patient_name: str
    medication: str
    dosage: str
    doctor_notes: str | None = None

    @field_validator('patient_name', 'medication', 'dosage')
    @classmethod
    def validate_required_text(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('This field is required.')
        return normalized

    @field_validator('doctor_notes')
    @classmethod
    def validate_doctor_notes(cls, value: str | None) -> str | None:
        if value is None:
            return None

        normalized = value.strip()
        if not normalized:
            return None

        if len(normalized) > MAX_DOCTOR_NOTES_LENGTH:
            raise ValueError(f'Notes must be {MAX_DOCTOR_NOTES_LENGTH} characters or fewer.')

        return normalized


class PrescriptionResponse(BaseModel):
    id: int
    appointment_id: int
    patient_name: str
    medication: str
    dosage: str
    doctor_notes: str | None = None
    appointment_completed: bool


@router.post('', response_model=PrescriptionResponse, status_code=status.HTTP_201_CREATED)
def save_prescription(
    data: CreatePrescriptionRequest,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, DOCTOR_ROLE)
        ensure_owner(caller, get_appointment(db, data.appointment_id))
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc

    prescription = Prescription(
        appointment_id=data.appointment_id,
        patient_name=data.patient_name,
        medication=data.medication,
        dosage=data.dosage,
        doctor_notes=data.doctor_notes,
    )

    try:
        db.add(prescription)
        db.commit()
        db.refresh(prescription)
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    logger.info('Saved prescription %s for appointment %s', prescription.id, data.appointment_id)

    # The prescription is saved; completing the appointment must not undo that.
    completed = complete_appointment_best_effort(db, data.appointment_id)

    return PrescriptionResponse(
        id=prescription.id,
        appointment_id=prescription.appointment_id,
        patient_name=prescription.patient_name,
        medication=prescription.medication,
        dosage=prescription.dosage,
        doctor_notes=prescription.doctor_notes,
        appointment_completed=completed,
    )


@router.get('/{appointment_id}', response_model=PrescriptionResponse)
def get_prescription(
    appointment_id: int,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        caller = authorize(db, identity, DOCTOR_ROLE)
        appointment = get_appointment(db, appointment_id)
        ensure_owner(caller, appointment)

        prescription = (
            db.query(Prescription)
            .filter(Prescription.appointment_id == appointment_id)
            .order_by(Prescription.id.desc())
            .first()
        )
        if prescription is None:
            raise NotFoundError('Prescription not found.')
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc

    return PrescriptionResponse(
        id=prescription.id,
        appointment_id=prescription.appointment_id,
        patient_name=prescription.patient_name,
        medication=prescription.medication,
        dosage=prescription.dosage,
        doctor_notes=prescription.doctor_notes,
        appointment_completed=appointment.status == AppointmentStatus.COMPLETED.value,
    )
