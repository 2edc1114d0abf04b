from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_verified_identity
from backend.database import get_db
from backend.routes.appointment_routes import AppointmentListResponse, to_appointment_response
from backend.routes.common import ensure_database_ready, to_http_exception
from backend.services.authorization import PATIENT_ROLE, authorize
from backend.services.errors import SchedulingError
from backend.services.lifecycle import patient_appointments

router = APIRouter(tags=['patients'])


@router.get('/{patient_id}/appointments', response_model=AppointmentListResponse)
def list_patient_appointments(
    patient_id: int,
    condition: str | None = None,
    doctor_name: str | None = None,
    identity: str = Depends(get_verified_identity),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        authorize(db, identity, PATIENT_ROLE, patient_id=patient_id)
        appointments = patient_appointments(db, patient_id, condition=condition, doctor_name=doctor_name)
    except (SchedulingError, SQLAlchemyError) as exc:
        raise to_http_exception(exc) from exc

    return AppointmentListResponse(
        appointments=[to_appointment_response(appointment) for appointment in appointments],
        count=len(appointments),
    )
