from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.routes.common import DATABASE_UNAVAILABLE_DETAIL, ensure_database_ready
from backend.services.availability import free_slots_for
from backend.services.slots import filter_doctors

router = APIRouter(tags=['doctors'])


class DoctorResponse(BaseModel):
    id: int
    name: str
    specialty: str | None = None
    email: str
    phone: str | None = None
    available_times: list[str] = []

    @field_validator('available_times', mode='before')
    @classmethod
    def default_available_times(cls, value: list[str] | None) -> list[str]:
        return value or []

    class Config:
        from_attributes = True


class DoctorListResponse(BaseModel):
    doctors: list[DoctorResponse]
    count: int


class DoctorAvailabilityResponse(BaseModel):
    doctor_id: int
    date: date
    availability: list[str]
    count: int


@router.get('/filter', response_model=DoctorListResponse)
def filter_doctor_list(
    name: str | None = Query(default=None),
    specialty: str | None = Query(default=None),
    time: str | None = Query(default=None, description='AM or PM'),
    db: Session = Depends(get_db),
):
    try:
        doctors = filter_doctors(db, name=name, specialty=specialty, time_of_day=time)
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc

    return DoctorListResponse(
        doctors=[DoctorResponse.model_validate(doctor) for doctor in doctors],
        count=len(doctors),
    )


@router.get('/{doctor_id}/availability', response_model=DoctorAvailabilityResponse)
def get_doctor_availability(
    doctor_id: int,
    on_date: date = Query(alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    slots = free_slots_for(db, doctor_id, on_date)
    return DoctorAvailabilityResponse(
        doctor_id=doctor_id,
        date=on_date,
        availability=[slot.text for slot in slots],
        count=len(slots),
    )
