"""Appointment model definitions."""

from enum import IntEnum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer
from sqlalchemy.orm import relationship
from backend.database import Base


class AppointmentStatus(IntEnum):
    SCHEDULED = 0
    COMPLETED = 1


class Appointment(Base):
    """Represents a booked appointment.

    A doctor can hold at most one appointment per start time; the unique
    index backs up the per-doctor booking lock.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        Index("uq_appointments_doctor_time", "doctor_id", "appointment_time", unique=True),
    )

    id = Column(Integer, primary_key=True)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False, index=True)
    appointment_time = Column(DateTime, nullable=False)
    status = Column(Integer, nullable=False, default=AppointmentStatus.SCHEDULED.value)

    doctor = relationship("Doctor", back_populates="appointments")
    patient = relationship("Patient", back_populates="appointments")
