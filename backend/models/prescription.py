"""Prescription model definitions."""

from sqlalchemy import Column, ForeignKey, Integer, String
from backend.database import Base


class Prescription(Base):
    """Represents a prescription written during an appointment."""
    __tablename__ = "prescriptions"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id", ondelete="SET NULL"), index=True)
    patient_name = Column(String, nullable=False)
    medication = Column(String, nullable=False)
    dosage = Column(String, nullable=False)
    doctor_notes = Column(String)
