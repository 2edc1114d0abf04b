"""Doctor model definitions."""

from sqlalchemy import JSON, Column, Integer, String
from sqlalchemy.orm import relationship
from backend.database import Base


class Doctor(Base):
    """Represents a doctor and the time-of-day slots they advertise."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    specialty = Column(String)
    email = Column(String, unique=True, index=True, nullable=False)
    phone = Column(String)
    available_times = Column(JSON, default=list)  # e.g. ["09:00-10:00", "10:00-11:00"]

    appointments = relationship("Appointment", back_populates="doctor")
