"""Admin model definitions."""

from sqlalchemy import Column, Integer, String
from backend.database import Base


class Admin(Base):
    """Represents a clinic administrator."""
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
