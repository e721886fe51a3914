# backend/booking_engine/models/patient.py
"""Patient contact record, keyed by email."""

from datetime import datetime

from sqlalchemy import Column, DateTime, String
import ulid

from ..database import Base


class Patient(Base):
    __tablename__ = "patients"

    id = Column(String(26), primary_key=True, index=True, default=lambda: str(ulid.ULID()))
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    phone = Column(String(20), nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)

    def __repr__(self) -> str:
        return f"<Patient {self.id}>"
