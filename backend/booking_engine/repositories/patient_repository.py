# backend/booking_engine/repositories/patient_repository.py
from typing import Optional

from sqlalchemy.orm import Session

from ..models.patient import Patient
from .base_repository import BaseRepository


class PatientRepository(BaseRepository[Patient]):
    def __init__(self, db: Session):
        super().__init__(db, Patient)

    def get_by_email(self, email: str) -> Optional[Patient]:
        return self.find_one_by(email=email.strip().lower())
