# backend/booking_engine/interfaces.py
"""Collaborators the booking engine consumes."""

from datetime import date
from typing import Any, Dict, List, Optional, Protocol

from .core.enums import PaymentStatus
from .schemas.booking import Appointment, PaymentLink, SlotSelection
from .schemas.schedule import ScheduleConfig


class PatientDirectory(Protocol):
    def create_or_find_patient(self, name: str, email: str, phone: str) -> str:
        """Return the id of the patient with this email, creating them if needed."""
        ...


class PersistenceStore(Protocol):
    def load_schedule(self, provider_id: str) -> ScheduleConfig:
        ...

    def load_appointments(self, provider_id: str, day: date) -> List[Appointment]:
        ...

    def load_appointments_between(
        self, provider_id: str, start: date, end: date
    ) -> List[Appointment]:
        ...

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        ...

    def reserve_appointment(self, selection: SlotSelection, idempotency_key: str) -> Appointment:
        """
        Atomic check-and-reserve.

        Returns the existing appointment when ``idempotency_key`` was already
        used; raises ConflictError when the slot is taken.
        """
        ...

    def cancel_appointment(self, appointment_id: str) -> Appointment:
        ...

    def reschedule_appointment(
        self, appointment_id: str, selection: SlotSelection, idempotency_key: str
    ) -> Appointment:
        ...


class PaymentGateway(Protocol):
    def create_payment_link(self, amount: float, description: str) -> PaymentLink:
        ...

    def check_status(self, payment_id: str) -> PaymentStatus:
        ...


class NotificationService(Protocol):
    def send_confirmation(self, contact: str, appointment_details: Dict[str, Any]) -> None:
        ...
