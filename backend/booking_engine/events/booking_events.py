"""Appointment domain events."""
from dataclasses import asdict, dataclass
from datetime import date, datetime
from typing import Any, Dict, Optional


def _serialize(payload: Dict[str, Any]) -> Dict[str, Any]:
    # Dates and datetimes travel as ISO strings
    return {
        key: value.isoformat() if isinstance(value, (date, datetime)) else value
        for key, value in payload.items()
    }


@dataclass
class AppointmentConfirmed:
    """Fired after a booking session reaches confirmed."""

    appointment_id: str
    provider_id: str
    patient_id: Optional[str]
    starts_at: datetime
    duration_minutes: int
    modality: str
    price: float
    appointment_type: str
    patient_name: Optional[str] = None
    payment_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class AppointmentCancelled:
    """Fired after an appointment is cancelled inside the policy window."""

    appointment_id: str
    provider_id: str
    cancelled_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))


@dataclass
class AppointmentRescheduled:
    appointment_id: str
    provider_id: str
    previous_starts_at: datetime
    starts_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(asdict(self))
