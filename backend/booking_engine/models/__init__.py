"""
Database models for the booking engine.

- ProviderSchedule: weekly hours, exceptions, policy and prices per provider
- Appointment: reservations on a provider's calendar
- AppointmentReschedule: applied moves, keyed by idempotency key
- Patient: contact records created during booking
"""

from .appointment import Appointment
from .appointment_reschedule import AppointmentReschedule
from .patient import Patient
from .provider_schedule import ProviderSchedule

__all__ = [
    "Appointment",
    "AppointmentReschedule",
    "Patient",
    "ProviderSchedule",
]
