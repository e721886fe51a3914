from .booking_events import AppointmentCancelled, AppointmentConfirmed, AppointmentRescheduled

__all__ = ["AppointmentCancelled", "AppointmentConfirmed", "AppointmentRescheduled"]
