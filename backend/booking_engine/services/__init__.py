"""
Service layer for the booking engine.

Pure services (slot generation, conflicts, availability, policy, forms and
the session workflow) plus the BookingEngine facade that wires them to
collaborators.
"""

from .base import BaseService
from .booking_engine import BookingEngine
from .booking_workflow import BookingWorkflow

__all__ = ["BaseService", "BookingEngine", "BookingWorkflow"]
