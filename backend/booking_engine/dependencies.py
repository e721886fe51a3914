# backend/booking_engine/dependencies.py
"""FastAPI dependency providers."""

from functools import lru_cache
import logging
from typing import Optional

from .core.config import settings
from .database import SessionLocal
from .integrations.notification_service import LoggingNotificationService
from .integrations.payment_gateway import HttpPaymentGateway
from .interfaces import PaymentGateway
from .repositories.sql_store import SqlPatientDirectory, SqlPersistenceStore
from .services.booking_engine import BookingEngine

logger = logging.getLogger(__name__)


def build_payment_gateway() -> Optional[PaymentGateway]:
    """HTTP gateway when enabled and keyed; otherwise bookings skip payment links."""
    if not settings.payment_gateway_enabled:
        return None
    if settings.payment_gateway_api_key is None:
        logger.warning("Payment gateway enabled without an API key; payment links disabled")
        return None
    return HttpPaymentGateway(
        api_key=settings.payment_gateway_api_key,
        base_url=settings.payment_gateway_base_url,
        timeout=settings.payment_gateway_timeout_seconds,
        link_ttl_hours=settings.payment_link_ttl_hours,
    )


@lru_cache(maxsize=1)
def get_booking_engine() -> BookingEngine:
    return BookingEngine(
        store=SqlPersistenceStore(SessionLocal),
        patients=SqlPatientDirectory(SessionLocal),
        payments=build_payment_gateway(),
        notifications=LoggingNotificationService(),
    )
