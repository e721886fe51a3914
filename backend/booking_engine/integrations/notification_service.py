"""Confirmation delivery."""

import logging
from typing import Any, Dict, List

from ..core.exceptions import ExternalServiceError

logger = logging.getLogger(__name__)


class LoggingNotificationService:
    """Writes confirmations to the log; the default when no channel is configured."""

    def send_confirmation(self, contact: str, appointment_details: Dict[str, Any]) -> None:
        logger.info(
            "Booking confirmation",
            extra={
                "contact": contact,
                "appointment_id": appointment_details.get("appointment_id"),
                "starts_at": appointment_details.get("starts_at"),
            },
        )


class FakeNotificationService:
    """Records every confirmation; failures can be injected."""

    def __init__(self) -> None:
        self.sent: List[Dict[str, Any]] = []
        self._error: ExternalServiceError | None = None

    def set_error(self, error: ExternalServiceError) -> None:
        self._error = error

    def clear_error(self) -> None:
        self._error = None

    def send_confirmation(self, contact: str, appointment_details: Dict[str, Any]) -> None:
        if self._error is not None:
            raise self._error
        self.sent.append({"contact": contact, "details": dict(appointment_details)})
