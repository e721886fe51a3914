from .notification_service import FakeNotificationService, LoggingNotificationService
from .payment_gateway import FakePaymentGateway, HttpPaymentGateway

__all__ = [
    "FakeNotificationService",
    "FakePaymentGateway",
    "HttpPaymentGateway",
    "LoggingNotificationService",
]
