"""Tests for the payment link clients."""

from datetime import datetime, timedelta
import json

import httpx
import pytest

from booking_engine.core.enums import PaymentStatus
from booking_engine.core.exceptions import ExternalServiceError, NotFoundError
from booking_engine.integrations.payment_gateway import FakePaymentGateway, HttpPaymentGateway

BASE_URL = "https://payments.test/v1"
NOW = datetime(2024, 1, 1, 8, 0)


def _gateway(handler) -> HttpPaymentGateway:
    return HttpPaymentGateway(
        api_key="sk_test", base_url=BASE_URL, transport=httpx.MockTransport(handler)
    )


class TestHttpPaymentGateway:
    def test_create_payment_link(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["Authorization"]
            seen["idempotency"] = request.headers.get("Idempotency-Key")
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                201,
                json={
                    "id": "pay_1",
                    "url": "https://payments.test/pay/pay_1",
                    "code": "ABC123",
                    "expires_at": "2024-01-02T08:00:00",
                },
            )

        link = _gateway(handler).create_payment_link(150, "Initial in-person session")

        assert seen["path"] == "/v1/payment-links"
        assert seen["auth"] == "Bearer sk_test"
        assert seen["idempotency"]
        assert seen["body"]["amount"] == 150
        assert link.id == "pay_1"
        assert link.amount == 150
        assert link.status is PaymentStatus.PENDING

    def test_check_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/payments/pay_1"
            return httpx.Response(200, json={"id": "pay_1", "status": "paid"})

        assert _gateway(handler).check_status("pay_1") is PaymentStatus.PAID

    def test_http_error_is_mapped(self):
        gateway = _gateway(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(ExternalServiceError) as exc_info:
            gateway.check_status("pay_1")
        assert exc_info.value.upstream_status == 500

    def test_network_error_is_mapped(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ExternalServiceError) as exc_info:
            _gateway(handler).create_payment_link(100, "Online session")
        assert "unreachable" in exc_info.value.message

    def test_malformed_payload(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"id": "pay_1"}))

        with pytest.raises(ExternalServiceError):
            gateway.create_payment_link(100, "Online session")

    def test_unknown_status_value(self):
        gateway = _gateway(lambda request: httpx.Response(200, json={"status": "weird"}))

        with pytest.raises(ExternalServiceError):
            gateway.check_status("pay_1")

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            HttpPaymentGateway(api_key="", base_url=BASE_URL)


class TestFakePaymentGateway:
    def test_records_calls_and_tracks_status(self):
        gateway = FakePaymentGateway(clock=lambda: NOW)
        link = gateway.create_payment_link(120, "Follow-up")

        assert link.expires_at == NOW + timedelta(hours=24)
        assert gateway.check_status(link.id) is PaymentStatus.PENDING
        gateway.set_status(link.id, PaymentStatus.PAID)
        assert gateway.check_status(link.id) is PaymentStatus.PAID
        assert [call["method"] for call in gateway.calls] == [
            "create_payment_link",
            "check_status",
            "check_status",
        ]

    def test_pending_link_expires(self):
        clock = {"now": NOW}
        gateway = FakePaymentGateway(link_ttl_hours=1, clock=lambda: clock["now"])
        link = gateway.create_payment_link(120, "Follow-up")

        clock["now"] = NOW + timedelta(hours=2)
        assert gateway.check_status(link.id) is PaymentStatus.EXPIRED

    def test_injected_error(self):
        gateway = FakePaymentGateway(clock=lambda: NOW)
        gateway.set_error("create_payment_link", ExternalServiceError("payment_gateway", "down"))

        with pytest.raises(ExternalServiceError):
            gateway.create_payment_link(120, "Follow-up")
        gateway.clear_errors()
        assert gateway.create_payment_link(120, "Follow-up").amount == 120

    def test_unknown_payment(self):
        with pytest.raises(NotFoundError):
            FakePaymentGateway(clock=lambda: NOW).check_status("missing")
