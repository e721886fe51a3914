"""Payment link client used after a booking is confirmed."""

from __future__ import annotations

from datetime import datetime, timedelta
import json
import logging
from typing import Any, Callable, Dict, cast
import uuid

import httpx
from pydantic import SecretStr
from pydantic import ValidationError as PydanticValidationError

from ..core.enums import PaymentStatus
from ..core.exceptions import ExternalServiceError, NotFoundError
from ..schemas.booking import PaymentLink

logger = logging.getLogger(__name__)

SERVICE_NAME = "payment_gateway"


class HttpPaymentGateway:
    """Thin client for a REST payment-link provider."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr,
        base_url: str,
        timeout: float = 10.0,
        link_ttl_hours: int = 24,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not secret_value:
            raise ValueError("Payment gateway API key must be provided")

        self._api_key = secret_value
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._link_ttl_hours = link_ttl_hours
        self._transport = transport

    def create_payment_link(self, amount: float, description: str) -> PaymentLink:
        body = {
            "amount": round(amount, 2),
            "description": description,
            "expires_in_hours": self._link_ttl_hours,
        }
        payload = self.request(
            "POST",
            "/payment-links",
            json_body=body,
            headers={"Idempotency-Key": uuid.uuid4().hex},
        )
        try:
            return PaymentLink(
                id=payload["id"],
                url=payload["url"],
                code=payload["code"],
                amount=payload.get("amount", amount),
                description=payload.get("description", description),
                expires_at=payload["expires_at"],
                status=payload.get("status", PaymentStatus.PENDING.value),
            )
        except (KeyError, PydanticValidationError) as exc:
            logger.error("Unexpected payment link payload: %s", payload)
            raise ExternalServiceError(SERVICE_NAME, "malformed payment link response") from exc

    def check_status(self, payment_id: str) -> PaymentStatus:
        if not payment_id:
            raise ValueError("payment_id must be provided")
        payload = self.request("GET", f"/payments/{payment_id}")
        try:
            return PaymentStatus(payload["status"])
        except (KeyError, ValueError) as exc:
            raise ExternalServiceError(SERVICE_NAME, "malformed payment status response") from exc

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        headers: Dict[str, str] | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        with httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json", "Authorization": f"Bearer {self._api_key}"},
        ) as client:
            try:
                response = client.request(method, url, json=json_body, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                logger.error(
                    "Payment gateway error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                raise ExternalServiceError(
                    SERVICE_NAME, f"responded with status {status}", status_code=status
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Payment gateway request failure for %s %s: %s", method, path, str(exc))
                raise ExternalServiceError(SERVICE_NAME, "unreachable") from exc

        try:
            return cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from payment gateway for %s %s", method, path)
            raise ExternalServiceError(SERVICE_NAME, "malformed JSON response") from exc


class FakePaymentGateway:
    """In-memory stub for tests and deployments without a payment provider."""

    def __init__(
        self,
        *,
        link_ttl_hours: int = 24,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._link_ttl_hours = link_ttl_hours
        self._clock = clock
        self._calls: list[dict[str, Any]] = []
        self._errors: dict[str, ExternalServiceError] = {}
        self._links: dict[str, PaymentLink] = {}

    @property
    def calls(self) -> list[dict[str, Any]]:
        return list(self._calls)

    def set_error(self, method: str, error: ExternalServiceError) -> None:
        """Inject a method-specific error for deterministic failure testing."""
        self._errors[method] = error

    def clear_errors(self) -> None:
        self._errors.clear()

    def _raise_if_injected(self, method: str) -> None:
        error = self._errors.get(method)
        if error is not None:
            raise error

    def create_payment_link(self, amount: float, description: str) -> PaymentLink:
        self._calls.append(
            {"method": "create_payment_link", "amount": amount, "description": description}
        )
        self._raise_if_injected("create_payment_link")
        link_id = f"fake_pay_{uuid.uuid4().hex[:12]}"
        link = PaymentLink(
            id=link_id,
            url=f"https://payments.example.com/pay/{link_id}",
            code=uuid.uuid4().hex[:8].upper(),
            amount=amount,
            description=description,
            expires_at=self._clock() + timedelta(hours=self._link_ttl_hours),
        )
        self._links[link_id] = link
        return link

    def set_status(self, payment_id: str, status: PaymentStatus) -> None:
        link = self._links.get(payment_id)
        if link is None:
            raise NotFoundError(f"Payment {payment_id} not found", code="PAYMENT_NOT_FOUND")
        self._links[payment_id] = link.model_copy(update={"status": status})

    def check_status(self, payment_id: str) -> PaymentStatus:
        self._calls.append({"method": "check_status", "payment_id": payment_id})
        self._raise_if_injected("check_status")
        link = self._links.get(payment_id)
        if link is None:
            raise NotFoundError(f"Payment {payment_id} not found", code="PAYMENT_NOT_FOUND")
        if link.status is PaymentStatus.PENDING and self._clock() > link.expires_at:
            return PaymentStatus.EXPIRED
        return link.status
