"""
Billing provider gateway.

BillingGateway is the capability the payment flow depends on; the
AbacatePay client is its production binding over httpx.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

import httpx

from barbershop.app.core.config import settings
from barbershop.app.core.exceptions import PaymentProviderError
from barbershop.app.core.reliability import CircuitBreaker, CircuitOpenError

logger = logging.getLogger("barbershop.gateway")


@dataclass
class BillingCustomer:
    name: str
    email: Optional[str] = None
    cellphone: Optional[str] = None


@dataclass
class CreateBillingRequest:
    external_id: str
    name: str
    amount_cents: int
    customer: BillingCustomer
    metadata: Dict[str, str] = field(default_factory=dict)
    methods: List[str] = field(default_factory=lambda: ["PIX"])
    frequency: str = "ONE_TIME"


@dataclass
class CreateSubscriptionRequest:
    external_id: str
    name: str
    amount_cents: int
    customer: BillingCustomer
    metadata: Dict[str, str] = field(default_factory=dict)
    methods: List[str] = field(default_factory=lambda: ["PIX"])
    frequency: str = "MONTHLY"


@dataclass
class BillingResult:
    id: str
    status: Optional[str] = None
    url: Optional[str] = None
    pix_code: Optional[str] = None
    qr_code: Optional[str] = None
    expires_at: Optional[datetime] = None
    paid_amount_cents: Optional[int] = None


@dataclass
class SubscriptionResult:
    id: str
    status: Optional[str] = None


class BillingGateway(ABC):
    """Outbound billing capability consumed by the payment flow."""

    @abstractmethod
    async def create_billing(self, request: CreateBillingRequest) -> BillingResult: ...

    @abstractmethod
    async def get_billing(self, billing_id: str) -> BillingResult: ...

    @abstractmethod
    async def cancel_billing(self, billing_id: str) -> None: ...

    @abstractmethod
    async def create_subscription(self, request: CreateSubscriptionRequest) -> SubscriptionResult: ...

    @abstractmethod
    async def cancel_subscription(self, subscription_id: str) -> None: ...

    @abstractmethod
    async def pause_subscription(self, subscription_id: str) -> None: ...

    @abstractmethod
    async def resume_subscription(self, subscription_id: str) -> None: ...


# Shared across client instances so the breaker sees every provider call
billing_circuit_breaker = CircuitBreaker(
    name="abacatepay",
    failure_threshold=5,
    reset_timeout=30,
    tracked_exceptions=(httpx.HTTPError, PaymentProviderError),
)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def _billing_from_payload(data: Dict[str, Any]) -> BillingResult:
    pix = data.get("pix") or {}
    return BillingResult(
        id=data["id"],
        status=data.get("status"),
        url=data.get("url"),
        pix_code=pix.get("brCode"),
        qr_code=pix.get("qrCodeImage"),
        expires_at=_parse_datetime(pix.get("expiresAt")),
        paid_amount_cents=data.get("paidAmount"),
    )


class AbacatePayClient(BillingGateway):
    """AbacatePay REST client."""

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = settings.abacatepay_base_url,
        timeout: float = settings.abacatepay_timeout_seconds,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        circuit_breaker: CircuitBreaker = billing_circuit_breaker,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.circuit_breaker = circuit_breaker

    async def _send(self, method: str, endpoint: str, payload: Optional[dict]) -> Dict[str, Any]:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout, transport=self._transport
        ) as client:
            response = await client.request(
                method,
                endpoint,
                json=payload,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
            )

        if response.is_error:
            raise PaymentProviderError(f"AbacatePay API error: {response.status_code} - {response.text}")

        if not response.content:
            return {}
        body = response.json()
        # The API wraps results as {"data": ..., "error": ...}
        if isinstance(body, dict) and "data" in body:
            if body.get("error"):
                raise PaymentProviderError(f"AbacatePay API error: {body['error']}")
            return body["data"] or {}
        return body

    async def _request(self, method: str, endpoint: str, payload: Optional[dict] = None) -> Dict[str, Any]:
        if not self.api_key:
            raise PaymentProviderError("ABACATEPAY_API_KEY is not configured")
        try:
            return await self.circuit_breaker.call(self._send, method, endpoint, payload)
        except CircuitOpenError:
            raise PaymentProviderError("Payment provider temporarily unavailable")
        except httpx.HTTPError as exc:
            logger.error("AbacatePay request %s %s failed: %s", method, endpoint, exc)
            raise PaymentProviderError(f"AbacatePay request failed: {exc}")

    async def create_billing(self, request: CreateBillingRequest) -> BillingResult:
        payload = {
            "frequency": request.frequency,
            "methods": request.methods,
            "products": [
                {
                    "externalId": request.external_id,
                    "name": request.name,
                    "quantity": 1,
                    "price": request.amount_cents,
                }
            ],
            "customer": {
                key: value
                for key, value in {
                    "name": request.customer.name,
                    "email": request.customer.email,
                    "cellphone": request.customer.cellphone,
                }.items()
                if value
            },
            "metadata": request.metadata,
        }
        data = await self._request("POST", "/billing/create", payload)
        return _billing_from_payload(data)

    async def get_billing(self, billing_id: str) -> BillingResult:
        data = await self._request("GET", f"/billing/{billing_id}")
        return _billing_from_payload(data)

    async def cancel_billing(self, billing_id: str) -> None:
        await self._request("POST", f"/billing/{billing_id}/cancel")

    async def create_subscription(self, request: CreateSubscriptionRequest) -> SubscriptionResult:
        payload = {
            "frequency": request.frequency,
            "methods": request.methods,
            "products": [
                {
                    "externalId": request.external_id,
                    "name": request.name,
                    "quantity": 1,
                    "price": request.amount_cents,
                }
            ],
            "customer": {"name": request.customer.name, "email": request.customer.email},
            "metadata": request.metadata,
        }
        data = await self._request("POST", "/subscription/create", payload)
        return SubscriptionResult(id=data["id"], status=data.get("status"))

    async def cancel_subscription(self, subscription_id: str) -> None:
        await self._request("POST", f"/subscription/{subscription_id}/cancel")

    async def pause_subscription(self, subscription_id: str) -> None:
        await self._request("POST", f"/subscription/{subscription_id}/pause")

    async def resume_subscription(self, subscription_id: str) -> None:
        await self._request("POST", f"/subscription/{subscription_id}/resume")


_client: Optional[AbacatePayClient] = None


def get_billing_gateway() -> BillingGateway:
    """
    FastAPI dependency returning the configured billing gateway.

    Calls fail with PaymentProviderError while no API key is configured.
    """
    global _client
    if _client is None:
        _client = AbacatePayClient(api_key=settings.abacatepay_api_key)
    return _client
