"""Payment processor client used by the reward escrow.

The escrow talks to the processor through the narrow :class:`PaymentProcessor`
protocol: capture funds when a rewarded post is published, pay them out to the
chosen critique author, and look a capture up again for reconciliation.
:class:`HttpPaymentProcessor` is the production implementation; it wraps an
``httpx.AsyncClient`` and never retries on its own.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from redpen.core.settings import settings

# Configure logger for this module
logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_CREATED = 201
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_SERVER_ERROR = 500


class PaymentError(RuntimeError):
    """Base exception raised for payment processor failures."""


class PaymentDisabledError(PaymentError):
    """Raised when a payment is attempted without a configured processor."""


class PaymentResponseError(PaymentError):
    """Raised when the processor accepted a request but its reply is unreadable.

    Money may have moved, so callers treat this as needing reconciliation.
    """


@dataclass(frozen=True)
class CaptureResult:
    """Funds held by the processor on behalf of a post author."""

    reference: str
    amount: int


@dataclass(frozen=True)
class PayoutResult:
    """Confirmation that held funds were released to a user."""

    reference: str
    amount: int
    destination_user_id: int


@dataclass(frozen=True)
class PaymentRecord:
    """Processor-side view of a capture, used for reconciliation."""

    reference: str
    status: str
    amount: int
    metadata: Mapping[str, str] = field(default_factory=dict)


class PaymentProcessor(Protocol):
    """Capabilities the escrow needs from an external payment processor."""

    async def capture(
        self,
        amount: int,
        method_token: str,
        metadata: Mapping[str, str],
    ) -> CaptureResult: ...

    async def payout(
        self,
        reference: str,
        amount: int,
        destination_user_id: int,
        *,
        idempotency_key: str,
    ) -> PayoutResult: ...

    async def retrieve(self, reference: str) -> PaymentRecord | None: ...


@dataclass(frozen=True)
class PaymentConfig:
    """Immutable configuration for processor calls."""

    base_url: str | None
    api_key: str | None
    timeout_seconds: float

    @property
    def enabled(self) -> bool:
        return bool(self.base_url)


def load_payment_config() -> PaymentConfig:
    """Build configuration object from global settings."""
    return PaymentConfig(
        base_url=settings.payment_base_url,
        api_key=settings.payment_api_key,
        timeout_seconds=float(settings.payment_timeout_seconds),
    )


class HttpPaymentProcessor:
    """HTTP client wrapper for the payment processor API."""

    def __init__(
        self,
        config: PaymentConfig | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or load_payment_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise PaymentDisabledError("Payment processor is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url or "",
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    transport=self._transport,
                )
        return self._client

    def _build_headers(self, *, idempotency_key: str | None = None) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"
        if idempotency_key:
            headers["Idempotency-Key"] = idempotency_key
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_data: Any | None = None,
        idempotency_key: str | None = None,
    ) -> httpx.Response:
        client = await self._ensure_client()
        try:
            response = await client.request(
                method,
                path,
                json=json_data,
                headers=self._build_headers(idempotency_key=idempotency_key),
            )
        except httpx.HTTPError as exc:
            raise PaymentError(f"Payment request failed: {exc}") from exc

        if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
            raise PaymentError(f"Payment processor responded with {response.status_code}")
        return response

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"status {response.status_code}"
        if isinstance(body, dict):
            return str(body.get("error") or body.get("message") or response.status_code)
        return f"status {response.status_code}"

    @staticmethod
    def _json_object(response: httpx.Response) -> dict[str, Any]:
        body = response.json()
        if not isinstance(body, dict):
            raise TypeError(f"expected a JSON object, got {type(body).__name__}")
        return body

    async def capture(
        self,
        amount: int,
        method_token: str,
        metadata: Mapping[str, str],
    ) -> CaptureResult:
        """Capture ``amount`` minor units using the client's payment method."""
        response = await self._request(
            "POST",
            "/v1/captures",
            json_data={
                "amount": amount,
                "payment_method": method_token,
                "metadata": dict(metadata),
            },
        )
        if response.status_code not in (HTTP_OK, HTTP_CREATED):
            raise PaymentError(f"Capture declined: {self._error_reason(response)}")

        try:
            body = self._json_object(response)
            reference = body.get("id")
            captured = int(body.get("amount", amount))
        except (ValueError, TypeError, AttributeError) as exc:
            raise PaymentResponseError(f"Unreadable capture response: {exc}") from exc
        if not reference:
            raise PaymentResponseError("Capture response did not include a reference")
        return CaptureResult(reference=str(reference), amount=captured)

    async def payout(
        self,
        reference: str,
        amount: int,
        destination_user_id: int,
        *,
        idempotency_key: str,
    ) -> PayoutResult:
        """Release held funds for ``reference`` to a user's payout destination."""
        response = await self._request(
            "POST",
            f"/v1/captures/{reference}/payouts",
            json_data={
                "amount": amount,
                "destination_user_id": destination_user_id,
            },
            idempotency_key=idempotency_key,
        )
        if response.status_code not in (HTTP_OK, HTTP_CREATED):
            raise PaymentError(f"Payout rejected: {self._error_reason(response)}")
        return PayoutResult(
            reference=reference,
            amount=amount,
            destination_user_id=destination_user_id,
        )

    async def retrieve(self, reference: str) -> PaymentRecord | None:
        """Return the processor's record for ``reference`` or None if unknown."""
        response = await self._request("GET", f"/v1/captures/{reference}")
        if response.status_code == HTTP_NOT_FOUND:
            return None
        if response.status_code != HTTP_OK:
            raise PaymentError(
                f"Unexpected processor response ({response.status_code}) for {reference}",
            )
        try:
            body = self._json_object(response)
            metadata = body.get("metadata") or {}
            return PaymentRecord(
                reference=str(body.get("id", reference)),
                status=str(body.get("status", "unknown")),
                amount=int(body.get("amount", 0)),
                metadata={str(key): str(value) for key, value in metadata.items()},
            )
        except (ValueError, TypeError, AttributeError) as exc:
            raise PaymentError(f"Unreadable payment record for {reference}: {exc}") from exc

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""
        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None


class _PaymentProcessorSingleton:
    """Singleton wrapper for HttpPaymentProcessor."""

    _instance: HttpPaymentProcessor | None = None

    @classmethod
    def get_instance(cls) -> HttpPaymentProcessor:
        """Get or create the singleton processor instance."""
        if cls._instance is None:
            cls._instance = HttpPaymentProcessor()
        return cls._instance


def get_payment_processor() -> HttpPaymentProcessor:
    """Return the shared payment processor client."""
    return _PaymentProcessorSingleton.get_instance()
