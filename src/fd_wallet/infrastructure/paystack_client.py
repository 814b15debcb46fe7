"""Paystack payment gateway client (hosted checkout + verification).

Every call is bounded by PAYSTACK_TIMEOUT_SECONDS. Timeouts, transport errors,
non-2xx responses, unparseable bodies and a missing secret key all surface as
PaymentGatewayError — never as a silent success.
"""

import hashlib
import hmac
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx

from config.settings import settings
from src.fd_common.errors import PaymentGatewayError

logger = logging.getLogger(__name__)


@dataclass
class PaymentVerification:
    success: bool
    status: str              # provider status: success / failed / abandoned / ...
    raw: dict[str, Any] = field(default_factory=dict)
    message: str | None = None

    @property
    def is_definitive_failure(self) -> bool:
        return self.status in ("failed", "abandoned", "reversed")


class PaymentGatewayClientProtocol(Protocol):
    async def initialize_payment(
        self, email: str, amount: int, reference: str, user_id: str
    ) -> str:
        """Returns the hosted-checkout redirect URL."""
        ...

    async def verify_payment(self, reference: str) -> PaymentVerification: ...


class PaystackClient:
    def __init__(
        self,
        secret_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        callback_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._secret_key = secret_key if secret_key is not None else settings.PAYSTACK_SECRET_KEY
        self._base_url = base_url or settings.PAYSTACK_BASE_URL
        self._timeout = timeout if timeout is not None else settings.PAYSTACK_TIMEOUT_SECONDS
        self._callback_url = callback_url or settings.PAYSTACK_CALLBACK_URL
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        if not self._secret_key:
            raise PaymentGatewayError("Paystack secret key not configured")
        return httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
            headers={
                "Authorization": f"Bearer {self._secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def _request(
        self, method: str, path: str, payload: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        async with self._client() as client:
            try:
                resp = await client.request(method, path, json=payload)
            except httpx.TimeoutException:
                logger.warning("Paystack %s %s timed out after %ss", method, path, self._timeout)
                raise PaymentGatewayError("request timed out") from None
            except httpx.HTTPError as exc:
                logger.warning("Paystack %s %s failed: %s", method, path, exc)
                raise PaymentGatewayError(str(exc)) from None
        try:
            body: dict[str, Any] = resp.json()
        except ValueError:
            raise PaymentGatewayError("Invalid response from payment gateway") from None
        if resp.status_code >= 400:
            raise PaymentGatewayError(body.get("message") or f"HTTP {resp.status_code}")
        return body

    async def initialize_payment(
        self, email: str, amount: int, reference: str, user_id: str
    ) -> str:
        body = await self._request(
            "POST",
            "/transaction/initialize",
            {
                "email": email,
                "amount": amount,  # Paystack expects kobo already
                "reference": reference,
                "currency": "NGN",
                "callback_url": self._callback_url,
                "metadata": {"userId": user_id, "walletTopup": True},
            },
        )
        url = (body.get("data") or {}).get("authorization_url")
        if not body.get("status") or not url:
            raise PaymentGatewayError(body.get("message") or "Failed to initialize payment")
        return str(url)

    async def verify_payment(self, reference: str) -> PaymentVerification:
        body = await self._request("GET", f"/transaction/verify/{reference}")
        data = body.get("data") or {}
        status = str(data.get("status") or "unknown")
        return PaymentVerification(
            success=bool(body.get("status")) and status == "success",
            status=status,
            raw=data,
            message=body.get("message"),
        )


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret_key: str | None) -> bool:
    """Paystack signs webhook bodies with HMAC-SHA512 of the secret key."""
    if not signature or not secret_key:
        return False
    expected = hmac.new(secret_key.encode(), raw_body, hashlib.sha512).hexdigest()
    return hmac.compare_digest(expected, signature)
