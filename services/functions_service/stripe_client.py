"""
Stripe REST client for subscription checkout and webhook verification.

Provides async methods for:
- Creating subscription checkout sessions
- Retrieving a checkout session with its line items, customer and subscription
- Verifying ``Stripe-Signature`` headers on webhook payloads
"""

import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from libs.common.config import get_settings
from libs.common.errors import (
    AuthenticationError,
    FieldValidationError,
    ProviderError,
    TransportError,
)
from libs.common.logging import get_logger

logger = get_logger(__name__)

STRIPE_BASE_URL = "https://api.stripe.com/v1"
SIGNATURE_TOLERANCE_SECONDS = 300


@dataclass
class CheckoutSession:
    """Subset of a Stripe checkout session used by account provisioning."""

    id: str
    url: Optional[str] = None
    payment_status: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    customer_email: Optional[str] = None
    customer_name: Optional[str] = None
    price_id: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    customer_details: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, data: dict) -> "CheckoutSession":
        details = data.get("customer_details") or {}
        line_items = (data.get("line_items") or {}).get("data") or []
        price = (line_items[0].get("price") or {}) if line_items else {}
        return cls(
            id=data["id"],
            url=data.get("url"),
            payment_status=data.get("payment_status"),
            customer_id=_object_id(data.get("customer")),
            subscription_id=_object_id(data.get("subscription")),
            customer_email=details.get("email") or data.get("customer_email"),
            customer_name=details.get("name"),
            price_id=price.get("id") if isinstance(price, dict) else price,
            metadata=dict(data.get("metadata") or {}),
            customer_details=details,
        )


@dataclass
class WebhookEvent:
    id: str
    type: str
    object: dict[str, Any]
    created: Optional[int] = None


def _object_id(value: Any) -> Optional[str]:
    """Stripe returns either an id or the expanded object."""
    if isinstance(value, dict):
        return value.get("id")
    return value


def encode_form(data: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Flatten nested dicts and lists into Stripe's bracketed form fields."""
    pairs: list[tuple[str, str]] = []
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else str(key)
        if value is None:
            continue
        if isinstance(value, dict):
            pairs.extend(encode_form(value, name))
        elif isinstance(value, (list, tuple)):
            for index, item in enumerate(value):
                if isinstance(item, dict):
                    pairs.extend(encode_form(item, f"{name}[{index}]"))
                else:
                    pairs.append((f"{name}[{index}]", str(item)))
        elif isinstance(value, bool):
            pairs.append((name, "true" if value else "false"))
        else:
            pairs.append((name, str(value)))
    return pairs


def verify_signature(
    payload: bytes,
    header: Optional[str],
    secret: str,
    *,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: Optional[float] = None,
) -> None:
    """
    Check a ``Stripe-Signature`` header (``t=...,v1=...``) against the raw body.

    Raises ``AuthenticationError`` when the header is missing, malformed,
    outside the tolerance window, or no ``v1`` signature matches.
    """
    if not header:
        raise AuthenticationError("Missing Stripe-Signature header")

    timestamp: Optional[int] = None
    signatures: list[str] = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise AuthenticationError("Malformed Stripe-Signature timestamp") from None
        elif key == "v1":
            signatures.append(value)
    if timestamp is None or not signatures:
        raise AuthenticationError("Malformed Stripe-Signature header")

    current = time.time() if now is None else now
    if abs(current - timestamp) > tolerance:
        raise AuthenticationError("Stripe signature timestamp outside tolerance")

    signed = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise AuthenticationError("Invalid Stripe signature")


def sign_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a ``Stripe-Signature`` header value for ``payload``."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.".encode("utf-8") + payload
    digest = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


class StripeClient:
    """Async client for the Stripe Checkout API."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        if secret_key is None:
            settings.require("STRIPE_SECRET_KEY")
        self.secret_key = secret_key or settings.STRIPE_SECRET_KEY
        self.webhook_secret = webhook_secret or settings.STRIPE_WEBHOOK_SECRET
        self._headers = {"Authorization": f"Bearer {self.secret_key}"}
        self._transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[list[tuple[str, str]]] = None,
        form: Optional[dict[str, Any]] = None,
    ) -> dict:
        """Make an async request to the Stripe API."""
        try:
            async with httpx.AsyncClient(
                base_url=STRIPE_BASE_URL, timeout=30.0, transport=self._transport
            ) as client:
                response = await client.request(
                    method,
                    endpoint,
                    headers=self._headers,
                    params=params,
                    data=dict(encode_form(form)) if form else None,
                )
        except httpx.TransportError as exc:
            logger.error(f"Stripe unreachable: {exc}")
            raise TransportError(f"Payment provider unreachable: {exc}") from exc

        try:
            data = response.json()
        except ValueError:
            data = {"error": {"message": response.text}}

        if not response.is_success:
            logger.error(f"Stripe API error: {response.status_code} - {data}")
            error = data.get("error") or {}
            raise ProviderError(
                error.get("message", "Unknown Stripe error"),
                provider="stripe",
                status_code=response.status_code,
                response_data=data,
            )
        return data

    # =========================================================================
    # Checkout
    # =========================================================================

    async def create_checkout_session(
        self,
        price_id: str,
        plan_name: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        data = await self._request(
            "POST",
            "/checkout/sessions",
            form={
                "mode": "subscription",
                "payment_method_types": ["card"],
                "line_items": [{"price": price_id, "quantity": 1}],
                "success_url": success_url,
                "cancel_url": cancel_url,
                "metadata": {"plan_name": plan_name},
                "subscription_data": {"metadata": {"plan_name": plan_name}},
                "billing_address_collection": "required",
            },
        )
        session = CheckoutSession.from_api(data)
        logger.info(
            f"Checkout session created: {session.id}",
            extra={"extra_fields": {"plan_name": plan_name}},
        )
        return session

    async def retrieve_checkout_session(self, session_id: str) -> CheckoutSession:
        data = await self._request(
            "GET",
            f"/checkout/sessions/{session_id}",
            params=[
                ("expand[]", "line_items"),
                ("expand[]", "customer"),
                ("expand[]", "subscription"),
            ],
        )
        return CheckoutSession.from_api(data)

    # =========================================================================
    # Webhooks
    # =========================================================================

    def construct_event(self, payload: bytes, signature: Optional[str]) -> WebhookEvent:
        if not self.webhook_secret:
            get_settings().require("STRIPE_WEBHOOK_SECRET")
        verify_signature(payload, signature, self.webhook_secret)
        try:
            body = json.loads(payload.decode("utf-8"))
            return WebhookEvent(
                id=body["id"],
                type=body["type"],
                object=body["data"]["object"],
                created=body.get("created"),
            )
        except (ValueError, KeyError, TypeError) as exc:
            raise FieldValidationError(
                f"Malformed webhook payload: {exc}", field="payload"
            ) from exc
