# backend/utils/payment_client.py
import hashlib
import hmac
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urlencode, urljoin

import httpx
from fastapi import Request

from config import Settings
from errors import InvalidInput, SignatureInvalid, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


def _flatten_form(data: Any, prefix: str = "") -> List[Tuple[str, str]]:
    # Stripe expects nested form fields: line_items[0][price_data][currency]=ron
    pairs: List[Tuple[str, str]] = []
    if isinstance(data, dict):
        for key, value in data.items():
            pairs.extend(_flatten_form(value, f"{prefix}[{key}]" if prefix else str(key)))
    elif isinstance(data, (list, tuple)):
        for index, value in enumerate(data):
            pairs.extend(_flatten_form(value, f"{prefix}[{index}]"))
    elif isinstance(data, bool):
        pairs.append((prefix, "true" if data else "false"))
    elif data is not None:
        pairs.append((prefix, str(data)))
    return pairs


def compute_signature(secret: str, timestamp: int, payload: bytes) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def verify_signature(payload: bytes, header_signature: Optional[str], secret: str, tolerance: int,
                     now: Optional[float] = None) -> None:
    """Verifies a webhook signature header of the form ``t=<unix ts>,v1=<hex>[,v1=...]``."""
    if not header_signature:
        raise SignatureInvalid("Missing signature")

    timestamp = None
    candidates = []
    for part in header_signature.split(","):
        key, sep, value = part.strip().partition("=")
        if not sep:
            continue
        if key == "t":
            try:
                timestamp = int(value)
            except ValueError:
                raise SignatureInvalid("Malformed signature header")
        elif key == "v1":
            candidates.append(value)

    if timestamp is None or not candidates:
        raise SignatureInvalid("Malformed signature header")

    now = time.time() if now is None else now
    if tolerance > 0 and abs(now - timestamp) > tolerance:
        raise SignatureInvalid("Signature timestamp outside tolerance")

    expected = compute_signature(secret, timestamp, payload)
    if not any(hmac.compare_digest(expected, candidate) for candidate in candidates):
        raise SignatureInvalid()


class StripeClient:
    """Minimal Stripe Checkout client: hosted sessions out, signed events in."""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        # Initialize configuration and redirect URLs
        self.api_url = settings.STRIPE_API_URL
        self.secret_key = settings.STRIPE_SECRET_KEY.strip()
        self.webhook_secret = settings.STRIPE_WEBHOOK_SECRET.strip()
        self.tolerance = settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS
        self.timeout = settings.HTTP_TIMEOUT_SECONDS
        self.currency = settings.CURRENCY
        self.frontend_url = settings.FRONTEND_URL
        self._transport = transport

    def ensure_configured(self):
        if not self.secret_key:
            raise UpstreamFailure("STRIPE_SECRET_KEY missing")
        if not self.secret_key.startswith("sk_"):
            raise UpstreamFailure("Invalid STRIPE_SECRET_KEY format")

    def _session_payload(self, order, customer_email: str) -> Dict[str, Any]:
        line_items = [
            {
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": item.name},
                    "unit_amount": item.price_cents,
                },
                "quantity": item.quantity,
            }
            for item in order.items
        ]
        if order.shipping_cents > 0:
            line_items.append({
                "price_data": {
                    "currency": self.currency,
                    "product_data": {"name": "Shipping"},
                    "unit_amount": order.shipping_cents,
                },
                "quantity": 1,
            })

        order_id = quote(str(order.id))
        return {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": line_items,
            "customer_email": customer_email,
            "client_reference_id": order.id,
            "metadata": {"orderId": order.id, "userId": order.user_id},
            "success_url": urljoin(self.frontend_url, f"/order-success?orderId={order_id}"),
            "cancel_url": urljoin(self.frontend_url, f"/checkout?canceled=1&orderId={order_id}"),
        }

    async def create_checkout_session(self, order, customer_email: str) -> CheckoutSession:
        self.ensure_configured()
        url = urljoin(self.api_url, "/v1/checkout/sessions")
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Idempotency-Key": f"checkout-{order.id}",
            "Content-Type": "application/x-www-form-urlencoded",
        }
        form = urlencode(_flatten_form(self._session_payload(order, customer_email)))

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(url, content=form, headers=headers)
                response.raise_for_status()
                body = response.json()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                # Log detailed error information before translating it
                resp_text = e.response.text if isinstance(e, httpx.HTTPStatusError) else str(e)
                logger.error("Stripe create session error for order %s: %s", order.id, resp_text)
                raise UpstreamFailure("Failed to create Stripe session", details=resp_text) from e
            except ValueError as e:
                logger.error("Stripe returned a non-JSON body for order %s", order.id)
                raise UpstreamFailure("Failed to create Stripe session", details="Invalid JSON response") from e

        session_id, session_url = body.get("id"), body.get("url")
        if not session_id or not session_url:
            logger.error("Stripe returned an incomplete session for order %s: %s", order.id, body)
            raise UpstreamFailure("Failed to create Stripe session", details="Incomplete session response")
        return CheckoutSession(id=str(session_id), url=str(session_url))

    def construct_event(self, payload: bytes, header_signature: Optional[str]) -> Dict[str, Any]:
        if not self.webhook_secret:
            raise UpstreamFailure("STRIPE_WEBHOOK_SECRET missing")

        verify_signature(payload, header_signature, self.webhook_secret, self.tolerance)

        try:
            event = json.loads(payload)
        except (UnicodeDecodeError, ValueError):
            raise InvalidInput("Malformed webhook payload")
        if not isinstance(event, dict) or not isinstance(event.get("type"), str):
            raise InvalidInput("Malformed webhook payload")
        return event


def get_payment_client(request: Request) -> StripeClient:
    return request.app.state.payment_client
