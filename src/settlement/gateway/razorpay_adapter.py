"""Razorpay payment gateway adapter.

Creates Razorpay orders over the REST API and verifies the
``razorpay_signature`` returned to the checkout page, as well as the
``X-Razorpay-Signature`` header on webhooks.
"""

import os
from decimal import Decimal

import requests
import structlog

from settlement.errors import PaymentGatewayError
from settlement.gateway.port import PaymentGateway, PaymentIntent, to_minor_units
from settlement.gateway.signing import payment_signature, sign, signatures_match

logger = structlog.get_logger(__name__)

RAZORPAY_API_BASE = "https://api.razorpay.com/v1"
DEFAULT_TIMEOUT_SECONDS = 10.0


class RazorpayGateway(PaymentGateway):
    name = "razorpay"
    requires_confirmation = True

    def __init__(
        self,
        key_id: str | None,
        key_secret: str | None,
        webhook_secret: str | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: requests.Session | None = None,
        api_base: str = RAZORPAY_API_BASE,
    ) -> None:
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self.api_base = api_base

    @classmethod
    def from_env(cls) -> "RazorpayGateway":
        return cls(
            key_id=os.getenv("RAZORPAY_KEY_ID"),
            key_secret=os.getenv("RAZORPAY_KEY_SECRET"),
            webhook_secret=os.getenv("RAZORPAY_WEBHOOK_SECRET"),
            timeout=float(os.getenv("GATEWAY_TIMEOUT_SECONDS", DEFAULT_TIMEOUT_SECONDS)),
        )

    @property
    def public_key(self) -> str | None:
        return self.key_id

    def _require_credentials(self) -> None:
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError("Razorpay is not configured: RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are required")

    def create_intent(self, amount: Decimal, currency: str, receipt: str) -> PaymentIntent:
        self._require_credentials()
        payload = {
            "amount": to_minor_units(amount),
            "currency": currency,
            "receipt": receipt,
            "payment_capture": 1,
        }
        try:
            response = self.session.post(
                f"{self.api_base}/orders",
                json=payload,
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.Timeout as exc:
            logger.warning("Razorpay order creation timed out", receipt=receipt, timeout=self.timeout)
            raise PaymentGatewayError(f"Razorpay did not respond within {self.timeout}s") from exc
        except requests.RequestException as exc:
            logger.error("Razorpay order creation failed", receipt=receipt, error=str(exc))
            raise PaymentGatewayError(f"Razorpay order creation failed: {exc}") from exc

        body = response.json()
        return PaymentIntent(
            gateway=self.name,
            gateway_order_id=body["id"],
            amount_minor=body.get("amount", payload["amount"]),
            currency=body.get("currency", currency),
            receipt=receipt,
            key_id=self.key_id,
            status=body.get("status"),
        )

    def verify_payment_signature(self, gateway_order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret:
            logger.error("Razorpay secret not configured; rejecting payment signature")
            return False
        expected = payment_signature(self.key_secret, gateway_order_id, payment_id)
        return signatures_match(expected, signature)

    def verify_webhook_signature(self, payload: bytes | str, signature: str) -> bool:
        # A dedicated webhook secret is preferred; the API secret is the fallback.
        secret = self.webhook_secret or self.key_secret
        if not secret:
            logger.error("Razorpay webhook secret not configured; rejecting webhook")
            return False
        return signatures_match(sign(secret, payload), signature)
