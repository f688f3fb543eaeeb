"""HMAC-SHA256 helpers shared by the signing gateways."""

import hashlib
import hmac


def sign(secret: str, message: bytes | str) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def payment_signature(secret: str, gateway_order_id: str, payment_id: str) -> str:
    return sign(secret, f"{gateway_order_id}|{payment_id}")


def signatures_match(expected: str, supplied: str | None) -> bool:
    """Constant-time comparison; an absent signature never matches."""
    if not supplied:
        return False
    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
