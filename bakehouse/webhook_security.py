"""
Webhook Security Module

Signature verification for payment-provider webhooks:
- Constant-time signature comparison
- Timestamp tolerance window against replayed deliveries
- The signed payload is "<timestamp>.<raw body>" (Stripe-Signature scheme)
"""

import hashlib
import hmac
import logging
import time
from typing import Optional

from .errors import SignatureError

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time using hmac.compare_digest"""
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha256(secret: str, payload: bytes) -> str:
    """Compute HMAC-SHA256 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).hexdigest()


def verify_timestamp(
    timestamp: Optional[str], max_age: int = MAX_WEBHOOK_AGE_SECONDS, now: Optional[float] = None
) -> bool:
    """
    Verify webhook timestamp is within the tolerance window.

    Unlike some providers, a signed payment event always carries a timestamp, so a
    missing value is rejected.
    """
    if not timestamp:
        return False

    try:
        webhook_time = int(timestamp)
    except (ValueError, TypeError):
        logger.warning(f"🚫 Invalid webhook timestamp format: {timestamp}")
        return False

    current_time = int(now if now is not None else time.time())
    age = abs(current_time - webhook_time)
    if age > max_age:
        logger.warning(f"🚫 Webhook timestamp outside tolerance: {age}s (max: {max_age}s)")
        return False
    return True


def parse_signature_header(header: str) -> tuple[Optional[str], list[str]]:
    """Split "t=1700000000,v1=abc,v1=def" into the timestamp and the v1 signatures"""
    timestamp = None
    signatures = []
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1" and value:
            signatures.append(value)
    return timestamp, signatures


def sign_payload(secret: str, payload: bytes, timestamp: int) -> str:
    """Build a signature header for ``payload``; used by tests and local tooling"""
    signed = f"{timestamp}.".encode("utf-8") + payload
    return f"t={timestamp},v1={compute_hmac_sha256(secret, signed)}"


def verify_stripe_signature(
    payload: bytes,
    header: Optional[str],
    secret: Optional[str],
    tolerance: int = MAX_WEBHOOK_AGE_SECONDS,
    now: Optional[float] = None,
) -> None:
    """
    Verify a Stripe-Signature header against the raw request body.

    Raises:
        SignatureError: if the secret is missing, the header is malformed, the timestamp
            is outside the tolerance window, or no signature matches.
    """
    if not secret:
        logger.error("❌ Webhook secret not configured - rejecting delivery")
        raise SignatureError("Webhook secret not configured")

    if not header:
        logger.warning("🚫 Missing webhook signature header")
        raise SignatureError("Missing signature header")

    timestamp, signatures = parse_signature_header(header)
    if not timestamp or not signatures:
        logger.warning("🚫 Malformed webhook signature header")
        raise SignatureError("Invalid signature header")

    if not verify_timestamp(timestamp, tolerance, now=now):
        raise SignatureError("Webhook timestamp outside tolerance")

    expected = compute_hmac_sha256(secret, f"{timestamp}.".encode("utf-8") + payload)
    if not any(constant_time_compare(expected, sig) for sig in signatures):
        logger.warning("🚫 Webhook signature mismatch")
        raise SignatureError("Invalid signature")

    logger.info("✅ Webhook signature verified")
