"""
HMAC-SHA256 helpers for Zoom webhook authentication.

Zoom signs every event as ``v0=`` + hex(HMAC_SHA256(secret,
"v0:{x-zm-request-timestamp}:{raw body}")) and proves endpoint ownership by
asking us to HMAC a ``plainToken`` with the same secret. Both digests are
computed over exact bytes; the body must never be re-serialized first.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_VERSION = "v0"

__all__ = [
    "SIGNATURE_VERSION",
    "compute_signature",
    "verify_signature",
    "compute_encrypted_token",
]


def _hmac_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _as_bytes(value: str | bytes) -> bytes:
    return value if isinstance(value, bytes) else value.encode("utf-8")


def compute_signature(secret: str, timestamp: str | bytes, raw_body: bytes) -> str:
    """
    Build the signature Zoom sends in ``x-zm-signature``.

    Args:
        secret: Webhook secret token of the Zoom app.
        timestamp: Value of ``x-zm-request-timestamp``.
        raw_body: Request body exactly as received.
    """
    message = b"%s:%s:%s" % (SIGNATURE_VERSION.encode(), _as_bytes(timestamp), raw_body)
    return f"{SIGNATURE_VERSION}={_hmac_hex(secret, message)}"


def verify_signature(
    secret: str,
    timestamp: str | None,
    raw_body: bytes,
    signature: str | None,
) -> bool:
    """
    Check a request signature in constant time.

    Missing timestamp or signature fails immediately without hashing.
    """
    if not timestamp or not signature:
        return False
    expected = compute_signature(secret, timestamp, raw_body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def compute_encrypted_token(secret: str, plain_token: str) -> str:
    """Answer for the ``endpoint.url_validation`` challenge."""
    return _hmac_hex(secret, plain_token.encode("utf-8"))
