"""Webhook authenticity checks for provider notifications."""
from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Optional

from ..errors import AuthenticationError

logger = logging.getLogger("billing")


def compute_signature(raw_body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA512 of ``raw_body`` keyed with ``secret``."""

    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha512).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: Optional[str]) -> None:
    """Raise :class:`AuthenticationError` unless ``signature`` signs ``raw_body``.

    The digest is computed over the bytes exactly as received. Parsing and
    re-serializing the body would not reproduce the provider's input.
    """

    if not secret:
        logger.error("Webhook received but no provider secret is configured")
        raise AuthenticationError("Invalid signature")
    if not signature:
        logger.warning("Webhook rejected: signature header missing")
        raise AuthenticationError("Invalid signature")

    expected = compute_signature(raw_body, secret)
    if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
        logger.warning("Webhook rejected: signature mismatch (%d byte body)", len(raw_body))
        raise AuthenticationError("Invalid signature")


__all__ = ["compute_signature", "verify_signature"]
