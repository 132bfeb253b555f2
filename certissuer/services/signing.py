"""Certificate signatures and verification tokens.

A signature is an HMAC-SHA256 over the JSON encoding of the canonical
payload. The payload keys are emitted in a fixed order (``templateId``,
``data``, ``certificateNumber``, ``customerId``) with compact separators, so
a stored certificate always re-serializes to the same bytes. Changing that
order or the separators invalidates every signature already issued.
"""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import logging
import secrets
import time
import uuid
from typing import Any

logger = logging.getLogger(__name__)

CERTIFICATE_PREFIX = "CERT"
_BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
_RANDOM_SUFFIX_LENGTH = 6


def to_base36(value: int) -> str:
    """Encode a non-negative integer in upper-case base 36."""
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_certificate_number(now_ms: int | None = None) -> str:
    """Mint ``CERT-<base36 epoch ms>-<6 random base36 chars>``.

    Uniqueness is probabilistic; the database constraint is the backstop.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    suffix = "".join(
        secrets.choice(_BASE36_ALPHABET) for _ in range(_RANDOM_SUFFIX_LENGTH)
    )
    return f"{CERTIFICATE_PREFIX}-{to_base36(now_ms)}-{suffix}"


def canonical_payload(
    template_id: uuid.UUID | str,
    data: dict[str, Any],
    certificate_number: str,
    customer_id: uuid.UUID | str,
) -> dict[str, Any]:
    """Build the signed payload; key order is part of the signature."""
    return {
        "templateId": str(template_id),
        "data": data,
        "certificateNumber": certificate_number,
        "customerId": str(customer_id),
    }


def serialize_payload(payload: dict[str, Any]) -> bytes:
    return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode(
        "utf-8"
    )


class CertificateSigner:
    """HMAC-SHA256 signer keyed with the process secret."""

    def __init__(self, secret: str):
        if not secret:
            raise ValueError("a signing secret is required")
        self._key = secret.encode("utf-8")

    def sign(self, payload: dict[str, Any]) -> str:
        body = serialize_payload(payload)
        return hmac.new(self._key, body, hashlib.sha256).hexdigest()

    def verify(self, payload: dict[str, Any], signature: str | None) -> bool:
        """Recompute and compare; any failure means the certificate is invalid."""
        if not signature:
            return False
        try:
            expected = self.sign(payload)
        except (TypeError, ValueError):
            logger.warning("Could not serialize certificate payload for verification")
            return False
        return hmac.compare_digest(expected, signature)


def make_verification_token(certificate_number: str, signature: str) -> str:
    """Reversible, URL-safe reference to a certificate. Not a secret."""
    raw = f"{certificate_number}:{signature}".encode()
    return base64.urlsafe_b64encode(raw).decode("ascii")


def parse_verification_token(token: str) -> tuple[str, str] | None:
    """Return ``(certificate_number, signature)`` or ``None`` if malformed."""
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        return None
    number, sep, signature = raw.partition(":")
    if not sep or not number or not signature:
        return None
    return number, signature
