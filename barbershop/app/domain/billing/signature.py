"""
Webhook signature verification.

The provider signs the raw request body with HMAC-SHA256 and sends the
hex digest in the x-webhook-signature header.
"""

import hashlib
import hmac
from typing import Optional

SIGNATURE_HEADER = "x-webhook-signature"


def compute_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def verify_signature(raw_body: bytes, signature: Optional[str], secret: str) -> bool:
    """Constant-time comparison of the received signature against the expected one."""
    if not signature:
        return False
    expected = compute_signature(raw_body, secret)
    return hmac.compare_digest(expected.encode("utf-8"), signature.strip().lower().encode("utf-8"))
