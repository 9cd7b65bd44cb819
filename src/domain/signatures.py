from __future__ import annotations

import hashlib
import hmac


SIGNATURE_HEADER = "x-passslot-signature"
SIGNATURE_PREFIX = "sha1="


def compute_signature(secret: str, raw_body: bytes) -> str:
    """HMAC-SHA1 of the raw request body, formatted as `sha1=<hex>`."""
    digest = hmac.new(secret.encode(), raw_body, hashlib.sha1).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(secret: str, raw_body: bytes, supplied_signature: str | None) -> bool:
    if not secret or not supplied_signature:
        return False
    computed = compute_signature(secret, raw_body)
    return hmac.compare_digest(computed.encode(), supplied_signature.encode())
