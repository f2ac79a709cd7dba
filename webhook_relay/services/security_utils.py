from __future__ import annotations

import hashlib
import hmac

SIGNATURE_PREFIX = "sha256="


def compute_signature(payload: bytes, secret: str) -> str:
    digest = hmac.new(
        key=secret.encode("utf-8"),
        msg=payload,
        digestmod=hashlib.sha256,
    ).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(payload: bytes, signature: str | None, secret: str) -> bool:
    """Check an ``x-hub-signature-256`` style header against ``payload``.

    The caller decides whether verification applies at all; an empty
    ``secret`` here is hashed like any other value.
    """
    if not signature:
        return False

    expected = compute_signature(payload, secret)
    if len(expected) != len(signature):
        return False

    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def tokens_match(provided: str | None, expected: str) -> bool:
    if provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def extract_bearer_token(authorization: str | None) -> str:
    if not authorization:
        return ""
    if authorization.startswith("Bearer "):
        return authorization[len("Bearer "):]
    return authorization
