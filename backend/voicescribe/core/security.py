# voicescribe/core/security.py
"""
Security module for the WhatsApp webhook.
Handles the Meta verification handshake and X-Hub-Signature-256 payload signatures.
"""
import hashlib
import hmac
from typing import Optional

SIGNATURE_PREFIX = "sha256="


def compute_signature(body: bytes, app_secret: str) -> str:
    """
    Compute the header value Meta sends for a payload.

    Args:
        body: Raw request body, exactly as received
        app_secret: WhatsApp app secret

    Returns:
        "sha256=<hex digest>"
    """
    digest = hmac.new(app_secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify_signature(body: bytes, signature: Optional[str], app_secret: Optional[str]) -> bool:
    """
    Check a webhook payload signature.

    Returns True when no app secret is configured (development mode) or the
    signature matches; False when the header is missing or wrong. The
    comparison is constant-time.
    """
    if not app_secret:
        return True
    if not signature:
        return False
    return hmac.compare_digest(signature.encode("utf-8"), compute_signature(body, app_secret).encode("utf-8"))


def verify_subscription(mode: Optional[str], token: Optional[str], verify_token: Optional[str]) -> bool:
    """
    Meta webhook verification handshake (GET /webhook).
    Rejects everything while no verify token is configured.
    """
    return mode == "subscribe" and bool(verify_token) and token == verify_token
