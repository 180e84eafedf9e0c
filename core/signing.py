"""
Core Module - Payload Signing.

HMAC-SHA256 over the uncompressed body, base64 encoded, carried
in the HashSHA256 header by both agent and server.
"""

import base64
import hashlib
import hmac


def sign_payload(payload: bytes, key: str) -> str:
    """Base64 HMAC-SHA256 of ``payload``."""
    digest = hmac.new(key.encode(), payload, hashlib.sha256).digest()
    return base64.b64encode(digest).decode()


def verify_payload(payload: bytes, key: str, signature: str) -> bool:
    """Constant-time check of a received signature."""
    return hmac.compare_digest(sign_payload(payload, key), signature.strip())
