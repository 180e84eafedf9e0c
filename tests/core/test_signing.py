"""
Tests for payload signing.
"""

import base64
import hashlib
import hmac

from core.signing import sign_payload, verify_payload


class TestSigning:
    """Tests for HMAC-SHA256 signing."""

    def test_matches_hmac_sha256_base64(self):
        payload = b'[{"id":"PollCount","type":"counter","delta":1}]'
        expected = base64.b64encode(
            hmac.new(b"secret", payload, hashlib.sha256).digest()
        ).decode()

        assert sign_payload(payload, "secret") == expected

    def test_verify_accepts_own_signature(self):
        signature = sign_payload(b"body", "secret")
        assert verify_payload(b"body", "secret", signature)

    def test_verify_rejects_other_key(self):
        signature = sign_payload(b"body", "secret")
        assert not verify_payload(b"body", "other", signature)

    def test_verify_rejects_tampered_body(self):
        signature = sign_payload(b"body", "secret")
        assert not verify_payload(b"body!", "secret", signature)
