"""
Webhook security utilities.

Signs outgoing webhook payloads so the receiver can authenticate them.
"""

import hashlib
import hmac
import time
from typing import Dict, Optional

SIGNATURE_HEADER = "X-Relay-Signature-256"
TIMESTAMP_HEADER = "X-Relay-Timestamp"


class WebhookSecurity:
    """Handles webhook signing operations."""

    @staticmethod
    def generate_signature(payload: str, secret: str) -> str:
        """
        Generate an HMAC-SHA256 signature for a webhook payload.

        The timestamp header value is prefixed to the payload so a captured
        request cannot be replayed with a fresh timestamp.

        Returns:
            Hex-encoded signature
        """
        return hmac.new(secret.encode('utf-8'), payload.encode('utf-8'), hashlib.sha256).hexdigest()

    @staticmethod
    def signed_content(payload: str, timestamp: str) -> str:
        return f"{timestamp}.{payload}"

    @staticmethod
    def verify_signature(payload: str, signature_header: str, secret: str, timestamp: str) -> bool:
        """
        Verify a signature header produced by ``create_signature_headers``.

        Returns:
            True if signature is valid
        """
        algorithm, _, signature = signature_header.partition('=')
        if algorithm != 'sha256' or not signature:
            return False
        expected = WebhookSecurity.generate_signature(
            WebhookSecurity.signed_content(payload, timestamp), secret
        )
        return hmac.compare_digest(signature, expected)

    @staticmethod
    def create_signature_headers(payload: str, secret: str, timestamp: Optional[str] = None) -> Dict[str, str]:
        """
        Create signature headers for webhook delivery.

        Args:
            payload: Serialized request body
            secret: Signing secret
            timestamp: Unix timestamp; defaults to now

        Returns:
            Dictionary of headers to include in request
        """
        timestamp = timestamp or str(int(time.time()))
        signature = WebhookSecurity.generate_signature(
            WebhookSecurity.signed_content(payload, timestamp), secret
        )
        return {
            SIGNATURE_HEADER: f"sha256={signature}",
            TIMESTAMP_HEADER: timestamp,
        }
