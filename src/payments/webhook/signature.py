"""Webhook signature verification (MercadoPago ``x-signature`` scheme).

The gateway signs each notification with HMAC-SHA256 over the manifest
``id:{data_id};request-id:{request_id};ts:{ts};`` and sends
``x-signature: ts=<unix>,v1=<hex digest>`` plus ``x-request-id``.
"""

import hashlib
import hmac

import structlog

from shared.exceptions import InvalidSignature

logger = structlog.get_logger(__name__)


def parse_signature_header(header: str | None) -> tuple[str | None, str | None]:
    """Return ``(ts, v1)`` from an ``x-signature`` header; missing parts are None."""
    parts = {}
    for chunk in (header or "").split(","):
        key, sep, value = chunk.partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    return parts.get("ts"), parts.get("v1")


def build_manifest(data_id: str, request_id: str, ts: str) -> str:
    return f"id:{data_id};request-id:{request_id};ts:{ts};"


def compute_signature(secret: str, data_id: str, request_id: str, ts: str) -> str:
    manifest = build_manifest(data_id, request_id, ts)
    return hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()


def signature_header(secret: str, data_id: str, request_id: str, ts: str) -> str:
    """Build the header value the gateway would send (used by tests and tooling)."""
    return f"ts={ts},v1={compute_signature(secret, data_id, request_id, ts)}"


class WebhookSignatureVerifier:
    """Verifies notifications against the shared secret.

    Without a configured secret, verification is skipped outside production
    (with a warning) and every notification is rejected in production.
    """

    def __init__(self, secret: str | None, is_production: bool) -> None:
        self._secret = secret
        self._is_production = is_production

    def verify(self, signature: str | None, request_id: str | None, data_id: str | None) -> None:
        if not self._secret:
            if self._is_production:
                raise InvalidSignature({"signature": ["Webhook secret is not configured"]})
            logger.warning("Webhook secret not configured; skipping signature verification")
            return

        ts, v1 = parse_signature_header(signature)
        if not (ts and v1 and request_id and data_id):
            raise InvalidSignature({"signature": ["Missing webhook signature"]})

        expected = compute_signature(self._secret, data_id, request_id, ts)
        if not hmac.compare_digest(expected, v1):
            logger.warning("Webhook signature mismatch", data_id=data_id, request_id=request_id)
            raise InvalidSignature({"signature": ["Invalid webhook signature"]})
