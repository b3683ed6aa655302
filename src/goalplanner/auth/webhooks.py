"""Signature verification for inbound provider webhooks.

Both the identity provider and the payments provider sign deliveries with
the Standard Webhooks scheme: ``base64(HMAC-SHA256(secret, "{id}.{timestamp}.{body}"))``
sent as one or more space-separated ``v1,<signature>`` entries.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import time
from collections.abc import Mapping
from typing import Any

import structlog
from fastapi import HTTPException, Request

logger = structlog.get_logger()

TOLERANCE_SECONDS = 300


class WebhookVerificationError(ValueError):
    """Raised when a webhook delivery cannot be authenticated."""


def _secret_bytes(secret: str) -> bytes:
    if secret.startswith("whsec_"):
        return base64.b64decode(secret.removeprefix("whsec_"))
    return secret.encode()


def sign_payload(secret: str, msg_id: str, timestamp: int, body: bytes) -> str:
    """Compute the ``v1,<signature>`` value for a delivery."""
    signed = f"{msg_id}.{timestamp}.".encode() + body
    digest = hmac.new(_secret_bytes(secret), signed, hashlib.sha256).digest()
    return "v1," + base64.b64encode(digest).decode()


def _header(headers: Mapping[str, str], name: str) -> str | None:
    # svix-* is the legacy spelling some providers still send
    return headers.get(f"webhook-{name}") or headers.get(f"svix-{name}")


def verify_webhook(
    secret: str,
    headers: Mapping[str, str],
    body: bytes,
    now: float | None = None,
) -> None:
    """
    Authenticate a webhook delivery.

    Raises:
        WebhookVerificationError: Missing headers, stale timestamp, or no matching signature.
    """
    msg_id = _header(headers, "id")
    timestamp = _header(headers, "timestamp")
    signatures = _header(headers, "signature")
    if not msg_id or not timestamp or not signatures:
        msg = "Missing webhook headers"
        raise WebhookVerificationError(msg)

    try:
        ts = int(timestamp)
    except ValueError as e:
        msg = "Invalid webhook timestamp"
        raise WebhookVerificationError(msg) from e

    current = time.time() if now is None else now
    if abs(current - ts) > TOLERANCE_SECONDS:
        msg = "Webhook timestamp outside tolerance"
        raise WebhookVerificationError(msg)

    expected = sign_payload(secret, msg_id, ts, body)
    for candidate in signatures.split():
        if hmac.compare_digest(candidate, expected):
            return
    msg = "No matching webhook signature"
    raise WebhookVerificationError(msg)


async def read_verified_event(request: Request, secret: str) -> dict[str, Any]:
    """Verify a delivery's signature and decode its JSON event.

    Raises:
        HTTPException: 503 without a configured secret, 400 on a bad signature or body.
    """
    if not secret:
        raise HTTPException(status_code=503, detail="Webhook secret not configured")
    body = await request.body()
    try:
        verify_webhook(secret, request.headers, body)
    except WebhookVerificationError as e:
        logger.warning("webhook_verification_failed", path=request.url.path, error=str(e))
        raise HTTPException(status_code=400, detail="Invalid webhook signature") from e
    try:
        event = json.loads(body)
    except json.JSONDecodeError as e:
        raise HTTPException(status_code=400, detail="Invalid webhook payload") from e
    if not isinstance(event, dict) or not isinstance(event.get("data"), dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")
    return event
