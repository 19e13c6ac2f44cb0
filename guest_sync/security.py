"""Authentication for inbound captive-portal webhooks."""

from __future__ import annotations

import hashlib
import hmac
import time

from fastapi import HTTPException, Request

from .config import settings


def _extract_token(request: Request) -> str:
    auth = request.headers.get("authorization", "")
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()

    return request.headers.get("x-api-key", "").strip()


def sign_payload(secret: str, timestamp: int, body: bytes) -> str:
    """Signature the portal sends in ``X-Webhook-Signature``."""
    message = f"{timestamp}.{body.decode('utf-8', errors='replace')}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_webhook_request(request: Request, body: bytes) -> None:
    """Verify webhook auth using HMAC signature or API key.

    With neither secret configured the endpoints are open, which is how the
    portal integration is usually trialled locally.
    """
    signing_secret = settings.webhook_signing_secret.strip()
    api_key = settings.webhook_api_key.strip()

    if signing_secret:
        timestamp_raw = request.headers.get("x-webhook-timestamp", "").strip()
        signature_raw = request.headers.get("x-webhook-signature", "").strip()
        if not timestamp_raw or not signature_raw:
            raise HTTPException(status_code=401, detail="Missing webhook signature headers")

        try:
            timestamp = int(timestamp_raw)
        except ValueError as exc:
            raise HTTPException(status_code=401, detail="Invalid webhook timestamp") from exc

        if abs(int(time.time()) - timestamp) > settings.webhook_signature_ttl_seconds:
            raise HTTPException(status_code=401, detail="Webhook signature expired")

        provided = signature_raw.removeprefix("sha256=")
        if not hmac.compare_digest(provided, sign_payload(signing_secret, timestamp, body)):
            raise HTTPException(status_code=401, detail="Invalid webhook signature")
        return

    if api_key:
        provided = _extract_token(request)
        if not provided or not hmac.compare_digest(provided, api_key):
            raise HTTPException(status_code=401, detail="Invalid webhook API key")
