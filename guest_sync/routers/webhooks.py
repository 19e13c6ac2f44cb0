"""Inbound captive-portal webhooks and the GHL uninstall hook."""

from __future__ import annotations

import json
import logging
import time
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_pipeline
from ..security import verify_webhook_request
from ..services import connection_svc
from ..services.sync_svc import SyncPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhook", tags=["webhooks"])


async def _json_body(request: Request) -> dict[str, Any]:
    raw_body = await request.body()
    verify_webhook_request(request, raw_body)
    if not raw_body:
        return {}
    try:
        parsed = json.loads(raw_body.decode("utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise HTTPException(status_code=422, detail="Invalid JSON body")
    if not isinstance(parsed, dict):
        raise HTTPException(status_code=422, detail="Expected a JSON object")
    return parsed


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


@router.post("/contact")
async def receive_contact(
    request: Request,
    db: AsyncSession = Depends(get_db),
    pipeline: SyncPipeline = Depends(get_pipeline),
):
    """Sync one guest contact. Modeled outcomes always come back as 200."""
    started = time.perf_counter()
    payload = await _json_body(request)

    result = await pipeline.process_contact(db, payload)
    return {**result.to_response(), "processing_time_ms": _elapsed_ms(started)}


@router.post("/contact/batch")
async def receive_contact_batch(
    request: Request,
    db: AsyncSession = Depends(get_db),
    pipeline: SyncPipeline = Depends(get_pipeline),
):
    started = time.perf_counter()
    payload = await _json_body(request)

    contacts = payload.get("contacts")
    if not isinstance(contacts, list):
        raise HTTPException(status_code=422, detail="contacts must be an array")
    events = [c if isinstance(c, dict) else {} for c in contacts]

    result = await pipeline.process_batch(db, events)
    return {
        "success": True,
        "summary": result.summary.model_dump(),
        "results": [item.model_dump(exclude_none=True) for item in result.results],
        "processing_time_ms": _elapsed_ms(started),
    }


@router.post("/ghl/uninstall")
async def ghl_uninstall(request: Request, db: AsyncSession = Depends(get_db)):
    payload = await _json_body(request)
    location_id = payload.get("locationId") or payload.get("location_id")
    if not location_id:
        raise HTTPException(status_code=400, detail="locationId is required")

    found = await connection_svc.deactivate(db, location_id)
    logger.info("Uninstall for location %s (known=%s)", location_id, found)
    return {"success": True, "deactivated": found}


@router.get("/health")
async def webhook_health():
    return {"status": "ok", "service": "guest-sync-webhook"}
