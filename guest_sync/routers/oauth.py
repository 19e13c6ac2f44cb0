"""GHL marketplace install flow."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..deps import get_credentials
from ..errors import TokenRefreshFailed
from ..ghl.oauth import OAuthClient, OAuthError
from ..services import connection_svc, onboarding_svc
from ..services.credential_svc import CredentialManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/oauth", tags=["oauth"])


class RefreshRequest(BaseModel):
    location_id: str


@router.get("/authorize")
async def authorize():
    if settings.ghl_install_url:
        return RedirectResponse(settings.ghl_install_url, status_code=302)
    try:
        client = OAuthClient.from_settings()
    except OAuthError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return RedirectResponse(client.get_authorization_url(), status_code=302)


@router.get("/callback")
async def callback(
    code: str | None = None,
    error: str | None = None,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialManager = Depends(get_credentials),
):
    if error:
        raise HTTPException(status_code=400, detail=f"Authorization denied: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    try:
        outcome = await onboarding_svc.complete_install(db, credentials.oauth_client, code)
    except OAuthError as exc:
        logger.warning("OAuth callback failed: %s (%s)", exc, exc.error_code)
        raise HTTPException(status_code=400, detail=str(exc))

    if outcome.needs_manual_setup:
        return RedirectResponse(f"/setup/{outcome.tenant_id}", status_code=303)
    return {
        "success": True,
        "location_id": outcome.tenant_id,
        "location_name": outcome.location_name,
        "match": outcome.match_kind,
        "group_name": outcome.group_name,
        "mapped_count": outcome.mapped_count,
        "venues": outcome.venues,
    }


@router.post("/refresh")
async def refresh(
    body: RefreshRequest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialManager = Depends(get_credentials),
):
    connection = await connection_svc.get_active_connection(db, body.location_id)
    if connection is None:
        raise HTTPException(status_code=404, detail="No active connection for location")

    try:
        await credentials.force_refresh(db, connection)
    except TokenRefreshFailed as exc:
        raise HTTPException(status_code=502, detail=exc.reason)

    return {
        "success": True,
        "location_id": connection.tenant_id,
        "expires_at": connection.token_expires_at.isoformat(),
    }
