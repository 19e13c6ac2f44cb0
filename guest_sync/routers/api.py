"""JSON management API - mappings, connection status, sync history."""

from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..deps import get_credentials
from ..errors import TokenRefreshFailed
from ..ghl.client import GHLClient, GHLError
from ..identity import InvalidFormat, normalize_device_id
from ..schemas.mapping import ConnectionTest, MappingCreate
from ..services import audit_svc, connection_svc, mapping_svc
from ..services.credential_svc import CredentialManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["api"])


def _mapping_out(mapping) -> dict:
    return {
        "id": str(mapping.id),
        "mac_address": mapping.device_id,
        "location_id": mapping.tenant_id,
        "label": mapping.sub_venue_label,
        "name": mapping.source_name,
        "created_at": mapping.created_at.isoformat() if mapping.created_at else None,
    }


@router.get("/mappings/{tenant_id}")
async def list_mappings(tenant_id: str, db: AsyncSession = Depends(get_db)):
    mappings = await mapping_svc.list_for_tenant(db, tenant_id)
    return {"location_id": tenant_id, "mappings": [_mapping_out(m) for m in mappings]}


@router.post("/mappings", status_code=201)
async def create_mapping(body: MappingCreate, db: AsyncSession = Depends(get_db)):
    try:
        device_id = normalize_device_id(body.mac)
    except InvalidFormat:
        raise HTTPException(status_code=400, detail=f"Invalid MAC address: {body.mac}")

    await mapping_svc.create_or_update_mapping(
        db, device_id, body.location_id, label=body.label, source_name=body.name
    )
    mapping = await mapping_svc.resolve(db, device_id)
    return _mapping_out(mapping)


@router.delete("/mappings/{mapping_id}")
async def delete_mapping(mapping_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    if not await mapping_svc.delete_mapping(db, mapping_id):
        raise HTTPException(status_code=404, detail="Mapping not found")
    return {"success": True}


@router.get("/connection/{tenant_id}")
async def connection_status(tenant_id: str, db: AsyncSession = Depends(get_db)):
    connection = await connection_svc.get_connection(db, tenant_id)
    if connection is None:
        raise HTTPException(status_code=404, detail="Connection not found")
    # Tokens never leave the service.
    return {
        "location_id": connection.tenant_id,
        "company_id": connection.company_id,
        "location_name": connection.location_name,
        "user_email": connection.user_email,
        "is_active": connection.is_active,
        "token_expires_at": connection.token_expires_at.isoformat(),
        "installed_at": connection.installed_at.isoformat() if connection.installed_at else None,
    }


@router.get("/sync-status/{tenant_id}")
async def sync_status(
    tenant_id: str,
    limit: int = Query(50, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
):
    entries = await audit_svc.recent(db, tenant_id, limit=limit)
    return {
        "location_id": tenant_id,
        "stats": audit_svc.summarize(entries),
        "logs": [
            {
                "id": e.id,
                "status": e.status,
                "reason": e.reason,
                "contact_email": e.contact_email,
                "mac_address": e.device_id,
                "ghl_contact_id": e.crm_contact_id,
                "error_message": e.error_detail,
                "sync_type": e.sync_type,
                "created_at": e.created_at.isoformat() if e.created_at else None,
            }
            for e in entries
        ],
    }


@router.post("/test/ghl-connection")
async def check_ghl_connection(
    body: ConnectionTest,
    db: AsyncSession = Depends(get_db),
    credentials: CredentialManager = Depends(get_credentials),
):
    """Refresh the token if due, then fetch the location with it."""
    if not body.location_id:
        raise HTTPException(status_code=400, detail="Missing location_id")

    connection = await connection_svc.get_active_connection(db, body.location_id)
    if connection is None:
        raise HTTPException(status_code=404, detail="Connection not found")

    try:
        access_token = await credentials.ensure_valid(db, connection)
        async with GHLClient(access_token) as ghl:
            location = await ghl.locations.get(body.location_id)
    except TokenRefreshFailed as exc:
        raise HTTPException(status_code=502, detail=exc.reason)
    except GHLError as exc:
        logger.warning("Connection test failed for %s: %s", body.location_id, exc.message)
        raise HTTPException(status_code=502, detail=exc.message)

    return {
        "success": True,
        "location": {
            "id": location.get("id", body.location_id),
            "name": location.get("name"),
            "email": location.get("email"),
            "phone": location.get("phone"),
        },
    }
