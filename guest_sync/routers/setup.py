"""Manual device setup page for locations that did not auto-match."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.templating import Jinja2Templates
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..identity import normalize_device_id, is_valid_device_id
from ..schemas.mapping import SetupSave
from ..services import connection_svc, mapping_svc

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/setup", tags=["setup"])
templates = Jinja2Templates(directory=str(settings.templates_dir))


@router.get("/{tenant_id}")
async def setup_page(request: Request, tenant_id: str, db: AsyncSession = Depends(get_db)):
    connection = await connection_svc.get_connection(db, tenant_id)
    mappings = await mapping_svc.list_for_tenant(db, tenant_id)
    return templates.TemplateResponse(request, "setup/devices.html", {
        "tenant_id": tenant_id,
        "location_name": (connection.location_name if connection else None) or "Your Location",
        "connected": connection is not None and connection.is_active,
        "mappings": mappings,
    })


@router.post("/{tenant_id}/save")
async def setup_save(tenant_id: str, body: SetupSave, db: AsyncSession = Depends(get_db)):
    if not body.mac_addresses:
        raise HTTPException(status_code=400, detail="No MAC addresses provided")

    invalid = [mac for mac in body.mac_addresses if not is_valid_device_id(mac)]
    if invalid:
        raise HTTPException(
            status_code=400, detail=f"Invalid MAC address format: {', '.join(invalid)}"
        )

    if await connection_svc.get_connection(db, tenant_id) is None:
        raise HTTPException(
            status_code=404, detail="GHL location not found. Please complete OAuth first."
        )

    normalized = [normalize_device_id(mac) for mac in body.mac_addresses]
    mapped = await mapping_svc.bulk_map(db, tenant_id, normalized)
    logger.info("Manual setup: mapped %d devices for location %s", mapped, tenant_id)
    return {"success": True, "mapped": mapped}
