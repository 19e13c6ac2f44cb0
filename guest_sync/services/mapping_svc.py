"""Mapping store - device (access point MAC) to tenant associations."""

from __future__ import annotations

import logging
import uuid
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..identity import InvalidFormat, normalize_device_id, normalize_label
from ..matching import VenueRecord
from ..models.mapping import DeviceMapping
from .upsert import insert_for

logger = logging.getLogger(__name__)

MIN_DEVICE_ID_LENGTH = 11


def mapping_key(device_id: str) -> str:
    """Lookup key for a device id, identical on the write and read paths.

    Full MAC forms are canonicalized; anything else is lower-cased and trimmed
    so legacy directory ids still round-trip.
    """
    try:
        return normalize_device_id(device_id)
    except InvalidFormat:
        return device_id.strip().lower()


async def create_or_update_mapping(
    db: AsyncSession,
    device_id: str,
    tenant_id: str,
    label: str | None = None,
    source_name: str | None = None,
    *,
    commit: bool = True,
) -> None:
    """Upsert a mapping; the latest write for a device wins."""
    key = mapping_key(device_id)

    previous = (
        await db.execute(select(DeviceMapping.tenant_id).where(DeviceMapping.device_id == key))
    ).scalar_one_or_none()
    if previous and previous != tenant_id:
        logger.warning("Re-mapping device %s from location %s to %s", key, previous, tenant_id)

    stmt = insert_for(db, DeviceMapping).values(
        device_id=key,
        tenant_id=tenant_id,
        sub_venue_label=label,
        source_name=source_name,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[DeviceMapping.device_id],
        set_={
            "tenant_id": stmt.excluded.tenant_id,
            "sub_venue_label": stmt.excluded.sub_venue_label,
            "source_name": stmt.excluded.source_name,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    if commit:
        await db.commit()


async def bulk_map(
    db: AsyncSession,
    tenant_id: str,
    device_ids: Iterable[str] | None,
    label: str | None = None,
    source_name: str | None = None,
) -> int:
    """Map many devices to one tenant. Returns the number accepted.

    Ids shorter than 11 characters after trimming are skipped.
    """
    accepted = 0
    for raw in device_ids or []:
        if not isinstance(raw, str):
            continue
        candidate = raw.strip().lower()
        if len(candidate) < MIN_DEVICE_ID_LENGTH:
            continue
        await create_or_update_mapping(
            db, candidate, tenant_id, label=label, source_name=source_name, commit=False
        )
        accepted += 1
    await db.commit()
    if accepted:
        logger.info(
            "Mapped %d devices to location %s%s",
            accepted, tenant_id, f" (tag: {label})" if label else "",
        )
    return accepted


async def map_group(
    db: AsyncSession, tenant_id: str, venues: Iterable[VenueRecord]
) -> list[dict]:
    """Map every venue of a hospitality group, each with its own tag."""
    breakdown = []
    for venue in venues:
        tag = normalize_label(venue.display_name)
        count = await bulk_map(
            db, tenant_id, venue.device_ids, label=tag, source_name=venue.display_name
        )
        breakdown.append({"name": venue.display_name, "tag": tag, "device_count": count})
    total = sum(item["device_count"] for item in breakdown)
    logger.info(
        "Hospitality group mapping complete: %d devices across %d venues", total, len(breakdown)
    )
    return breakdown


async def resolve(db: AsyncSession, device_id: str) -> DeviceMapping | None:
    """Hot-path lookup by device id (unique index)."""
    stmt = (
        select(DeviceMapping)
        .where(DeviceMapping.device_id == mapping_key(device_id))
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_for_tenant(db: AsyncSession, tenant_id: str) -> list[DeviceMapping]:
    stmt = (
        select(DeviceMapping)
        .where(DeviceMapping.tenant_id == tenant_id)
        .order_by(DeviceMapping.created_at.desc(), DeviceMapping.device_id)
    )
    return list((await db.execute(stmt)).scalars().all())


async def delete_mapping(db: AsyncSession, mapping_id: uuid.UUID) -> bool:
    """Delete a mapping. Returns True if found and deleted."""
    mapping = await db.get(DeviceMapping, mapping_id)
    if not mapping:
        return False
    await db.delete(mapping)
    await db.commit()
    return True
