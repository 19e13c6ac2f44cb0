"""Tenant connection store - OAuth tokens per GHL location."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.connection import TenantConnection
from .upsert import insert_for

logger = logging.getLogger(__name__)


def expiry_from(expires_in: int, now: datetime | None = None) -> datetime:
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=int(expires_in))


async def save_connection(
    db: AsyncSession,
    *,
    tenant_id: str,
    access_token: str,
    refresh_token: str,
    expires_at: datetime,
    company_id: str | None = None,
    location_name: str | None = None,
    user_email: str | None = None,
) -> TenantConnection:
    """Insert or re-activate the connection for ``tenant_id`` (re-install safe)."""
    stmt = insert_for(db, TenantConnection).values(
        tenant_id=tenant_id,
        company_id=company_id,
        location_name=location_name,
        user_email=user_email,
        access_token=access_token,
        refresh_token=refresh_token,
        token_expires_at=expires_at,
        is_active=True,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[TenantConnection.tenant_id],
        set_={
            "access_token": stmt.excluded.access_token,
            "refresh_token": stmt.excluded.refresh_token,
            "token_expires_at": stmt.excluded.token_expires_at,
            "company_id": func.coalesce(stmt.excluded.company_id, TenantConnection.company_id),
            "location_name": func.coalesce(
                stmt.excluded.location_name, TenantConnection.location_name
            ),
            "user_email": func.coalesce(stmt.excluded.user_email, TenantConnection.user_email),
            "is_active": True,
            "updated_at": func.now(),
        },
    )
    await db.execute(stmt)
    await db.commit()
    logger.info("Saved GHL connection for location %s", tenant_id)
    return await get_connection(db, tenant_id)


async def get_connection(db: AsyncSession, tenant_id: str) -> TenantConnection | None:
    """Fetch the connection row for a tenant, active or not."""
    stmt = (
        select(TenantConnection)
        .where(TenantConnection.tenant_id == tenant_id)
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_active_connection(db: AsyncSession, tenant_id: str) -> TenantConnection | None:
    conn = await get_connection(db, tenant_id)
    if conn is None or not conn.is_active:
        return None
    return conn


async def update_tokens(
    db: AsyncSession,
    tenant_id: str,
    *,
    access_token: str,
    refresh_token: str,
    expires_at: datetime,
) -> None:
    """Persist a refreshed token pair."""
    await db.execute(
        update(TenantConnection)
        .where(TenantConnection.tenant_id == tenant_id)
        .values(
            access_token=access_token,
            refresh_token=refresh_token,
            token_expires_at=expires_at,
            updated_at=func.now(),
        )
    )
    await db.commit()


async def deactivate(db: AsyncSession, tenant_id: str) -> bool:
    """Soft-deactivate on uninstall. Returns True if a row was changed."""
    result = await db.execute(
        update(TenantConnection)
        .where(TenantConnection.tenant_id == tenant_id)
        .values(is_active=False, updated_at=func.now())
    )
    await db.commit()
    if result.rowcount:
        logger.info("Deactivated GHL connection for location %s", tenant_id)
    return bool(result.rowcount)
