"""Audit log - append-only sync ledger and synced-contact markers."""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.ledger import SyncedContact, SyncLedgerEntry
from .upsert import insert_for

STATUSES = ("success", "skipped", "error")


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def append(
    db: AsyncSession,
    *,
    status: str,
    tenant_id: str | None = None,
    device_id: str | None = None,
    contact_email: str | None = None,
    reason: str | None = None,
    crm_contact_id: str | None = None,
    error_detail: str | None = None,
    sync_type: str = "webhook",
) -> SyncLedgerEntry:
    """Append one ledger entry and commit."""
    if status not in STATUSES:
        raise ValueError(f"Unknown sync status {status!r}")
    entry = SyncLedgerEntry(
        tenant_id=tenant_id,
        device_id=device_id,
        contact_email=contact_email,
        status=status,
        reason=reason,
        crm_contact_id=crm_contact_id,
        error_detail=error_detail,
        sync_type=sync_type,
    )
    db.add(entry)
    await db.commit()
    return entry


async def recent(db: AsyncSession, tenant_id: str, limit: int = 50) -> list[SyncLedgerEntry]:
    """Newest-first ledger entries for a tenant."""
    stmt = (
        select(SyncLedgerEntry)
        .where(SyncLedgerEntry.tenant_id == tenant_id)
        .order_by(SyncLedgerEntry.created_at.desc(), SyncLedgerEntry.id.desc())
        .limit(max(1, limit))
    )
    return list((await db.execute(stmt)).scalars().all())


def summarize(entries: Iterable[SyncLedgerEntry]) -> dict[str, int]:
    counts = {"total": 0, "success": 0, "skipped": 0, "errors": 0}
    for entry in entries:
        counts["total"] += 1
        counts["errors" if entry.status == "error" else entry.status] += 1
    return counts


async def is_synced(db: AsyncSession, tenant_id: str, email: str) -> bool:
    stmt = select(SyncedContact.id).where(
        SyncedContact.tenant_id == tenant_id,
        SyncedContact.contact_email == normalize_email(email),
    )
    return (await db.execute(stmt)).first() is not None


async def mark_synced(
    db: AsyncSession, tenant_id: str, email: str, crm_contact_id: str | None
) -> None:
    """Record the marker; a concurrent duplicate insert is ignored."""
    stmt = insert_for(db, SyncedContact).values(
        tenant_id=tenant_id,
        contact_email=normalize_email(email),
        crm_contact_id=crm_contact_id,
    )
    await db.execute(stmt.on_conflict_do_nothing(index_elements=["tenant_id", "contact_email"]))
    await db.commit()
