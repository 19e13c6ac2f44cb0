"""Sync ledger (append-only audit trail) and synced-contact markers."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncLedgerEntry(Base):
    """One row per sync attempt. Never updated or deleted by the core."""

    __tablename__ = "sync_ledger"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    tenant_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    device_id: Mapped[str | None] = mapped_column(String(32), default=None)
    contact_email: Mapped[str | None] = mapped_column(String(255), default=None)
    status: Mapped[str] = mapped_column(String(20))  # success / skipped / error
    reason: Mapped[str | None] = mapped_column(String(255), default=None)
    crm_contact_id: Mapped[str | None] = mapped_column(String(100), default=None)
    error_detail: Mapped[str | None] = mapped_column(Text, default=None)
    sync_type: Mapped[str] = mapped_column(String(20), default="webhook")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, index=True
    )

    def __repr__(self) -> str:
        return f"<SyncLedgerEntry {self.status} {self.contact_email!r}>"


class SyncedContact(Base):
    """Idempotence marker: at most one CRM contact per (tenant, email)."""

    __tablename__ = "synced_contact"
    __table_args__ = (
        UniqueConstraint("tenant_id", "contact_email", name="uq_synced_contact_tenant_email"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[str] = mapped_column(String(100))
    contact_email: Mapped[str] = mapped_column(String(255))
    crm_contact_id: Mapped[str | None] = mapped_column(String(100), default=None)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self) -> str:
        return f"<SyncedContact {self.tenant_id} {self.contact_email!r}>"
