"""Tenant connection model - OAuth tokens for one GHL location."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class TenantConnection(UUIDMixin, TimestampMixin, Base):
    """One row per GHL location; soft-deactivated on uninstall, never deleted."""

    __tablename__ = "tenant_connection"

    tenant_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    company_id: Mapped[str | None] = mapped_column(String(100), default=None)
    location_name: Mapped[str | None] = mapped_column(String(200), default=None)
    user_email: Mapped[str | None] = mapped_column(String(255), default=None)
    access_token: Mapped[str] = mapped_column(Text)
    refresh_token: Mapped[str] = mapped_column(Text)
    token_expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    installed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    def __repr__(self) -> str:
        state = "active" if self.is_active else "inactive"
        return f"<TenantConnection {self.tenant_id!r} {state}>"
