"""Device mapping model - access point MAC to GHL location."""

from __future__ import annotations

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class DeviceMapping(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "device_mapping"

    device_id: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    tenant_id: Mapped[str] = mapped_column(String(100), index=True)
    # Tag applied in GHL for hospitality-group venues, e.g. "Maggies_Restaurant"
    sub_venue_label: Mapped[str | None] = mapped_column(String(200), default=None)
    source_name: Mapped[str | None] = mapped_column(String(200), default=None)

    def __repr__(self) -> str:
        return f"<DeviceMapping {self.device_id} -> {self.tenant_id}>"
