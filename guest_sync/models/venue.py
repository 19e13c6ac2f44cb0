"""Venue directory records (reference data, read-only to the sync core)."""

from __future__ import annotations

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, TimestampMixin


class Venue(UUIDMixin, TimestampMixin, Base):
    __tablename__ = "venue"

    venue_id: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    display_name: Mapped[str] = mapped_column(String(200))
    group_name: Mapped[str | None] = mapped_column(String(200), default=None)
    address: Mapped[str | None] = mapped_column(String(255), default=None)
    owner_emails: Mapped[list] = mapped_column(JSON, default=list)
    device_ids: Mapped[list] = mapped_column(JSON, default=list)

    def __repr__(self) -> str:
        return f"<Venue {self.display_name!r}>"
