"""Venue directory - the captive-portal side's record of venues and devices."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..matching import VenueRecord
from ..models.venue import Venue
from ..schemas.mapping import VenueIn
from .upsert import insert_for

logger = logging.getLogger(__name__)


class DirectoryUnavailable(Exception):
    """The directory lookup failed or did not answer in time."""


class VenueDirectory:
    """Looks up venues by owner email with a bounded wait."""

    def __init__(self, db: AsyncSession, timeout: float | None = None):
        self.db = db
        self.timeout = settings.directory_timeout_seconds if timeout is None else timeout

    async def venues_for(self, email: str) -> list[VenueRecord]:
        try:
            return await asyncio.wait_for(self._venues_for(email), timeout=self.timeout)
        except asyncio.TimeoutError as exc:
            raise DirectoryUnavailable(f"Venue directory timed out after {self.timeout}s") from exc

    async def _venues_for(self, email: str) -> list[VenueRecord]:
        email = (email or "").strip().lower()
        if not email:
            return []
        # Owner emails live in a JSON list; filter in Python to stay dialect-neutral.
        rows = (await self.db.execute(select(Venue).order_by(Venue.display_name))).scalars().all()
        records = [VenueRecord.from_model(v) for v in rows]
        return [r for r in records if r.owned_by(email)]


async def load_venues(db: AsyncSession, venues: Iterable[VenueIn]) -> int:
    """Insert or replace directory venues keyed on ``venue_id``."""
    count = 0
    for venue in venues:
        values = {
            "venue_id": venue.venue_id,
            "display_name": venue.display_name,
            "group_name": venue.group_name,
            "address": venue.address,
            "owner_emails": [e.strip().lower() for e in venue.owner_emails],
            "device_ids": list(venue.device_ids),
        }
        stmt = insert_for(db, Venue).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Venue.venue_id],
            set_={
                **{k: v for k, v in values.items() if k != "venue_id"},
                "updated_at": func.now(),
            },
        )
        await db.execute(stmt)
        count += 1
    await db.commit()
    logger.info("Loaded %d venues into directory", count)
    return count
