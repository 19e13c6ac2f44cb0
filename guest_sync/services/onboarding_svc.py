"""Onboarding - turn a marketplace install into device mappings."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from ..ghl.client import GHLClient, GHLError
from ..ghl.oauth import OAuthClient, OAuthError
from ..matching import GroupMatch, SingleMatch, match
from . import connection_svc, mapping_svc
from .directory_svc import DirectoryUnavailable, VenueDirectory

logger = logging.getLogger(__name__)


@dataclass
class OnboardingOutcome:
    tenant_id: str
    location_name: str | None = None
    email: str | None = None
    match_kind: str = "none"
    mapped_count: int = 0
    venues: list[dict] = field(default_factory=list)
    group_name: str | None = None
    error: str | None = None

    @property
    def needs_manual_setup(self) -> bool:
        return self.mapped_count == 0


async def _location_profile(access_token: str, tenant_id: str) -> tuple[str | None, str | None]:
    """Best-effort location name and owner email; GHL failures are not fatal."""
    name = email = None
    async with GHLClient(access_token) as ghl:
        try:
            location = await ghl.locations.get(tenant_id)
            name = location.get("name")
            email = location.get("email")
        except GHLError as exc:
            logger.warning("Could not fetch location %s: %s", tenant_id, exc)

        if not email:
            try:
                user = await ghl.users.me()
                email = user.get("email")
            except GHLError as exc:
                logger.warning("Could not fetch current user for %s: %s", tenant_id, exc)
    return name, email


async def complete_install(
    db: AsyncSession,
    oauth_client: OAuthClient,
    code: str,
    directory: VenueDirectory | None = None,
) -> OnboardingOutcome:
    """Exchange ``code``, store the connection and auto-map matching venues.

    Raises:
        OAuthError: If the code exchange fails or returns no location id.
    """
    tokens = await oauth_client.exchange_code(code)
    if not tokens.location_id:
        raise OAuthError("Token response did not include a location id", "missing_location")

    tenant_id = tokens.location_id
    await connection_svc.save_connection(
        db,
        tenant_id=tenant_id,
        access_token=tokens.access_token,
        refresh_token=tokens.refresh_token,
        expires_at=tokens.expires_at,
        company_id=tokens.company_id,
    )

    name, email = await _location_profile(tokens.access_token, tenant_id)
    if name or email:
        # Second save only fills in the profile columns; tokens are unchanged.
        await connection_svc.save_connection(
            db,
            tenant_id=tenant_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
            location_name=name,
            user_email=email,
        )
    outcome = OnboardingOutcome(tenant_id=tenant_id, location_name=name, email=email)

    if not email:
        logger.info("No email for location %s; leaving setup to the operator", tenant_id)
        return outcome

    directory = directory or VenueDirectory(db)
    try:
        venues = await directory.venues_for(email)
    except DirectoryUnavailable as exc:
        logger.warning("Venue lookup failed for %s: %s", tenant_id, exc)
        outcome.error = str(exc)
        return outcome

    result = match(email, name or "", venues)
    outcome.match_kind = result.kind

    if isinstance(result, GroupMatch):
        outcome.group_name = result.group_name
        outcome.venues = await mapping_svc.map_group(db, tenant_id, result.venues)
        outcome.mapped_count = sum(v["device_count"] for v in outcome.venues)
    elif isinstance(result, SingleMatch):
        venue = result.venue
        count = await mapping_svc.bulk_map(
            db, tenant_id, venue.device_ids, source_name=venue.display_name
        )
        outcome.venues = [{"name": venue.display_name, "tag": None, "device_count": count}]
        outcome.mapped_count = count

    logger.info(
        "Onboarded location %s: match=%s, %d devices mapped",
        tenant_id, outcome.match_kind, outcome.mapped_count,
    )
    return outcome
