"""Credential lifecycle - lazy, per-tenant single-flight token refresh."""

from __future__ import annotations

import asyncio
import logging
import weakref
from datetime import datetime, timedelta, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..errors import TokenRefreshFailed
from ..ghl.oauth import OAuthClient, OAuthError
from ..models.connection import TenantConnection
from . import connection_svc

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class CredentialManager:
    """Returns a usable access token for a tenant, refreshing only when needed.

    There is no background refresh loop: a tenant with no traffic never costs
    a refresh call. Refreshes for the same tenant are serialized so concurrent
    syncs that all see an expiring token trigger one exchange, not several.
    """

    def __init__(self, oauth_client: OAuthClient | None = None, skew_seconds: int | None = None):
        self._oauth_client = oauth_client
        self.skew = timedelta(
            seconds=skew_seconds if skew_seconds is not None else settings.token_refresh_skew_seconds
        )
        # Entries vanish once no coroutine holds or waits on the lock.
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    @property
    def oauth_client(self) -> OAuthClient:
        if self._oauth_client is None:
            self._oauth_client = OAuthClient.from_settings()
        return self._oauth_client

    def _lock_for(self, tenant_id: str) -> asyncio.Lock:
        lock = self._locks.get(tenant_id)
        if lock is None:
            lock = self._locks[tenant_id] = asyncio.Lock()
        return lock

    def needs_refresh(self, connection: TenantConnection, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return _as_utc(connection.token_expires_at) <= now + self.skew

    async def ensure_valid(self, db: AsyncSession, connection: TenantConnection) -> str:
        """Return a valid access token for ``connection``.

        Raises:
            TokenRefreshFailed: If the refresh exchange fails or times out.
        """
        if not self.needs_refresh(connection):
            return connection.access_token

        async with self._lock_for(connection.tenant_id):
            # Another coroutine may have refreshed while we waited on the lock.
            current = await connection_svc.get_connection(db, connection.tenant_id) or connection
            if not self.needs_refresh(current):
                return current.access_token

            return await self._refresh(db, connection, current.refresh_token)

    async def force_refresh(self, db: AsyncSession, connection: TenantConnection) -> str:
        """Refresh regardless of expiry (operator action)."""
        async with self._lock_for(connection.tenant_id):
            return await self._refresh(db, connection, connection.refresh_token)

    async def _refresh(
        self, db: AsyncSession, connection: TenantConnection, refresh_token: str
    ) -> str:
        logger.info("Refreshing token for location %s", connection.tenant_id)
        try:
            tokens = await self.oauth_client.refresh_tokens(refresh_token)
        except OAuthError as exc:
            logger.warning("Token refresh failed for location %s: %s", connection.tenant_id, exc)
            raise TokenRefreshFailed(str(exc), detail=exc.error_code) from exc

        await connection_svc.update_tokens(
            db,
            connection.tenant_id,
            access_token=tokens.access_token,
            refresh_token=tokens.refresh_token,
            expires_at=tokens.expires_at,
        )
        connection.access_token = tokens.access_token
        connection.refresh_token = tokens.refresh_token
        connection.token_expires_at = tokens.expires_at
        return tokens.access_token
