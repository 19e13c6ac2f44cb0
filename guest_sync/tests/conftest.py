"""Async test fixtures using in-memory SQLite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from guest_sync.database import get_db
from guest_sync.deps import get_credentials, get_pipeline
from guest_sync.models.base import Base
from guest_sync.models.connection import TenantConnection
from guest_sync.services.credential_svc import CredentialManager
from guest_sync.services.sync_svc import SyncPipeline

TENANT = "loc_123"


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def connection(db: AsyncSession):
    conn = TenantConnection(
        tenant_id=TENANT,
        company_id="comp_1",
        location_name="Joe's Diner",
        user_email="owner@example.com",
        access_token="access_ok",
        refresh_token="refresh_ok",
        token_expires_at=datetime.now(timezone.utc) + timedelta(hours=12),
        is_active=True,
    )
    db.add(conn)
    await db.commit()
    await db.refresh(conn)
    return conn


@pytest.fixture
def oauth_client():
    return AsyncMock()


@pytest.fixture
def forwarder():
    fwd = AsyncMock()
    fwd.create_contact = AsyncMock(return_value="contact_1")
    return fwd


@pytest.fixture
def credentials(oauth_client):
    return CredentialManager(oauth_client=oauth_client)


@pytest.fixture
def pipeline(credentials, forwarder):
    return SyncPipeline(credentials=credentials, forwarder=forwarder, pacing_seconds=0)


@pytest.fixture(autouse=True)
def open_webhooks(monkeypatch):
    from guest_sync.config import settings

    monkeypatch.setattr(settings, "webhook_api_key", "")
    monkeypatch.setattr(settings, "webhook_signing_secret", "")


@pytest_asyncio.fixture
async def client(engine, pipeline, credentials):
    """HTTPX async test client against the app."""
    from guest_sync.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_credentials] = lambda: credentials

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
