"""FastAPI application for Guest Sync."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .config import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Auto-create tables for SQLite (local dev); PostgreSQL uses Alembic migrations
    if "sqlite" in settings.database_url:
        from .database import create_tables

        await create_tables()
    yield


app = FastAPI(title=settings.app_title, lifespan=lifespan)

from .routers import api, health, oauth, setup, webhooks  # noqa: E402

app.include_router(webhooks.router)
app.include_router(oauth.router)
app.include_router(api.router)
app.include_router(setup.router)
app.include_router(health.router)
