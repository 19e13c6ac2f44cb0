"""Process-wide service singletons exposed as FastAPI dependencies.

Routers depend on these rather than constructing services so tests can swap
them with ``app.dependency_overrides``.
"""

from __future__ import annotations

from functools import lru_cache

from .services.credential_svc import CredentialManager
from .services.sync_svc import SyncPipeline


@lru_cache
def get_credentials() -> CredentialManager:
    # One manager per process so the per-tenant refresh locks are shared.
    return CredentialManager()


@lru_cache
def get_pipeline() -> SyncPipeline:
    return SyncPipeline(credentials=get_credentials())
