"""Sync failure taxonomy.

Every modeled failure carries the terminal ``status`` and a short ``reason``
so the pipeline can turn it into a structured result without inspecting the
exception type.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for modeled sync outcomes that stop the pipeline."""

    status = "error"

    def __init__(self, reason: str, detail: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.detail = detail


class ValidationError(SyncError):
    """Required inbound field missing. Client input fault."""


class NotOptedIn(SyncError):
    """Guest did not give affirmative marketing consent."""

    status = "skipped"


class UnmappedDevice(SyncError):
    """No mapping for the device. Configuration gap, not a transient fault."""

    status = "skipped"


class InactiveTenant(SyncError):
    """Tenant connection missing or deactivated. Terminal until re-authorized."""


class AlreadySynced(SyncError):
    """Idempotence short-circuit: contact was already created for this tenant."""

    status = "skipped"


class TokenRefreshFailed(SyncError):
    """Refresh exchange against the GHL token endpoint failed or timed out."""


class CrmCallFailed(SyncError):
    """GHL contact call failed (network, timeout, 4xx or 5xx)."""

    def __init__(self, reason: str, status_code: int | None = None, detail: str | None = None):
        super().__init__(reason, detail)
        self.status_code = status_code
