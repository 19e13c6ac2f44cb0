"""Guest Sync models - re-exports all models and Base.metadata."""

from .base import Base, UUIDMixin, TimestampMixin
from .connection import TenantConnection
from .mapping import DeviceMapping
from .venue import Venue
from .ledger import SyncLedgerEntry, SyncedContact

__all__ = [
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "TenantConnection",
    "DeviceMapping",
    "Venue",
    "SyncLedgerEntry",
    "SyncedContact",
]
