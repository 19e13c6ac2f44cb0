"""Inbound contact events and pipeline results."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, model_validator


class ContactEvent(BaseModel):
    """Guest record posted by the captive-portal workflow.

    The upstream workflow has used ``mac`` and ``mobile`` as field names; both
    are accepted as aliases.
    """

    model_config = ConfigDict(extra="ignore")

    device_id: str | None = None
    email: str | None = None
    name: str | None = None
    phone: str | None = None
    opt_in: Any = None

    @model_validator(mode="before")
    @classmethod
    def _legacy_field_names(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            if not data.get("device_id") and data.get("mac"):
                data["device_id"] = data["mac"]
            if not data.get("phone") and data.get("mobile"):
                data["phone"] = data["mobile"]
        return data


SyncStatus = Literal["success", "skipped", "error"]


class SyncResult(BaseModel):
    status: SyncStatus
    reason: str | None = None
    ghl_contact_id: str | None = None
    ghl_location_id: str | None = None
    tags_applied: list[str] | None = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(exclude_none=True)


class BatchItem(SyncResult):
    email: str | None = None


class BatchSummary(BaseModel):
    total: int = 0
    success: int = 0
    skipped: int = 0
    errors: int = 0


class BatchResult(BaseModel):
    summary: BatchSummary
    results: list[BatchItem]
