"""Mapping and setup request schemas."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, Field


class MappingCreate(BaseModel):
    location_id: str
    mac: str
    name: str | None = None
    label: str | None = None


class SetupSave(BaseModel):
    mac_addresses: list[str] = Field(default_factory=list, alias="macAddresses")


class VenueIn(BaseModel):
    """One venue as loaded from a directory export."""

    venue_id: str
    display_name: str
    group_name: str | None = None
    address: str | None = None
    owner_emails: list[str] = Field(default_factory=list)
    device_ids: list[str] = Field(default_factory=list)


class ConnectionTest(BaseModel):
    location_id: str | None = Field(
        None, validation_alias=AliasChoices("location_id", "locationId")
    )
