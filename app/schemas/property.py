"""schemas/property.py — Request bodies for the /api/property endpoints."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class EnrichRequest(BaseModel):
    """Single-property enrichment. Existing values are sent for verification."""

    property_id: int | str | None = None
    address: str | None = None
    street_address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    lat: float | None = None
    lng: float | None = None

    community_name: str | None = None
    name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    contact_name: str | None = None
    amenities: list[str] | None = None
    leasing_link: str | None = None
    management_company: str | None = None

    @property
    def resolved_address(self) -> str:
        return (self.street_address or self.address or "").strip()


class BatchEnrichRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    phase: Literal["property", "units", "both"] = "property"
    limit: int | None = Field(default=None, ge=1)
    force_update: bool = Field(default=False, alias="forceUpdate")
    force_fields: list[str] = Field(default_factory=list, alias="forceFields")
    area: str | None = None
    property_ids: list[int] | None = Field(default=None, alias="propertyIds")
    override_url: str | None = Field(default=None, alias="overrideUrl")


class DeepSearchRequest(BaseModel):
    property_id: int | str | None = None
    leasing_url: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    missing_fields: list[str] | None = None


class UnitSearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    property_id: int | str | None = Field(default=None, alias="propertyId")
    property_name: str | None = Field(default=None, alias="propertyName")
    leasing_url: str | None = Field(default=None, alias="leasingUrl")
    address: str | None = None
