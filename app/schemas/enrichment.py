"""schemas/enrichment.py — Typed records flowing through the enrichment pipeline.

Suggestion is frozen and validated at construction: a missing confidence or
an unknown source raises ValidationError instead of slipping past the merge
policy. The other records are per-invocation envelopes and are never
persisted.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..utils.normalization import (
    normalize_count,
    normalize_rent,
    normalize_rooms,
)

SuggestionSource = Literal["search_api", "search_scrape", "property_website"]
FetchMethod = Literal["direct", "rendered"]


# ── Pipeline records ─────────────────────────────────────────────────


class Suggestion(BaseModel):
    """A proposed field value with confidence and provenance."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1)
    value: Any
    confidence: float = Field(..., ge=0.0, le=1.0)
    source: SuggestionSource
    reason: str = ""

    @field_validator("value")
    @classmethod
    def _value_present(cls, v):
        if v is None:
            raise ValueError("suggestion value may not be None")
        if isinstance(v, str) and not v.strip():
            raise ValueError("suggestion value may not be blank")
        if isinstance(v, (list, tuple, set, dict)) and not v:
            raise ValueError("suggestion value may not be empty")
        return v


class SourceAttempt(BaseModel):
    """Audit record of one external call, appended in call order."""

    source: str
    query_or_url: str
    success: bool
    result_count: int | None = None
    error: str | None = None


class FieldAnalysis(BaseModel):
    missing: list[str] = Field(default_factory=list)
    existing: dict[str, Any] = Field(default_factory=dict)
    needs_verification: list[str] = Field(default_factory=list)

    def is_missing(self, field: str) -> bool:
        return field in self.missing


class Verification(BaseModel):
    existing: Any
    found: Any
    matches: bool
    source: SuggestionSource


class EnrichmentResult(BaseModel):
    property_id: int | str | None = None
    address_used: str
    field_analysis: FieldAnalysis
    suggestions: dict[str, Suggestion] = Field(default_factory=dict)
    verifications: dict[str, Verification] = Field(default_factory=dict)
    sources_checked: list[SourceAttempt] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None

    def add(self, suggestion: Suggestion) -> None:
        self.suggestions[suggestion.field] = suggestion

    @property
    def processing_time_ms(self) -> int:
        """Wall-clock duration. Informational only: may be negative if the clock moved."""
        if self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)


class DeepSearchResult(BaseModel):
    property_id: int | str | None = None
    leasing_url: str
    suggestions: dict[str, Suggestion] = Field(default_factory=dict)
    pages_scraped: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
    started_at: datetime
    completed_at: datetime | None = None

    def add(self, suggestion: Suggestion) -> None:
        self.suggestions[suggestion.field] = suggestion

    @property
    def processing_time_ms(self) -> int:
        if self.completed_at is None:
            return 0
        return int((self.completed_at - self.started_at).total_seconds() * 1000)


class FetchResult(BaseModel):
    success: bool
    url: str
    title: str = ""
    description: str = ""
    content: str = ""
    method: FetchMethod | None = None
    error: str | None = None


class SearchResolution(BaseModel):
    property_name: str | None = None
    website_url: str | None = None
    confidence: float = 0.0
    source: SuggestionSource | None = None
    # Text the resolution was based on; fallback input for field extraction
    content: str = ""
    attempts: list[SourceAttempt] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def found(self) -> bool:
        return bool(self.property_name or self.website_url)


class PropertySnapshot(BaseModel):
    """Transient read view of a property for one enrichment run."""

    id: int | str | None = None
    street_address: str
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None
    name: str | None = None
    contact_phone: str | None = None
    contact_email: str | None = None
    contact_name: str | None = None
    amenities: list[str] | None = None
    leasing_link: str | None = None
    management_company: str | None = None
    google_data_id: str | None = None

    @classmethod
    def from_row(cls, row) -> "PropertySnapshot":
        return cls.model_validate(row, from_attributes=True)


# ── Unit discovery records ───────────────────────────────────────────


class DiscoveredFloorPlan(BaseModel):
    name: str = Field(..., min_length=1)
    beds: float | None = None
    baths: float | None = None
    sqft: int | None = None
    rent_min: float | None = None
    rent_max: float | None = None
    units_available: int | None = None
    image_url: str | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _name_str(cls, v):
        return str(v).strip() if v is not None else v

    @field_validator("beds", "baths", mode="before")
    @classmethod
    def _rooms(cls, v):
        return normalize_rooms(v)

    @field_validator("sqft", "units_available", mode="before")
    @classmethod
    def _counts(cls, v):
        return normalize_count(v)

    @field_validator("rent_min", "rent_max", mode="before")
    @classmethod
    def _rents(cls, v):
        return normalize_rent(v)


class DiscoveredUnit(BaseModel):
    unit_number: str = Field(..., min_length=1)
    floor: int | None = None
    rent: float | None = None
    market_rent: float | None = None
    available_from: str | None = None
    floor_plan_name: str | None = None
    status: str = "available"

    @field_validator("unit_number", mode="before")
    @classmethod
    def _unit_str(cls, v):
        return str(v).strip().lstrip("#") if v is not None else v

    @field_validator("floor", mode="before")
    @classmethod
    def _floor(cls, v):
        return normalize_count(v)

    @field_validator("rent", "market_rent", mode="before")
    @classmethod
    def _rents(cls, v):
        return normalize_rent(v)


class DiscoveredSpecial(BaseModel):
    text: str = Field(..., min_length=3)
    expires: str | None = None
    confidence: float = Field(default=0.8, ge=0.0, le=1.0)


class UnitDiscoveryResult(BaseModel):
    property_id: int | str | None = None
    property_name: str | None = None
    floor_plans: list[DiscoveredFloorPlan] = Field(default_factory=list)
    units: list[DiscoveredUnit] = Field(default_factory=list)
    specials: list[DiscoveredSpecial] = Field(default_factory=list)
    videos: list[dict] = Field(default_factory=list)
    images: dict[str, list[dict]] = Field(
        default_factory=lambda: {"floor_plans": [], "units": []}
    )
    reviews: list[dict] = Field(default_factory=list)
    sources: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)
