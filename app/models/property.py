"""Property models — Property, FloorPlan, Unit, PropertySpecial.

Only the columns the enrichment pipeline reads or writes are modelled here;
the CRM owns the rest of the schema.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .base import Base, UTCDateTime

# Lifecycle values for Property.enrichment_status
STATUS_PENDING = "pending"
STATUS_ENRICHED = "enriched"
STATUS_REVIEWED = "reviewed"
STATUS_FAILED = "failed"
STATUS_UNITS_SCANNED = "units_scanned"

ENRICHMENT_STATUSES = (
    STATUS_PENDING,
    STATUS_ENRICHED,
    STATUS_REVIEWED,
    STATUS_FAILED,
    STATUS_UNITS_SCANNED,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Property(Base):
    __tablename__ = "properties"
    id = Column(Integer, primary_key=True)

    # Location
    street_address = Column(String(500), nullable=False)
    city = Column(String(255))
    state = Column(String(50))
    zip_code = Column(String(20))
    neighborhood = Column(String(255))
    lat = Column(Float)
    lng = Column(Float)
    google_data_id = Column(String(255))

    # Enrichable fields (written only through the suggestion merger)
    name = Column(String(500))
    contact_phone = Column(String(100))
    contact_email = Column(String(255))
    contact_name = Column(String(255))
    amenities = Column(JSON, default=list)
    leasing_link = Column(String(1000))
    management_company = Column(String(255))

    # Enrichment lifecycle
    enrichment_status = Column(String(20), nullable=False, default=STATUS_PENDING)
    enriched_at = Column(UTCDateTime)
    units_scanned_at = Column(UTCDateTime)

    created_at = Column(UTCDateTime, default=_utcnow)
    updated_at = Column(UTCDateTime, default=_utcnow, onupdate=_utcnow)

    floor_plans = relationship(
        "FloorPlan", back_populates="property", cascade="all, delete-orphan"
    )
    units = relationship("Unit", back_populates="property", cascade="all, delete-orphan")
    specials = relationship(
        "PropertySpecial", back_populates="property", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_properties_enrichment_status", "enrichment_status"),
        Index("ix_properties_city", "city"),
    )


class FloorPlan(Base):
    __tablename__ = "floor_plans"
    id = Column(Integer, primary_key=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    name = Column(String(255), nullable=False)
    beds = Column(Float)
    baths = Column(Float)
    sqft = Column(Integer)
    market_rent = Column(Numeric(10, 2))
    starting_at = Column(Numeric(10, 2))
    units_available = Column(Integer)
    image_url = Column(String(1000))
    created_at = Column(UTCDateTime, default=_utcnow)

    property = relationship("Property", back_populates="floor_plans")
    units = relationship("Unit", back_populates="floor_plan")

    __table_args__ = (Index("ix_floor_plans_property_name", "property_id", "name"),)


class Unit(Base):
    __tablename__ = "units"
    id = Column(Integer, primary_key=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    floor_plan_id = Column(
        Integer, ForeignKey("floor_plans.id", ondelete="CASCADE"), nullable=False
    )
    unit_number = Column(String(50), nullable=False)
    floor = Column(Integer)
    rent = Column(Numeric(10, 2))
    market_rent = Column(Numeric(10, 2))
    available_from = Column(String(50))
    is_available = Column(Boolean, default=True)
    status = Column(String(20), default="available")
    created_at = Column(UTCDateTime, default=_utcnow)

    property = relationship("Property", back_populates="units")
    floor_plan = relationship("FloorPlan", back_populates="units")

    __table_args__ = (Index("ix_units_property_number", "property_id", "unit_number"),)


class PropertySpecial(Base):
    __tablename__ = "property_specials"
    id = Column(Integer, primary_key=True)
    property_id = Column(
        Integer, ForeignKey("properties.id", ondelete="CASCADE"), nullable=False
    )
    special_text = Column(Text, nullable=False)
    source = Column(String(50))
    discovered_at = Column(UTCDateTime, default=_utcnow)
    expires_at = Column(UTCDateTime)
    confidence = Column(Float, default=0.8)
    is_active = Column(Boolean, default=True)

    property = relationship("Property", back_populates="specials")

    __table_args__ = (Index("ix_property_specials_property", "property_id"),)
