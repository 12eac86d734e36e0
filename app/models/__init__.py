"""Database models — re-exports all models.

Import from here:  from app.models import Property, FloorPlan, ...
Or from submodules: from app.models.property import Property
"""

from .base import Base  # noqa: F401

# Properties and their discovered inventory
from .property import (  # noqa: F401
    ENRICHMENT_STATUSES,
    STATUS_ENRICHED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_REVIEWED,
    STATUS_UNITS_SCANNED,
    FloorPlan,
    Property,
    PropertySpecial,
    Unit,
)
