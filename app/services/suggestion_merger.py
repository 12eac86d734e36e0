"""Suggestion merger — safe re-enrichment policy.

Decides, per suggested field, whether the suggestion may be written:
  - confidence below the floor (0.6) → dropped, even into an empty field
  - field name renamed to its storage column first (amenities_tags → amenities)
  - no storage column → dropped and logged at WARNING, never coerced
  - forced field, or stored value None / blank string / empty collection → applied
  - anything else → left alone, whatever the confidence

Enrichment runs repeatedly over time; this keeps a later low-quality run
from clobbering a manually corrected value.

Called by: services/batch_enrichment.py, dependencies.py
Depends on: services/field_analyzer.py
"""

from collections.abc import Iterable, Mapping
from typing import Any

from ..logging_config import get_component_logger
from ..schemas.enrichment import Suggestion
from .field_analyzer import ENRICHABLE_FIELDS

DEFAULT_CONFIDENCE_FLOOR = 0.6

# Storage columns the merger may write
VALID_COLUMNS = frozenset(ENRICHABLE_FIELDS)

# Suggestion vocabulary → storage column. Hand-maintained: a suggested field
# missing from both this table and VALID_COLUMNS is dropped with a warning.
FIELD_RENAMES = {
    "amenities_tags": "amenities",
    "amenity_list": "amenities",
    "property_name": "name",
    "community_name": "name",
    "phone": "contact_phone",
    "leasing_phone": "contact_phone",
    "email": "contact_email",
    "leasing_email": "contact_email",
    "leasing_contact": "contact_name",
    "website": "leasing_link",
    "website_url": "leasing_link",
    "leasing_url": "leasing_link",
    "management": "management_company",
    "property_manager": "management_company",
}


def storage_column(field: str) -> str | None:
    """Map a suggestion field name to its storage column, or None if it has none."""
    column = FIELD_RENAMES.get(field, field)
    return column if column in VALID_COLUMNS else None


def is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def _current_value(current: Mapping | Any, column: str) -> Any:
    if isinstance(current, Mapping):
        return current.get(column)
    return getattr(current, column, None)


class SuggestionMerger:
    def __init__(self, confidence_floor: float = DEFAULT_CONFIDENCE_FLOOR, log=None):
        self.confidence_floor = confidence_floor
        self.log = log or get_component_logger("suggestion_merger")

    def merge(
        self,
        current: Mapping | Any,
        suggestions: Mapping[str, Suggestion],
        force_fields: Iterable[str] = (),
    ) -> dict[str, Any]:
        """Return the storage-column update set allowed by the policy.

        `current` is the stored record (mapping or ORM row); it is not modified.
        """
        forced = {storage_column(f) or f for f in force_fields}
        updates: dict[str, Any] = {}
        winning_confidence: dict[str, float] = {}

        for key, suggestion in suggestions.items():
            if suggestion.confidence < self.confidence_floor:
                self.log.debug(
                    "suggestion_below_floor",
                    field=key,
                    confidence=suggestion.confidence,
                    floor=self.confidence_floor,
                )
                continue

            column = storage_column(suggestion.field)
            if column is None:
                self.log.warning("suggestion_unmapped_field", field=suggestion.field, source=suggestion.source)
                continue

            if column not in forced and not is_empty(_current_value(current, column)):
                continue

            if column in updates and winning_confidence[column] >= suggestion.confidence:
                continue

            updates[column] = suggestion.value
            winning_confidence[column] = suggestion.confidence

        return updates


def merge(
    current: Mapping | Any,
    suggestions: Mapping[str, Suggestion],
    force_fields: Iterable[str] = (),
    confidence_floor: float = DEFAULT_CONFIDENCE_FLOOR,
) -> dict[str, Any]:
    """Module-level shortcut for SuggestionMerger(confidence_floor).merge(...)."""
    return SuggestionMerger(confidence_floor).merge(current, suggestions, force_fields)
