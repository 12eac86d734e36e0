"""Field analyzer — classify a property's enrichable fields before a run.

Pure function over the property snapshot taken at the start of a run. The
result is recomputed on every invocation and never stored, because the
record may have been edited since the last run.

Rules:
  - name: missing if absent, equal to the street address, or containing the
    address's first comma-delimited segment (address used as placeholder)
  - contact_phone, contact_email: present values need verification
  - contact_name, leasing_link, management_company: present / missing
  - amenities: missing if absent or empty

Called by: services/property_enrichment.py, services/suggestion_merger.py, services/extractor.py
Depends on: schemas/enrichment.py
"""

from collections.abc import Mapping
from typing import Any

from ..schemas.enrichment import FieldAnalysis, PropertySnapshot

# Enrichable fields in priority order, with the description used in prompts
ENRICHABLE_FIELDS = {
    "name": "Property/community name",
    "contact_phone": "Leasing office phone",
    "contact_email": "Leasing office email",
    "contact_name": "Leasing contact name",
    "amenities": "Property amenities",
    "leasing_link": "Leasing/apply URL",
    "management_company": "Management company",
}

# Stale-prone contact fields, re-checked against fresh sources on every run
VERIFY_FIELDS = ("contact_phone", "contact_email")


def _get(prop: PropertySnapshot | Mapping, key: str) -> Any:
    if isinstance(prop, Mapping):
        return prop.get(key)
    return getattr(prop, key, None)


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def name_is_placeholder(name: str | None, address: str | None) -> bool:
    """True if the name is missing or is really just the street address."""
    name = (name or "").strip()
    address = (address or "").strip()
    if not name:
        return True
    if not address:
        return False
    if name == address:
        return True
    first_segment = address.split(",")[0].strip()
    return bool(first_segment) and first_segment in name


def analyze(prop: PropertySnapshot | Mapping) -> FieldAnalysis:
    """Classify every enrichable field as missing, existing, or needing verification."""
    address = _get(prop, "street_address") or _get(prop, "address") or ""
    name = _get(prop, "community_name") or _get(prop, "name") or ""

    analysis = FieldAnalysis()

    if name_is_placeholder(name, address):
        analysis.missing.append("name")
    else:
        analysis.existing["name"] = name

    for field in ENRICHABLE_FIELDS:
        if field == "name":
            continue
        value = _get(prop, field)
        if not _present(value):
            analysis.missing.append(field)
            continue
        analysis.existing[field] = value
        if field in VERIFY_FIELDS:
            analysis.needs_verification.append(field)

    return analysis
