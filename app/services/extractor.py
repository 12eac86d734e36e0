"""Extractor — LLM prompts that turn raw page text into structured fields.

Call sites:
  - extract_search_result: search-results text → property name + website
    (scrape fallback of the search provider only)
  - extract_property_fields: property-website text → contact, amenities,
    management company for the fields still missing
  - extract_inventory: leasing-site or search text → floor plans, units,
    specials (unit discovery)

All of them let ExtractionError propagate; the orchestrators catch it and
record an errors[] entry, so a failed extraction only means fewer
suggestions.

Called by: services/search_provider.py, services/property_enrichment.py, services/unit_discovery.py
Depends on: utils/openai_client.py
"""

from collections.abc import Iterable

from ..utils.openai_client import OpenAIClient
from .field_analyzer import ENRICHABLE_FIELDS

SEARCH_CONTENT_LIMIT = 8_000
PROPERTY_CONTENT_LIMIT = 10_000
UNIT_CONTENT_LIMIT = 8_000

SEARCH_SYSTEM_PROMPT = "You extract property information from search results. Return valid JSON only."

PROPERTY_SYSTEM_PROMPT = """You are a real estate data extraction expert. Extract property information from webpage content.

IMPORTANT RULES:
1. Only extract data you're confident about
2. Phone format: (XXX) XXX-XXXX
3. Don't make up data - use null if not found
4. Prioritize contact_phone - agents need this for follow-up

Respond with JSON:
{
    "extracted": {
        "property_name": "Official apartment name",
        "contact_phone": "(XXX) XXX-XXXX or null",
        "contact_email": "email@domain.com or null",
        "contact_name": "Leasing agent name or null",
        "amenities": ["array", "of", "amenities"] or [],
        "management_company": "Company name or null"
    },
    "confidence": 0.0-1.0
}"""

INVENTORY_SYSTEM_PROMPT = """You extract apartment inventory from leasing website content.

Rules:
- unit_number must be a specific apartment number (101, 3B), never a floor plan name
- rents are monthly numbers without currency symbols
- available_from is an ISO date (YYYY-MM-DD) or null
- specials are move-in offers or concessions currently advertised
- use null for anything not present; never invent units

Respond with JSON:
{
    "floorPlans": [{"name": "A1", "beds": 1, "baths": 1, "sqft": 750, "rent_min": 1200, "rent_max": 1400, "units_available": 3}],
    "units": [{"unit_number": "101", "floor": 1, "rent": 1250, "available_from": "2025-01-15", "floor_plan_name": "A1"}],
    "specials": [{"text": "6 weeks free on select units", "expires": "2025-02-28 or null"}]
}"""


class Extractor:
    def __init__(self, client: OpenAIClient):
        self.client = client

    async def extract(self, system_prompt: str, user_prompt: str) -> dict:
        return await self.client.chat_json(system_prompt, user_prompt)

    async def extract_search_result(self, content: str, address: str) -> dict:
        """Name the property at `address` and its own website from search-results text."""
        prompt = f"""From these search results, find the apartment complex at this address: "{address}"

Extract:
1. The official property/apartment name (NOT the address)
2. The property's own website URL (NOT aggregator sites like apartments.com, zillow, etc)

Search results:
{content[:SEARCH_CONTENT_LIMIT]}

Respond with JSON only:
{{
    "property_name": "The official name or null if not found",
    "website_url": "The property's own website URL or null",
    "confidence": 0.0-1.0
}}"""
        return await self.extract(SEARCH_SYSTEM_PROMPT, prompt)

    async def extract_property_fields(
        self,
        content: str,
        address: str,
        missing_fields: Iterable[str],
        *,
        known_name: str | None = None,
        content_source: str = "property_website",
    ) -> dict:
        """Extract the still-missing property fields from scraped website text."""
        missing_list = "\n".join(
            f"- {f}: {ENRICHABLE_FIELDS.get(f, f)}" for f in missing_fields
        )
        known = f"Known Name: {known_name}\n" if known_name else ""
        prompt = f"""Property: {address}
{known}
Find these MISSING fields:
{missing_list or 'None'}

Content from {content_source}:
---
{content[:PROPERTY_CONTENT_LIMIT] or 'No content'}
---

Return JSON only."""
        return await self.extract(PROPERTY_SYSTEM_PROMPT, prompt)

    async def extract_inventory(
        self,
        content: str,
        property_name: str,
        *,
        known_floor_plans: Iterable[str] = (),
    ) -> dict:
        """Extract floor plans, units and specials from leasing-site text."""
        known = ", ".join(known_floor_plans)
        known_line = f"Known floor plans: {known}\n" if known else ""
        prompt = f"""Property: {property_name}
{known_line}
Content:
---
{content[:UNIT_CONTENT_LIMIT]}
---

Return JSON only."""
        return await self.extract(INVENTORY_SYSTEM_PROMPT, prompt)
