"""
Tests for app/services/property_enrichment.py

Covers:
- not configured → EnrichmentNotConfiguredError
- full address built with default city/state
- name and leasing_link suggestions from search + successful website fetch
- field extraction from the website, confidences per field
- website fetch failure → extraction falls back to search content
- extraction failure → error recorded, run completes
- override URL skips search
- verifications: digits-only phone match, case-folded email match
- existing values are not re-suggested except contact fields
- deep_search: subpages fetched, pages_scraped, requested fields only

Called by: pytest tests/test_property_enrichment.py -v
"""

import os

os.environ["TESTING"] = "1"

from unittest.mock import AsyncMock, MagicMock

import pytest

from app.schemas.enrichment import FetchResult, PropertySnapshot, SearchResolution, SourceAttempt
from app.services.property_enrichment import (
    DEEP_SEARCH_PATHS,
    EnrichmentNotConfiguredError,
    EnrichmentOrchestrator,
    suggestions_from_extraction,
)
from app.utils.openai_client import ExtractionError

SITE = "https://oakridgeapts.com"

EXTRACTED = {
    "extracted": {
        "property_name": "Oak Ridge Apartments",
        "contact_phone": "210.555.0100",
        "contact_email": "Leasing@OakRidge.com",
        "contact_name": "Dana Smith",
        "amenities": ["Pool", "Fitness Center", "pool"],
        "management_company": "Greystar",
    },
    "confidence": 0.8,
}


def _resolution(**kw):
    base = {
        "property_name": "Oak Ridge Apartments",
        "website_url": SITE,
        "confidence": 0.95,
        "source": "search_api",
        "content": "Oak Ridge Apartments leasing office snippets",
        "attempts": [SourceAttempt(source="search_api", query_or_url="q", success=True, result_count=5)],
    }
    base.update(kw)
    return SearchResolution(**base)


def _orchestrator(settings, resolution=None, page=None, extracted=EXTRACTED, extract_error=None):
    search = MagicMock()
    search.resolve = AsyncMock(return_value=resolution or _resolution())
    fetcher = MagicMock()
    fetcher.fetch = AsyncMock(return_value=page or FetchResult(success=True, url=SITE, content="site text " * 100))
    extractor = MagicMock()
    extractor.extract_property_fields = AsyncMock(return_value=extracted, side_effect=extract_error)
    return EnrichmentOrchestrator(settings, search, fetcher, extractor, log=MagicMock())


@pytest.mark.asyncio
async def test_not_configured_raises(unconfigured_settings):
    orch = _orchestrator(unconfigured_settings)
    with pytest.raises(EnrichmentNotConfiguredError):
        await orch.enrich(PropertySnapshot(street_address="123 Oak Ridge Dr"))
    orch.search.resolve.assert_not_called()


def test_full_address_uses_defaults(settings):
    orch = _orchestrator(settings)
    assert orch.full_address(PropertySnapshot(street_address="123 Oak Ridge Dr")) == "123 Oak Ridge Dr, San Antonio, TX"
    assert orch.full_address(PropertySnapshot(
        street_address="9 Elm St", city="Austin", state="TX", zip_code="78701"
    )) == "9 Elm St, Austin, TX 78701"


@pytest.mark.asyncio
async def test_address_only_property_gets_full_suggestions(settings):
    orch = _orchestrator(settings)
    result = await orch.enrich(PropertySnapshot(id=7, street_address="123 Oak Ridge Dr"))

    s = result.suggestions
    assert s["name"].value == "Oak Ridge Apartments"
    assert s["name"].confidence == 0.95
    assert s["name"].source == "search_api"
    assert s["leasing_link"].value == SITE
    assert s["leasing_link"].confidence == 0.95
    assert s["contact_phone"].value == "(210) 555-0100"
    assert s["contact_phone"].confidence == 0.9
    assert s["contact_email"].value == "leasing@oakridge.com"
    assert s["contact_email"].confidence == 0.85
    assert s["contact_name"].confidence == 0.75
    assert s["amenities"].value == ["Pool", "Fitness Center"]
    assert s["amenities"].confidence == 0.8
    assert s["management_company"].value == "Greystar"
    assert s["contact_phone"].source == "property_website"

    assert [a.source for a in result.sources_checked] == ["search_api", "property_website"]
    assert result.errors == []
    assert result.completed_at is not None
    assert result.address_used == "123 Oak Ridge Dr, San Antonio, TX"


@pytest.mark.asyncio
async def test_website_failure_falls_back_to_search_content(settings):
    page = FetchResult(success=False, url=SITE, method="rendered", error="timeout")
    orch = _orchestrator(settings, page=page)
    result = await orch.enrich(PropertySnapshot(street_address="123 Oak Ridge Dr"))

    assert "leasing_link" not in result.suggestions
    assert result.errors == ["Property website fetch failed: timeout"]
    args, kwargs = orch.extractor.extract_property_fields.call_args
    assert args[0] == "Oak Ridge Apartments leasing office snippets"
    assert kwargs["content_source"] == "search_api"
    assert result.suggestions["contact_phone"].source == "search_api"


@pytest.mark.asyncio
async def test_extraction_failure_is_recorded(settings):
    orch = _orchestrator(settings, extract_error=ExtractionError("OpenAI API error: 500"))
    result = await orch.enrich(PropertySnapshot(street_address="123 Oak Ridge Dr"))
    assert set(result.suggestions) == {"name", "leasing_link"}
    assert result.errors == ["AI extraction failed: OpenAI API error: 500"]


@pytest.mark.asyncio
async def test_nothing_found_anywhere(settings):
    resolution = SearchResolution(errors=["Search API failed: HTTP 500"])
    orch = _orchestrator(settings, resolution=resolution)
    result = await orch.enrich(PropertySnapshot(street_address="123 Oak Ridge Dr"))
    assert result.suggestions == {}
    assert "No content available for field extraction" in result.errors
    orch.fetcher.fetch.assert_not_called()


@pytest.mark.asyncio
async def test_override_url_skips_search(settings):
    orch = _orchestrator(settings)
    result = await orch.enrich(PropertySnapshot(street_address="123 Oak Ridge Dr"), website_url="oakridgeapts.com")
    orch.search.resolve.assert_not_called()
    orch.fetcher.fetch.assert_awaited_once_with("https://oakridgeapts.com")
    assert result.suggestions["leasing_link"].source == "property_website"


@pytest.mark.asyncio
async def test_existing_fields_not_resuggested_but_contacts_verified(settings):
    prop = PropertySnapshot(
        street_address="123 Oak Ridge Dr",
        name="Oak Ridge Apartments",
        contact_phone="(210) 555-0100",
        contact_email="old@oakridge.com",
        amenities=["Pool"],
        leasing_link=SITE,
        management_company="Lincoln",
    )
    orch = _orchestrator(settings)
    result = await orch.enrich(prop)

    assert "name" not in result.suggestions
    assert "amenities" not in result.suggestions
    assert "management_company" not in result.suggestions
    assert "leasing_link" not in result.suggestions
    assert "contact_phone" in result.suggestions

    assert result.verifications["contact_phone"].matches is True
    assert result.verifications["contact_email"].matches is False
    assert result.verifications["contact_email"].found == "leasing@oakridge.com"


@pytest.mark.asyncio
async def test_email_verification_is_case_insensitive(settings):
    prop = PropertySnapshot(street_address="123 Oak Ridge Dr", contact_email="LEASING@oakridge.com")
    result = await _orchestrator(settings).enrich(prop)
    assert result.verifications["contact_email"].matches is True


def test_suggestions_from_extraction_drops_unusable_values():
    data = {"extracted": {
        "property_name": "123 Oak Ridge Dr",
        "contact_phone": "null",
        "contact_email": "not-an-email",
        "amenities": [],
        "management_company": "N/A",
    }}
    assert suggestions_from_extraction(data, "property_website", "123 Oak Ridge Dr") == []


def test_suggestions_from_extraction_bad_shape():
    assert suggestions_from_extraction({"extracted": "nope"}, "property_website") == []


# ── Deep search ──────────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_deep_search_scrapes_subpages(settings):
    orch = _orchestrator(settings)

    async def fetch(url):
        if url.endswith("/contact"):
            return FetchResult(success=True, url=url, content="Email leasing@oakridge.com")
        return FetchResult(success=False, url=url, error="HTTP 404")

    orch.fetcher.fetch = AsyncMock(side_effect=fetch)
    result = await orch.deep_search(SITE + "/", property_id=7, missing_fields=["contact_email"])

    fetched = [c.args[0] for c in orch.fetcher.fetch.call_args_list]
    assert fetched == [SITE + p for p in DEEP_SEARCH_PATHS]
    assert result.pages_scraped == [SITE + "/contact"]
    assert set(result.suggestions) == {"contact_email"}
    assert result.errors == []


@pytest.mark.asyncio
async def test_deep_search_no_pages(settings):
    orch = _orchestrator(settings, page=FetchResult(success=False, url=SITE, error="HTTP 404"))
    result = await orch.deep_search(SITE)
    assert result.pages_scraped == []
    assert result.errors == ["No subpages could be fetched"]
    orch.extractor.extract_property_fields.assert_not_called()


@pytest.mark.asyncio
async def test_deep_search_not_configured(unconfigured_settings):
    with pytest.raises(EnrichmentNotConfiguredError):
        await _orchestrator(unconfigured_settings).deep_search(SITE)
