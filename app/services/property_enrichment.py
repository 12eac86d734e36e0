"""Enrichment orchestrator — one property in, suggestions out.

Flow for enrich():
  1. analyze the snapshot (missing / existing / needs verification)
  2. resolve name + website from the address (skipped when an override URL
     is given)
  3. fetch the website; on success propose it as leasing_link
  4. extract the remaining fields from the website text, or from the search
     text when the website could not be fetched
  5. compare fresh phone/email against stored values (verifications)

Every step degrades: a failed search, fetch, or extraction becomes an
errors[] entry and the run continues with whatever was found. The only
exception that escapes is EnrichmentNotConfiguredError.

deep_search() is the narrower follow-up: given a known leasing site, crawl
its contact-style subpages for the fields a first pass could not find.

Called by: routers/property.py (enrich, deep-search), services/batch_enrichment.py
Depends on: services/search_provider.py, services/content_fetcher.py, services/extractor.py
"""

from datetime import datetime, timezone

from ..config import Settings
from ..logging_config import get_component_logger
from ..schemas.enrichment import (
    DeepSearchResult,
    EnrichmentResult,
    FieldAnalysis,
    PropertySnapshot,
    SearchResolution,
    SourceAttempt,
    Suggestion,
    Verification,
)
from ..utils.normalization import (
    clamp_confidence,
    clean_text,
    format_phone,
    normalize_email,
    phone_digits,
)
from ..utils.openai_client import ExtractionError, OpenAIClient
from .content_fetcher import ContentFetcher
from .extractor import Extractor
from .field_analyzer import analyze, name_is_placeholder
from .search_provider import SearchProvider

WEBSITE_CONFIDENCE = 0.95
DEFAULT_EXTRACTION_CONFIDENCE = 0.7

# Fixed confidences for contact fields read off the property's own pages
FIELD_CONFIDENCE = {
    "contact_phone": 0.9,
    "contact_email": 0.85,
    "contact_name": 0.75,
    "management_company": 0.75,
}

# Suggested on every run, whether or not a value is stored
ALWAYS_SUGGEST = ("contact_phone", "contact_email", "contact_name")

DEEP_SEARCH_PATHS = ("/contact", "/contact-us", "/about", "/apply", "/schedule-tour")
DEEP_SEARCH_DEFAULT_FIELDS = ("contact_phone", "contact_email", "contact_name")
DEEP_SEARCH_CONTENT_LIMIT = 10_000


class EnrichmentNotConfiguredError(RuntimeError):
    """AI extraction or the rendering service has no credentials."""


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _with_scheme(url: str) -> str:
    url = url.strip()
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    return url


def _clean_amenities(raw) -> list[str]:
    if not isinstance(raw, list):
        return []
    seen: set[str] = set()
    out: list[str] = []
    for item in raw:
        text = clean_text(item)
        if text and text.lower() not in seen:
            seen.add(text.lower())
            out.append(text)
    return out


def suggestions_from_extraction(data: dict, source: str, street_address: str = "") -> list[Suggestion]:
    """Turn an extraction response into candidate suggestions.

    Values are normalized first; anything unusable (placeholder name, invalid
    email, empty amenity list) is dropped rather than suggested.
    """
    extracted = data.get("extracted") if isinstance(data, dict) else None
    if not isinstance(extracted, dict):
        return []
    confidence = clamp_confidence(data.get("confidence"), DEFAULT_EXTRACTION_CONFIDENCE)
    out: list[Suggestion] = []

    name = clean_text(extracted.get("property_name"))
    if name and not name_is_placeholder(name, street_address):
        out.append(Suggestion(
            field="name", value=name, confidence=confidence, source=source,
            reason="Official name from property content",
        ))

    phone = format_phone(clean_text(extracted.get("contact_phone")))
    if phone:
        out.append(Suggestion(
            field="contact_phone", value=phone, confidence=FIELD_CONFIDENCE["contact_phone"],
            source=source, reason="Leasing office phone",
        ))

    email = normalize_email(clean_text(extracted.get("contact_email")))
    if email:
        out.append(Suggestion(
            field="contact_email", value=email, confidence=FIELD_CONFIDENCE["contact_email"],
            source=source, reason="Leasing office email",
        ))

    contact = clean_text(extracted.get("contact_name"))
    if contact:
        out.append(Suggestion(
            field="contact_name", value=contact, confidence=FIELD_CONFIDENCE["contact_name"],
            source=source, reason="Leasing contact",
        ))

    amenities = _clean_amenities(extracted.get("amenities"))
    if amenities:
        out.append(Suggestion(
            field="amenities", value=amenities, confidence=confidence, source=source,
            reason=f"{len(amenities)} amenities listed",
        ))

    company = clean_text(extracted.get("management_company"))
    if company:
        out.append(Suggestion(
            field="management_company", value=company,
            confidence=FIELD_CONFIDENCE["management_company"], source=source,
            reason="Management company named on property content",
        ))
    return out


def verify(analysis: FieldAnalysis, suggestions: dict[str, Suggestion]) -> dict[str, Verification]:
    """Compare freshly found contact values with the stored ones."""
    out: dict[str, Verification] = {}
    for field in analysis.needs_verification:
        suggestion = suggestions.get(field)
        if suggestion is None:
            continue
        existing = analysis.existing.get(field)
        if field == "contact_phone":
            matches = phone_digits(existing) == phone_digits(suggestion.value)
        else:
            matches = str(existing or "").strip().lower() == str(suggestion.value).strip().lower()
        out[field] = Verification(
            existing=existing, found=suggestion.value, matches=matches, source=suggestion.source
        )
    return out


class EnrichmentOrchestrator:
    def __init__(
        self,
        settings: Settings,
        search: SearchProvider,
        fetcher: ContentFetcher,
        extractor: Extractor,
        log=None,
    ):
        self.settings = settings
        self.search = search
        self.fetcher = fetcher
        self.extractor = extractor
        self.log = log or get_component_logger("enrichment")

    @classmethod
    def from_settings(cls, settings: Settings, log=None) -> "EnrichmentOrchestrator":
        log = log or get_component_logger("enrichment")
        fetcher = ContentFetcher.from_settings(settings, log=log)
        extractor = Extractor(OpenAIClient(settings, log=log))
        search = SearchProvider.from_settings(settings, fetcher, extractor, log=log)
        return cls(settings, search, fetcher, extractor, log=log)

    def _require_configured(self) -> None:
        if not self.settings.enrichment_configured:
            raise EnrichmentNotConfiguredError(
                "Enrichment requires OPENAI_API_KEY and BROWSERLESS_TOKEN"
            )

    def full_address(self, prop: PropertySnapshot) -> str:
        city = prop.city or self.settings.default_city
        state = prop.state or self.settings.default_state
        address = f"{prop.street_address.strip()}, {city}, {state}"
        if prop.zip_code:
            address = f"{address} {prop.zip_code}"
        return address

    async def enrich(self, prop: PropertySnapshot, website_url: str | None = None) -> EnrichmentResult:
        """Run one enrichment pass. Never writes; returns suggestions only."""
        self._require_configured()

        address = self.full_address(prop)
        analysis = analyze(prop)
        result = EnrichmentResult(
            property_id=prop.id,
            address_used=address,
            field_analysis=analysis,
            started_at=_now(),
        )
        self.log.info(
            "enrichment_started",
            property_id=prop.id,
            address=address,
            missing=analysis.missing,
            override=bool(website_url),
        )

        # Step 1: name + website
        if website_url:
            resolution = SearchResolution(website_url=_with_scheme(website_url), source="property_website")
        else:
            resolution = await self.search.resolve(address)
            result.sources_checked.extend(resolution.attempts)
            result.errors.extend(resolution.errors)

        if (
            resolution.property_name
            and analysis.is_missing("name")
            and not name_is_placeholder(resolution.property_name, prop.street_address)
        ):
            result.add(Suggestion(
                field="name",
                value=resolution.property_name,
                confidence=clamp_confidence(resolution.confidence, DEFAULT_EXTRACTION_CONFIDENCE),
                source=resolution.source or "search_api",
                reason="Name found via property search",
            ))

        # Step 2: the property's own website
        page = None
        if resolution.website_url:
            page = await self.fetcher.fetch(resolution.website_url)
            result.sources_checked.append(SourceAttempt(
                source="property_website",
                query_or_url=resolution.website_url,
                success=page.success,
                error=page.error,
            ))
            if page.success and analysis.is_missing("leasing_link"):
                result.add(Suggestion(
                    field="leasing_link",
                    value=resolution.website_url,
                    confidence=WEBSITE_CONFIDENCE,
                    source=resolution.source or "property_website",
                    reason="Property official website",
                ))
            elif not page.success:
                result.errors.append(f"Property website fetch failed: {page.error}")

        # Step 3: field extraction
        if page is not None and page.success and page.content:
            content, source = page.content, "property_website"
        elif resolution.content and resolution.source:
            content, source = resolution.content, resolution.source
        else:
            content, source = "", None

        wanted = [f for f in analysis.missing if f not in result.suggestions]
        wanted += [f for f in analysis.needs_verification if f not in wanted]

        if not content:
            result.errors.append("No content available for field extraction")
        elif wanted:
            found_name = result.suggestions.get("name")
            known_name = found_name.value if found_name else analysis.existing.get("name")
            try:
                data = await self.extractor.extract_property_fields(
                    content, address, wanted, known_name=known_name, content_source=source
                )
            except ExtractionError as e:
                self.log.warning("enrichment_extraction_failed", property_id=prop.id, error=str(e))
                result.errors.append(f"AI extraction failed: {e}")
            else:
                for suggestion in suggestions_from_extraction(data, source, prop.street_address):
                    if suggestion.field in result.suggestions:
                        continue
                    if suggestion.field in ALWAYS_SUGGEST or analysis.is_missing(suggestion.field):
                        result.add(suggestion)

        # Step 4: verify stale-prone contact fields
        result.verifications = verify(analysis, result.suggestions)

        result.completed_at = _now()
        self.log.info(
            "enrichment_completed",
            property_id=prop.id,
            suggestions=len(result.suggestions),
            verifications=len(result.verifications),
            errors=len(result.errors),
            processing_time_ms=result.processing_time_ms,
        )
        return result

    async def deep_search(
        self,
        leasing_url: str,
        *,
        property_id=None,
        address: str = "",
        missing_fields: list[str] | None = None,
    ) -> DeepSearchResult:
        """Crawl a known leasing site's contact-style subpages for missing fields."""
        self._require_configured()

        base = _with_scheme(leasing_url).rstrip("/")
        fields = list(missing_fields or DEEP_SEARCH_DEFAULT_FIELDS)
        result = DeepSearchResult(property_id=property_id, leasing_url=base, started_at=_now())
        self.log.info("deep_search_started", property_id=property_id, url=base, fields=fields)

        sections: list[str] = []
        collected = 0
        for path in DEEP_SEARCH_PATHS:
            if collected >= DEEP_SEARCH_CONTENT_LIMIT:
                break
            url = base + path
            page = await self.fetcher.fetch(url)
            if not page.success or not page.content:
                self.log.debug("deep_search_page_skipped", url=url, error=page.error)
                continue
            result.pages_scraped.append(url)
            sections.append(f"--- {url} ---\n{page.content}")
            collected += len(page.content)

        if not sections:
            result.errors.append("No subpages could be fetched")
        else:
            try:
                data = await self.extractor.extract_property_fields(
                    "\n\n".join(sections)[:DEEP_SEARCH_CONTENT_LIMIT],
                    address or base,
                    fields,
                    content_source="property website subpages",
                )
            except ExtractionError as e:
                self.log.warning("deep_search_extraction_failed", url=base, error=str(e))
                result.errors.append(f"AI extraction failed: {e}")
            else:
                for suggestion in suggestions_from_extraction(data, "property_website"):
                    if suggestion.field in fields:
                        result.add(suggestion)

        result.completed_at = _now()
        self.log.info(
            "deep_search_completed",
            url=base,
            pages=len(result.pages_scraped),
            suggestions=len(result.suggestions),
        )
        return result
