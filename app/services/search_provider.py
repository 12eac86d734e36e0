"""Search provider — resolve a property's name and official website from its address.

Strategies, tried in order until one finds a name or a website:
  1. search_api: SerpAPI Google results (only when SERP_API_KEY is set).
     Knowledge-graph title wins (0.95); otherwise organic results in rank
     order, skipping aggregator domains (0.85).
  2. search_scrape: fetch a search-engine results page through the content
     fetcher and ask the extractor to name the property and its website.
     Last resort, strictly less reliable.

Aggregator domains (listing sites, social networks, review sites) are never
returned as the website: they block scraping or carry stale data.
resolve() never raises for search failures; it returns nulls plus errors.

Called by: services/property_enrichment.py
Depends on: SerpAPI (SERP_API_KEY), services/content_fetcher.py, services/extractor.py
"""

import re
from abc import ABC, abstractmethod
from urllib.parse import quote_plus, urlparse

import httpx

from ..config import Settings
from ..logging_config import get_component_logger
from ..schemas.enrichment import SearchResolution, SourceAttempt
from ..utils.normalization import clamp_confidence, clean_text
from ..utils.openai_client import ExtractionError
from .content_fetcher import ContentFetcher
from .extractor import Extractor

SERPAPI_URL = "https://serpapi.com/search.json"
SEARCH_PAGE_URL = "https://www.google.com/search?q={query}"

KNOWLEDGE_GRAPH_CONFIDENCE = 0.95
ORGANIC_CONFIDENCE = 0.85
SCRAPE_DEFAULT_CONFIDENCE = 0.8

AGGREGATOR_DOMAINS = (
    "apartments.com",
    "apartmentlist.com",
    "apartmentguide.com",
    "apartmentratings.com",
    "zillow.com",
    "hotpads.com",
    "realtor.com",
    "trulia.com",
    "redfin.com",
    "rent.com",
    "rentcafe.com",
    "forrent.com",
    "zumper.com",
    "padmapper.com",
    "facebook.com",
    "instagram.com",
    "twitter.com",
    "x.com",
    "linkedin.com",
    "youtube.com",
    "yelp.com",
    "bbb.org",
    "yellowpages.com",
    "manta.com",
    "mapquest.com",
    "google.com",
)

_TITLE_SPLIT_RE = re.compile(r"\s*\|\s*|\s+[-–—]\s+|:\s+")
_MARKETING_SUFFIX_RE = re.compile(
    r"\s+(for rent|for lease|official site|official website|homepage|home page|leasing office)\b.*$",
    re.IGNORECASE,
)
_STATE_SUFFIX_RE = re.compile(r",?\s+[A-Z]{2}$")

NAME_MIN_LEN = 3
NAME_MAX_LEN = 60


def domain_of(url: str | None) -> str:
    if not url:
        return ""
    if "://" not in url:
        url = "https://" + url
    host = (urlparse(url).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


def is_aggregator(url: str | None) -> bool:
    host = domain_of(url)
    if not host:
        return False
    return any(host == d or host.endswith("." + d) for d in AGGREGATOR_DOMAINS)


def name_from_title(title: str | None) -> str | None:
    """Derive a property name from a search-result title.

    "Oak Ridge Apartments | Apartments in San Antonio, TX" → "Oak Ridge Apartments"
    "The Vue - Leasing" → "The Vue"
    "Vista Del Sol, TX" → "Vista Del Sol"
    """
    if not title:
        return None
    candidate = _TITLE_SPLIT_RE.split(title.strip())[0]
    candidate = _MARKETING_SUFFIX_RE.sub("", candidate)
    candidate = _STATE_SUFFIX_RE.sub("", candidate)
    candidate = candidate.strip(" ,.-|:–—")
    if NAME_MIN_LEN <= len(candidate) <= NAME_MAX_LEN:
        return candidate
    return None


def build_query(address: str) -> str:
    return f"{address} apartments leasing office"


def parse_serp_results(data: dict) -> SearchResolution:
    """Pick name and website out of a SerpAPI Google response."""
    name: str | None = None
    website: str | None = None
    confidence = 0.0

    kg = data.get("knowledge_graph") or {}
    if kg.get("title"):
        name = str(kg["title"]).strip()
        confidence = KNOWLEDGE_GRAPH_CONFIDENCE
    kg_site = kg.get("website")
    if kg_site and not is_aggregator(kg_site):
        website = kg_site

    organic = data.get("organic_results") or []
    for result in organic:
        if name and website:
            break
        link = result.get("link") or ""
        if not link or is_aggregator(link):
            continue
        if website is None:
            website = link
        if name is None:
            candidate = name_from_title(result.get("title"))
            if candidate:
                name = candidate
                confidence = ORGANIC_CONFIDENCE

    if website and not name:
        confidence = ORGANIC_CONFIDENCE

    lines = []
    if kg:
        lines.append(" ".join(str(kg.get(k, "")) for k in ("title", "type", "description", "phone", "address")))
    for result in organic[:10]:
        lines.append(f"{result.get('title', '')}\n{result.get('snippet', '')}\n{result.get('link', '')}")

    return SearchResolution(
        property_name=name,
        website_url=website,
        confidence=confidence,
        source="search_api",
        content="\n\n".join(line.strip() for line in lines if line.strip()),
    )


class SearchStrategy(ABC):
    name: str = ""

    @abstractmethod
    async def resolve(self, address: str, query: str) -> SearchResolution:
        pass


class SerpApiSearch(SearchStrategy):
    """Structured Google results via SerpAPI."""

    name = "search_api"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None, log=None):
        self.api_key = settings.serp_api_key
        self._client = client
        self.log = log or get_component_logger("search_provider")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            from ..http_client import http

            self._client = http
        return self._client

    async def resolve(self, address: str, query: str) -> SearchResolution:
        params = {"engine": "google", "q": query, "num": "10", "api_key": self.api_key}
        try:
            resp = await self.client.get(SERPAPI_URL, params=params, timeout=20)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self.log.warning("search_api_failed", query=query, error=str(e))
            return SearchResolution(
                source=self.name,
                attempts=[SourceAttempt(source=self.name, query_or_url=query, success=False, error=str(e))],
                errors=[f"Search API failed: {e}"],
            )

        resolution = parse_serp_results(data)
        count = len(data.get("organic_results") or [])
        resolution.attempts.append(
            SourceAttempt(source=self.name, query_or_url=query, success=True, result_count=count)
        )
        self.log.info(
            "search_api_resolved",
            query=query,
            results=count,
            name=resolution.property_name,
            website=resolution.website_url,
        )
        return resolution


class ScrapeSearch(SearchStrategy):
    """Fetch a results page and let the extractor read it."""

    name = "search_scrape"

    def __init__(self, fetcher: ContentFetcher, extractor: Extractor, log=None):
        self.fetcher = fetcher
        self.extractor = extractor
        self.log = log or get_component_logger("search_provider")

    async def resolve(self, address: str, query: str) -> SearchResolution:
        url = SEARCH_PAGE_URL.format(query=quote_plus(query))
        page = await self.fetcher.fetch(url)
        resolution = SearchResolution(
            source=self.name,
            attempts=[SourceAttempt(source=self.name, query_or_url=url, success=page.success, error=page.error)],
        )
        if not page.success:
            resolution.errors.append(f"Search page fetch failed: {page.error}")
            return resolution

        resolution.content = page.content
        try:
            data = await self.extractor.extract_search_result(page.content, address)
        except ExtractionError as e:
            self.log.warning("search_extraction_failed", address=address, error=str(e))
            resolution.errors.append(f"Search extraction failed: {e}")
            return resolution

        name = clean_text(data.get("property_name"))
        website = clean_text(data.get("website_url"))
        if website and not website.startswith(("http://", "https://")):
            website = "https://" + website
        if website and is_aggregator(website):
            self.log.info("search_aggregator_skipped", website=website)
            website = None

        resolution.property_name = name
        resolution.website_url = website
        resolution.confidence = clamp_confidence(data.get("confidence"), SCRAPE_DEFAULT_CONFIDENCE)
        self.log.info("search_scrape_resolved", address=address, name=name, website=website)
        return resolution


class SearchProvider:
    def __init__(self, strategies: list[SearchStrategy], log=None):
        if not strategies:
            raise ValueError("SearchProvider needs at least one strategy")
        self.strategies = list(strategies)
        self.log = log or get_component_logger("search_provider")

    @classmethod
    def from_settings(
        cls, settings: Settings, fetcher: ContentFetcher, extractor: Extractor, log=None
    ) -> "SearchProvider":
        strategies: list[SearchStrategy] = []
        if settings.search_api_configured:
            strategies.append(SerpApiSearch(settings, log=log))
        strategies.append(ScrapeSearch(fetcher, extractor, log=log))
        return cls(strategies, log=log)

    async def resolve(self, address: str) -> SearchResolution:
        query = build_query(address)
        attempts: list[SourceAttempt] = []
        errors: list[str] = []
        fallback: SearchResolution | None = None

        for strategy in self.strategies:
            result = await strategy.resolve(address, query)
            attempts.extend(result.attempts)
            errors.extend(result.errors)
            if result.found:
                return result.model_copy(update={"attempts": attempts, "errors": errors})
            if fallback is None and result.content:
                fallback = result

        self.log.info("search_nothing_found", address=address, strategies=len(self.strategies))
        return SearchResolution(
            source=fallback.source if fallback else None,
            content=fallback.content if fallback else "",
            attempts=attempts,
            errors=errors,
        )
