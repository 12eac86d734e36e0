"""Unit discovery — floor plans, units and specials for one property.

Three steps, each only as expensive as it needs to be:
  1. SerpAPI blitz (SERP_API_KEY only): YouTube tour videos, Google Images
     floor-plan and unit-type images, Google Maps reviews when the
     property's google_data_id is known. Video text and review text are
     kept as extraction input.
  2. LLM extraction over the step 1 text.
  3. Only if still no floor plans: fetch the leasing URL and its
     /floor-plans and /floorplans pages, extract from the first that yields
     floor plans.

Floor-plan images from step 1 fill image_url on plans that have none, matched
by plan name in the image title. Nothing here writes to the database; the
batch driver persists the result.

Called by: routers/property.py (unit-search), services/batch_enrichment.py
Depends on: SerpAPI (SERP_API_KEY), services/content_fetcher.py, services/extractor.py
"""

import httpx
from pydantic import ValidationError

from ..config import Settings
from ..logging_config import get_component_logger
from ..schemas.enrichment import (
    DiscoveredFloorPlan,
    DiscoveredSpecial,
    DiscoveredUnit,
    UnitDiscoveryResult,
)
from ..utils.openai_client import ExtractionError, OpenAIClient
from .content_fetcher import ContentFetcher
from .extractor import Extractor
from .search_provider import SERPAPI_URL

MIN_TEXT_CHARS = 50
UNIT_TYPES = ("1 bedroom", "2 bedroom", "studio")
FLOOR_PLAN_PATHS = ("", "/floor-plans", "/floorplans")


def _usable_image(img: dict) -> bool:
    url = img.get("url") or ""
    return bool(url) and "logo" not in url.lower()


def parse_inventory(data: dict, errors: list[str] | None = None) -> tuple[
    list[DiscoveredFloorPlan], list[DiscoveredUnit], list[DiscoveredSpecial]
]:
    """Validate an extraction response into typed records, dropping bad rows."""
    plans: list[DiscoveredFloorPlan] = []
    units: list[DiscoveredUnit] = []
    specials: list[DiscoveredSpecial] = []
    if not isinstance(data, dict):
        return plans, units, specials

    for model, key, out in (
        (DiscoveredFloorPlan, "floorPlans", plans),
        (DiscoveredUnit, "units", units),
        (DiscoveredSpecial, "specials", specials),
    ):
        rows = data.get(key) or []
        if not isinstance(rows, list):
            continue
        for row in rows:
            if not isinstance(row, dict):
                continue
            try:
                out.append(model.model_validate(row))
            except ValidationError as e:
                if errors is not None:
                    errors.append(f"Dropped invalid {key} row: {e.errors()[0]['msg']}")

    # Same plan listed twice on one page: keep the first
    unique: dict[str, DiscoveredFloorPlan] = {}
    for plan in plans:
        unique.setdefault(plan.name.lower(), plan)
    return list(unique.values()), units, specials


class UnitDiscoveryOrchestrator:
    def __init__(
        self,
        settings: Settings,
        fetcher: ContentFetcher,
        extractor: Extractor,
        client: httpx.AsyncClient | None = None,
        log=None,
    ):
        self.settings = settings
        self.fetcher = fetcher
        self.extractor = extractor
        self._client = client
        self.log = log or get_component_logger("unit_discovery")

    @classmethod
    def from_settings(cls, settings: Settings, log=None) -> "UnitDiscoveryOrchestrator":
        log = log or get_component_logger("unit_discovery")
        return cls(
            settings,
            ContentFetcher.from_settings(settings, log=log),
            Extractor(OpenAIClient(settings, log=log)),
            log=log,
        )

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            from ..http_client import http

            self._client = http
        return self._client

    # ── Step 1: SerpAPI ──────────────────────────────────────────────

    async def _serp(self, params: dict) -> dict:
        """One SerpAPI call; failures are logged and come back empty."""
        params = {**params, "api_key": self.settings.serp_api_key}
        try:
            resp = await self.client.get(SERPAPI_URL, params=params, timeout=20)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self.log.warning("serpapi_call_failed", engine=params.get("engine"), error=str(e))
            return {}

    async def search_videos(self, name: str, city: str) -> tuple[list[dict], list[str]]:
        videos: list[dict] = []
        texts: list[str] = []
        for query in (f'"{name}" apartment tour', f'"{name}" {city} apartments'):
            data = await self._serp({"engine": "youtube", "search_query": query})
            for v in (data.get("video_results") or [])[:5]:
                videos.append({
                    "title": v.get("title"),
                    "link": v.get("link"),
                    "thumbnail": (v.get("thumbnail") or {}).get("static"),
                    "duration": (v.get("length") or {}).get("text"),
                    "channel": (v.get("channel") or {}).get("name"),
                    "description": v.get("description"),
                })
                texts.extend(t for t in (v.get("title"), v.get("description")) if t)
        return videos, texts

    async def search_floor_plan_images(self, name: str, city: str) -> list[dict]:
        data = await self._serp({"engine": "google_images", "q": f'"{name}" floor plan {city}', "num": "15"})
        images = [
            {"url": img.get("original"), "thumbnail": img.get("thumbnail"),
             "title": img.get("title"), "source": img.get("source")}
            for img in (data.get("images_results") or [])[:10]
        ]
        return [img for img in images if _usable_image(img)]

    async def search_unit_images(self, name: str, city: str) -> list[dict]:
        images: list[dict] = []
        for unit_type in UNIT_TYPES:
            data = await self._serp({"engine": "google_images", "q": f'"{name}" {unit_type} {city}', "num": "5"})
            for img in (data.get("images_results") or [])[:3]:
                images.append({"url": img.get("original"), "thumbnail": img.get("thumbnail"),
                               "unit_type": unit_type, "title": img.get("title")})
        return [img for img in images if _usable_image(img)]

    async def search_reviews(self, data_id: str) -> list[dict]:
        data = await self._serp({"engine": "google_maps_reviews", "data_id": data_id, "sort_by": "newestFirst"})
        return [
            {"rating": r.get("rating"), "text": r.get("snippet") or r.get("text"),
             "date": r.get("date"), "author": (r.get("user") or {}).get("name")}
            for r in (data.get("reviews") or [])[:15]
        ]

    # ── Steps 2-3: extraction ────────────────────────────────────────

    async def _extract(self, text: str, name: str, result: UnitDiscoveryResult) -> bool:
        try:
            data = await self.extractor.extract_inventory(text, name)
        except ExtractionError as e:
            self.log.warning("inventory_extraction_failed", property=name, error=str(e))
            result.errors.append(f"AI extraction failed: {e}")
            return False
        plans, units, specials = parse_inventory(data, result.errors)
        if not plans:
            return False
        result.floor_plans, result.units, result.specials = plans, units, specials
        return True

    async def _scrape_leasing_site(self, leasing_url: str, name: str, result: UnitDiscoveryResult) -> None:
        base = leasing_url.strip().rstrip("/")
        if not base.startswith(("http://", "https://")):
            base = "https://" + base
        for path in FLOOR_PLAN_PATHS:
            url = base + path
            page = await self.fetcher.fetch(url)
            if not page.success or len(page.content) < MIN_TEXT_CHARS:
                self.log.debug("floor_plan_page_skipped", url=url, error=page.error)
                continue
            if await self._extract(page.content, name, result):
                result.sources.append(url)
                return
        result.errors.append("No floor plans found on leasing site")

    @staticmethod
    def _attach_images(result: UnitDiscoveryResult) -> None:
        images = result.images.get("floor_plans") or []
        for i, plan in enumerate(result.floor_plans):
            if plan.image_url:
                continue
            needle = plan.name.lower()
            for img in images:
                if needle in (img.get("title") or "").lower():
                    result.floor_plans[i] = plan.model_copy(update={"image_url": img["url"]})
                    break

    async def discover(
        self,
        *,
        property_id=None,
        property_name: str | None = None,
        leasing_url: str | None = None,
        city: str | None = None,
        google_data_id: str | None = None,
    ) -> UnitDiscoveryResult:
        name = (property_name or "").strip() or leasing_url or ""
        city = city or self.settings.default_city
        result = UnitDiscoveryResult(property_id=property_id, property_name=property_name)
        self.log.info("unit_discovery_started", property_id=property_id, property=name, leasing_url=leasing_url)

        # Step 1
        text = ""
        if self.settings.search_api_configured and property_name:
            videos, video_texts = await self.search_videos(name, city)
            result.videos = videos
            result.images["floor_plans"] = await self.search_floor_plan_images(name, city)
            result.images["units"] = await self.search_unit_images(name, city)
            if google_data_id:
                result.reviews = await self.search_reviews(google_data_id)
            text = "\n\n".join(video_texts + [r["text"] for r in result.reviews if r.get("text")])
            result.sources.append("serpapi")

        # Step 2
        if len(text) > MIN_TEXT_CHARS and await self._extract(text, name, result):
            result.sources.append("ai_extraction")

        # Step 3
        if not result.floor_plans:
            if leasing_url:
                await self._scrape_leasing_site(leasing_url, name, result)
            else:
                result.errors.append("No leasing URL to scrape for floor plans")

        self._attach_images(result)
        self.log.info(
            "unit_discovery_completed",
            property_id=property_id,
            floor_plans=len(result.floor_plans),
            units=len(result.units),
            specials=len(result.specials),
            videos=len(result.videos),
            sources=result.sources,
        )
        return result
