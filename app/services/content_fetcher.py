"""Content fetcher — textual content of a URL, cheap path first.

Strategies are tried in order until one returns enough text:
  1. direct: plain HTTP GET with browser-like headers (15s timeout)
  2. rendered: headless Chrome on the Browserless rendering service,
     driven by Playwright over CDP (30s navigation timeout)

The rendered tier runs only when the direct tier failed or returned fewer
than min_content_chars characters. Escalation is one-shot: when every tier
fails the last failure is returned as data, never raised.

Called by: services/search_provider.py, services/property_enrichment.py, services/unit_discovery.py
Depends on: http_client (http_redirect), Browserless (BROWSERLESS_TOKEN)
"""

import asyncio
import random
import re
from abc import ABC, abstractmethod
from urllib.parse import quote

import httpx
from bs4 import BeautifulSoup, Comment

from ..config import Settings
from ..logging_config import get_component_logger
from ..schemas.enrichment import FetchResult

USER_AGENTS = [
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
]

VIEWPORTS = [
    {"width": 1920, "height": 1080},
    {"width": 1536, "height": 864},
    {"width": 1440, "height": 900},
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Cache-Control": "no-cache",
    "Upgrade-Insecure-Requests": "1",
}

# Subresources aborted in the rendered tier; text extraction never needs them
BLOCKED_RESOURCE_TYPES = {"image", "font", "stylesheet", "media"}

STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3, 4, 5] });
Object.defineProperty(navigator, 'languages', { get: () => ['en-US', 'en'] });
window.chrome = { runtime: {} };
"""

EXTRACT_SCRIPT = """
() => {
    const meta = document.querySelector('meta[name="description"]');
    const description = meta ? (meta.getAttribute('content') || '') : '';
    document.querySelectorAll('script, style, noscript, nav, footer, header').forEach(el => el.remove());
    const main = document.querySelector('main, [role="main"], .content, article') || document.body;
    return { text: main ? main.innerText : '', description };
}
"""

_WS_RE = re.compile(r"\s+")
_META_DESC_NAME = re.compile(r"^description$", re.IGNORECASE)


def collapse_whitespace(text: str) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def parse_page(html: str, limit: int) -> tuple[str, str, str]:
    """Return (title, meta description, visible text) of an HTML page.

    script/style/noscript blocks and comments are dropped before the text is taken;
    the text is whitespace-collapsed and truncated to limit characters.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    title = collapse_whitespace(soup.title.get_text(" ")) if soup.title else ""
    meta = soup.find("meta", attrs={"name": _META_DESC_NAME})
    description = collapse_whitespace(meta.get("content", "")) if meta else ""

    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    text = collapse_whitespace(soup.get_text(" "))[:limit]
    return title, description, text


def html_to_text(html: str, limit: int) -> str:
    return parse_page(html, limit)[2]


class FetchStrategy(ABC):
    """One way of retrieving a page. Never raises; failures come back as data."""

    name: str = ""

    @abstractmethod
    async def fetch(self, url: str) -> FetchResult:
        pass


class DirectFetch(FetchStrategy):
    """Plain HTTP GET with a rotating realistic user-agent."""

    name = "direct"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None, log=None):
        self.timeout = settings.direct_fetch_timeout
        self.max_chars = settings.max_content_chars
        self._client = client
        self.log = log or get_component_logger("content_fetcher")

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            from ..http_client import http_redirect

            self._client = http_redirect
        return self._client

    async def fetch(self, url: str) -> FetchResult:
        headers = {**BROWSER_HEADERS, "User-Agent": random.choice(USER_AGENTS)}
        try:
            resp = await self.client.get(url, headers=headers, timeout=self.timeout)
        except httpx.HTTPError as e:
            self.log.info("direct_fetch_failed", url=url, error=str(e) or type(e).__name__)
            return FetchResult(success=False, url=url, method=self.name, error=str(e) or type(e).__name__)

        if not resp.is_success:
            self.log.info("direct_fetch_failed", url=url, status=resp.status_code)
            return FetchResult(success=False, url=url, method=self.name, error=f"HTTP {resp.status_code}")

        title, description, content = parse_page(resp.text, self.max_chars)
        return FetchResult(
            success=True,
            url=url,
            title=title,
            description=description,
            content=content,
            method=self.name,
        )


class RenderedFetch(FetchStrategy):
    """Full browser rendering through the remote Browserless service."""

    name = "rendered"

    def __init__(self, settings: Settings, log=None, delay_range: tuple[float, float] = (1.5, 3.0)):
        self.token = settings.browserless_token
        self.ws_url = settings.browserless_ws_url
        self.timeout_ms = int(settings.render_timeout * 1000)
        self.max_chars = settings.max_content_chars
        self.delay_range = delay_range
        self.log = log or get_component_logger("content_fetcher")

    @property
    def endpoint(self) -> str:
        return f"{self.ws_url}?token={quote(self.token)}&stealth=true&blockAds=true"

    async def fetch(self, url: str) -> FetchResult:
        if not self.token:
            return FetchResult(success=False, url=url, method=self.name, error="Rendering service not configured")

        from playwright.async_api import async_playwright

        try:
            async with async_playwright() as pw:
                browser = await pw.chromium.connect_over_cdp(self.endpoint, timeout=self.timeout_ms)
                try:
                    context = await browser.new_context(
                        user_agent=random.choice(USER_AGENTS),
                        viewport=random.choice(VIEWPORTS),
                        locale="en-US",
                        extra_http_headers={"Accept-Language": BROWSER_HEADERS["Accept-Language"]},
                    )
                    await context.add_init_script(STEALTH_SCRIPT)
                    page = await context.new_page()
                    await page.route("**/*", _block_heavy_resources)
                    await page.goto(url, wait_until="domcontentloaded", timeout=self.timeout_ms)
                    await asyncio.sleep(random.uniform(*self.delay_range))
                    data = await page.evaluate(EXTRACT_SCRIPT)
                    title = await page.title()
                finally:
                    await browser.close()
        except Exception as e:
            self.log.warning("rendered_fetch_failed", url=url, error=str(e) or type(e).__name__)
            return FetchResult(success=False, url=url, method=self.name, error=str(e) or type(e).__name__)

        data = data or {}
        return FetchResult(
            success=True,
            url=url,
            title=collapse_whitespace(title),
            description=collapse_whitespace(data.get("description", "")),
            content=collapse_whitespace(data.get("text", ""))[: self.max_chars],
            method=self.name,
        )


async def _block_heavy_resources(route) -> None:
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class ContentFetcher:
    """Try fetch strategies in order; escalate when content is missing or short."""

    def __init__(self, strategies: list[FetchStrategy], min_content_chars: int = 500, log=None):
        if not strategies:
            raise ValueError("ContentFetcher needs at least one strategy")
        self.strategies = list(strategies)
        self.min_content_chars = min_content_chars
        self.log = log or get_component_logger("content_fetcher")

    @classmethod
    def from_settings(cls, settings: Settings, log=None) -> "ContentFetcher":
        return cls(
            [DirectFetch(settings, log=log), RenderedFetch(settings, log=log)],
            min_content_chars=settings.min_content_chars,
            log=log,
        )

    async def fetch(self, url: str) -> FetchResult:
        short_result: FetchResult | None = None
        result: FetchResult | None = None

        for i, strategy in enumerate(self.strategies):
            is_last = i == len(self.strategies) - 1
            result = await strategy.fetch(url)
            self.log.info(
                "fetch_attempt",
                url=url,
                method=strategy.name,
                success=result.success,
                chars=len(result.content),
            )

            if result.success and (len(result.content) >= self.min_content_chars or is_last):
                return result
            if result.success and short_result is None:
                short_result = result
            if not is_last:
                self.log.info("fetch_escalating", url=url, from_method=strategy.name)

        # Every escalation failed; short usable content beats a bare failure
        if short_result is not None:
            return short_result
        return result
