"""Shared HTTP clients — connection pooling for all outbound requests.

Two module-level httpx.AsyncClient instances:
  - http: JSON APIs (OpenAI chat completions, SerpAPI). No redirects.
  - http_redirect: property websites and search pages. Follows redirects,
    since leasing sites routinely bounce through tracking and vanity domains.

Components take an optional client in their constructor and fall back to
these, so tests inject an httpx.MockTransport-backed client instead.

Usage:
    from app.http_client import http, http_redirect
    resp = await http.post(url, json=payload, timeout=60)
    resp = await http_redirect.get(url, timeout=15)
"""

import httpx
from loguru import logger

_LIMITS = httpx.Limits(
    max_connections=20,
    max_keepalive_connections=10,
    keepalive_expiry=30,
)

http = httpx.AsyncClient(
    timeout=60,
    limits=_LIMITS,
    follow_redirects=False,
)

http_redirect = httpx.AsyncClient(
    timeout=15,
    limits=_LIMITS,
    follow_redirects=True,
    max_redirects=5,
)


async def close_clients():
    """Shut down both shared clients. Called from app lifespan shutdown."""
    for name, client in (("http", http), ("http_redirect", http_redirect)):
        try:
            await client.aclose()
        except RuntimeError as e:
            logger.debug("http_client_close_failed", client=name, error=str(e))
