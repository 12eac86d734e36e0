"""Service startup visibility — log which external services are enabled.

The status endpoint reuses the same checks, so what the log says at boot
and what GET /api/property/status reports cannot drift apart.
"""

from datetime import datetime, timezone

from loguru import logger

from .config import Settings, get_settings

CAPABILITIES = [
    "Property name detection",
    "Leasing URL discovery",
    "Contact info extraction and verification",
    "Amenities extraction",
    "Management company identification",
    "Floor plan, unit and specials discovery",
]


def _preview(secret: str) -> str:
    return f"{secret[:4]}...{secret[-4:]}" if len(secret) > 8 else ""


def service_flags(settings: Settings) -> dict[str, bool]:
    return {
        "openai": bool(settings.openai_api_key),
        "browserless": bool(settings.browserless_token),
        "serpapi": bool(settings.serp_api_key),
    }


def log_connector_status(settings: Settings | None = None) -> dict[str, bool]:
    """Check each service's credentials and log enabled/disabled status.

    Returns dict mapping service name to enabled (True/False).
    """
    flags = service_flags(settings or get_settings())

    enabled = sorted(k for k, v in flags.items() if v)
    disabled = sorted(k for k, v in flags.items() if not v)

    if enabled:
        logger.info("services_enabled", services=enabled)
    if disabled:
        logger.warning("services_disabled", services=disabled, reason="missing credentials")

    return flags


def status_payload(settings: Settings) -> dict:
    """Body of GET /api/property/status."""
    flags = service_flags(settings)
    return {
        "service": "Property Enrichment",
        "configured": settings.enrichment_configured,
        "configuration": flags,
        "services": {
            "openai": {
                "configured": flags["openai"],
                "keyPreview": _preview(settings.openai_api_key),
                "model": settings.openai_model,
            },
            "browserless": {
                "configured": flags["browserless"],
                "keyPreview": _preview(settings.browserless_token),
                "purpose": "Rendering for JS-heavy sites",
            },
            "serpapi": {
                "configured": flags["serpapi"],
                "keyPreview": _preview(settings.serp_api_key),
                "purpose": "Structured Google search, images, videos and reviews",
            },
        },
        "capabilities": CAPABILITIES if settings.enrichment_configured else [],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
