"""Property enrichment API — status, single enrich, batch, deep search, unit search.

Suggestions are returned, never written, except by the batch endpoint,
which persists through the suggestion merger.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Body, Depends, HTTPException
from loguru import logger

from ..config import Settings
from ..connector_status import status_payload
from ..dependencies import (
    get_app_settings,
    get_batch_driver,
    get_orchestrator,
    get_unit_discovery,
)
from ..schemas.enrichment import PropertySnapshot
from ..schemas.property import (
    BatchEnrichRequest,
    DeepSearchRequest,
    EnrichRequest,
    UnitSearchRequest,
)
from ..services.batch_enrichment import BatchDriver
from ..services.property_enrichment import (
    EnrichmentNotConfiguredError,
    EnrichmentOrchestrator,
)
from ..services.unit_discovery import UnitDiscoveryOrchestrator

router = APIRouter(tags=["property"])
log = logger.bind(component="api")

NOT_CONFIGURED = "Enrichment not configured: missing OPENAI_API_KEY or BROWSERLESS_TOKEN"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def _dump_map(items: dict) -> dict:
    return {k: v.model_dump() for k, v in items.items()}


@router.get("/api/property/status")
def api_status(settings: Settings = Depends(get_app_settings)):
    """Which external services are configured, and what enrichment can do."""
    return status_payload(settings)


@router.post("/api/property/enrich")
async def api_enrich(
    body: EnrichRequest,
    settings: Settings = Depends(get_app_settings),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Enrich one property from its address; returns suggestions only."""
    if not settings.enrichment_configured:
        raise HTTPException(503, NOT_CONFIGURED)
    if not body.resolved_address:
        raise HTTPException(400, "Missing required field: address")

    snapshot = PropertySnapshot(
        id=body.property_id,
        street_address=body.resolved_address,
        city=body.city,
        state=body.state,
        zip_code=body.zip_code,
        name=body.community_name or body.name,
        contact_phone=body.contact_phone,
        contact_email=body.contact_email,
        contact_name=body.contact_name,
        amenities=body.amenities,
        leasing_link=body.leasing_link,
        management_company=body.management_company,
    )
    try:
        result = await orchestrator.enrich(snapshot)
    except EnrichmentNotConfiguredError as e:
        raise HTTPException(503, str(e))

    return {
        "success": True,
        "property_id": body.property_id,
        "address": result.address_used,
        "data_analysis": result.field_analysis.model_dump(),
        "suggestions": _dump_map(result.suggestions),
        "suggestion_count": len(result.suggestions),
        "verifications": _dump_map(result.verifications),
        "verification_count": len(result.verifications),
        "sources_checked": [a.model_dump() for a in result.sources_checked],
        "errors": result.errors,
        "processing_time_ms": result.processing_time_ms,
        "timestamp": _timestamp(),
    }


@router.get("/api/property/batch-enrich-v2")
def api_batch_status(driver: BatchDriver = Depends(get_batch_driver)):
    """Counts per enrichment status, plus properties with floor plans."""
    return driver.status()


@router.post("/api/property/batch-enrich-v2")
async def api_batch_enrich(
    body: BatchEnrichRequest | None = Body(default=None),
    driver: BatchDriver = Depends(get_batch_driver),
):
    """Run one batch: property phase, units phase, or both."""
    req = body or BatchEnrichRequest()
    try:
        return await driver.run(req)
    except EnrichmentNotConfiguredError:
        raise HTTPException(503, NOT_CONFIGURED)


@router.post("/api/property/deep-search")
async def api_deep_search(
    body: DeepSearchRequest,
    settings: Settings = Depends(get_app_settings),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Crawl a leasing site's contact pages for still-missing fields."""
    if not settings.enrichment_configured:
        raise HTTPException(503, NOT_CONFIGURED)
    if not body.leasing_url:
        raise HTTPException(400, "Missing required field: leasing_url")

    address = ", ".join(p for p in (body.address, body.city, body.state) if p)
    try:
        result = await orchestrator.deep_search(
            body.leasing_url,
            property_id=body.property_id,
            address=address,
            missing_fields=body.missing_fields,
        )
    except EnrichmentNotConfiguredError as e:
        raise HTTPException(503, str(e))

    return {
        "success": True,
        "property_id": body.property_id,
        "leasing_url": body.leasing_url,
        "suggestions": _dump_map(result.suggestions),
        "pages_scraped": result.pages_scraped,
        "errors": result.errors,
        "processing_time_ms": result.processing_time_ms,
        "timestamp": _timestamp(),
    }


@router.post("/api/property/unit-search")
async def api_unit_search(
    body: UnitSearchRequest,
    discovery: UnitDiscoveryOrchestrator = Depends(get_unit_discovery),
):
    """Discover floor plans, units and specials without persisting them."""
    if not body.property_id or not body.leasing_url:
        raise HTTPException(400, "Missing required fields: propertyId and leasingUrl")

    result = await discovery.discover(
        property_id=body.property_id,
        property_name=body.property_name,
        leasing_url=body.leasing_url,
    )
    log.info("unit_search_completed", property_id=body.property_id, floor_plans=len(result.floor_plans))
    return {
        "success": True,
        "propertyId": body.property_id,
        "propertyName": body.property_name,
        "floor_plans": [p.model_dump() for p in result.floor_plans],
        "units": [u.model_dump() for u in result.units],
        "specials": [s.model_dump() for s in result.specials],
        "videos": result.videos,
        "images": result.images,
        "sources": result.sources,
        "errors": result.errors,
    }
