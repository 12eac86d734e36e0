"""
dependencies.py — Shared FastAPI Dependencies

Factories for the enrichment pipeline components. Routers depend on these
instead of constructing components themselves, so tests swap any of them
through app.dependency_overrides.

Business Rules:
- Components are built from Settings on each request; they hold no state
  beyond the shared HTTP clients
- The batch driver gets the request's DB session

Called by: routers/property.py
Depends on: config, database, services
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import Settings, get_settings
from .database import get_db
from .logging_config import get_component_logger
from .services.batch_enrichment import BatchDriver
from .services.property_enrichment import EnrichmentOrchestrator
from .services.suggestion_merger import SuggestionMerger
from .services.unit_discovery import UnitDiscoveryOrchestrator


def get_app_settings() -> Settings:
    return get_settings()


def get_orchestrator(settings: Settings = Depends(get_app_settings)) -> EnrichmentOrchestrator:
    return EnrichmentOrchestrator.from_settings(settings, log=get_component_logger("enrichment"))


def get_unit_discovery(settings: Settings = Depends(get_app_settings)) -> UnitDiscoveryOrchestrator:
    return UnitDiscoveryOrchestrator.from_settings(settings, log=get_component_logger("unit_discovery"))


def get_merger(settings: Settings = Depends(get_app_settings)) -> SuggestionMerger:
    return SuggestionMerger(settings.merge_confidence_floor, log=get_component_logger("suggestion_merger"))


def get_batch_driver(
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
    unit_discovery: UnitDiscoveryOrchestrator = Depends(get_unit_discovery),
    merger: SuggestionMerger = Depends(get_merger),
    settings: Settings = Depends(get_app_settings),
) -> BatchDriver:
    return BatchDriver(db, orchestrator, unit_discovery, merger, settings, log=get_component_logger("batch"))
