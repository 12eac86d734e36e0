"""Batch driver — enrich a set of properties and persist the results.

Phases:
  - property: EnrichmentOrchestrator → SuggestionMerger → write allowed
    fields. Status becomes `enriched` when anything was written, otherwise
    `reviewed`.
  - units: UnitDiscoveryOrchestrator on the leasing URL → insert floor
    plans, units and specials not already stored. Status becomes
    `units_scanned`, even when nothing was found.
  - both: property then units, for the same property, in one pass.

Properties are processed one at a time in id order. Any exception for one
property rolls back that property's writes, marks it `failed`, and the batch
moves on. Inserts are idempotent by floor-plan name, unit number, and the
first 30 characters of a special's text; this is matching, not locking, so
two overlapping runs can still double-insert.

Called by: routers/property.py (batch-enrich-v2), dependencies.py
Depends on: services/property_enrichment.py, services/unit_discovery.py, services/suggestion_merger.py, models
"""

from datetime import datetime, timezone

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import Settings
from ..logging_config import get_component_logger
from ..models import (
    STATUS_ENRICHED,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_REVIEWED,
    STATUS_UNITS_SCANNED,
    ENRICHMENT_STATUSES,
    FloorPlan,
    Property,
    PropertySpecial,
    Unit,
)
from ..schemas.enrichment import EnrichmentResult, PropertySnapshot, UnitDiscoveryResult
from ..schemas.property import BatchEnrichRequest
from .property_enrichment import EnrichmentNotConfiguredError, EnrichmentOrchestrator
from .suggestion_merger import SuggestionMerger
from .unit_discovery import UnitDiscoveryOrchestrator

SPECIAL_MATCH_CHARS = 30
UNIT_PHASE_STATUSES = (STATUS_ENRICHED, STATUS_REVIEWED)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_expiry(raw: str | None) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = datetime.fromisoformat(raw.strip())
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class BatchDriver:
    def __init__(
        self,
        db: Session,
        orchestrator: EnrichmentOrchestrator,
        unit_discovery: UnitDiscoveryOrchestrator,
        merger: SuggestionMerger,
        settings: Settings,
        log=None,
    ):
        self.db = db
        self.orchestrator = orchestrator
        self.unit_discovery = unit_discovery
        self.merger = merger
        self.settings = settings
        self.log = log or get_component_logger("batch")

    # ── Selection ────────────────────────────────────────────────────

    def select(self, req: BatchEnrichRequest) -> list[Property]:
        limit = min(req.limit or self.settings.batch_default_limit, self.settings.batch_max_limit)
        q = self.db.query(Property)

        if req.property_ids:
            q = q.filter(Property.id.in_(req.property_ids))
        elif req.phase == "units":
            q = q.filter(Property.leasing_link.isnot(None), Property.leasing_link != "")
            if not req.force_update:
                q = q.filter(Property.enrichment_status.in_(UNIT_PHASE_STATUSES))
        elif not req.force_update:
            q = q.filter(Property.enrichment_status == STATUS_PENDING)

        if req.area:
            area = req.area.strip().lower()
            q = q.filter(or_(func.lower(Property.city) == area, func.lower(Property.neighborhood) == area))

        return q.order_by(Property.id).limit(limit).all()

    def remaining(self, phase: str) -> int:
        q = self.db.query(func.count(Property.id))
        if phase == "units":
            q = q.filter(
                Property.enrichment_status.in_(UNIT_PHASE_STATUSES),
                Property.leasing_link.isnot(None),
                Property.leasing_link != "",
            )
        else:
            q = q.filter(Property.enrichment_status == STATUS_PENDING)
        return q.scalar() or 0

    def status(self) -> dict:
        rows = (
            self.db.query(Property.enrichment_status, func.count(Property.id))
            .group_by(Property.enrichment_status)
            .all()
        )
        counts = {status: 0 for status in ENRICHMENT_STATUSES}
        counts.update({status: n for status, n in rows if status})
        with_plans = self.db.query(func.count(func.distinct(FloorPlan.property_id))).scalar() or 0
        return {
            **counts,
            "withFloorPlans": with_plans,
            "configured": self.settings.enrichment_configured,
        }

    # ── Run ──────────────────────────────────────────────────────────

    async def run(self, req: BatchEnrichRequest) -> dict:
        if not self.settings.enrichment_configured:
            raise EnrichmentNotConfiguredError("Missing OPENAI_API_KEY or BROWSERLESS_TOKEN")

        properties = self.select(req)
        self.log.info(
            "batch_started",
            phase=req.phase,
            selected=len(properties),
            area=req.area,
            force_update=req.force_update,
        )

        results: list[dict] = []
        enriched = 0
        units_found = 0

        for prop in properties:
            prop_id, prop_name = prop.id, prop.name
            entry: dict = {"id": prop_id, "name": prop_name, "phases": {}}
            was_enriched, plans_found = False, 0
            try:
                leasing_url = req.override_url
                if req.phase in ("property", "both"):
                    was_enriched, leasing_url = await self._property_phase(prop, req, entry)
                else:
                    leasing_url = leasing_url or prop.leasing_link

                if req.phase in ("units", "both"):
                    if leasing_url:
                        plans_found = await self._unit_phase(prop, leasing_url, entry)
                    else:
                        entry["phases"]["units"] = {"status": "no_leasing_url"}

                self.db.commit()
                enriched += int(was_enriched)
                units_found += plans_found
            # One property's failure must not abort the batch
            except Exception as e:
                self.db.rollback()
                self.log.exception("batch_property_failed", property_id=prop_id, error=str(e))
                entry["error"] = str(e)
                self._mark_failed(prop_id)
            results.append(entry)

        remaining = self.remaining(req.phase)
        self.log.info(
            "batch_completed",
            phase=req.phase,
            processed=len(properties),
            enriched=enriched,
            units_found=units_found,
            remaining=remaining,
        )
        return {
            "success": True,
            "phase": req.phase,
            "processed": len(properties),
            "enriched": enriched,
            "unitsFound": units_found,
            "remaining": remaining,
            "results": results,
        }

    def _mark_failed(self, prop_id: int) -> None:
        try:
            self.db.query(Property).filter(Property.id == prop_id).update(
                {Property.enrichment_status: STATUS_FAILED}, synchronize_session=False
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            self.log.error("batch_mark_failed_error", property_id=prop_id, error=str(e))

    async def _property_phase(
        self, prop: Property, req: BatchEnrichRequest, entry: dict
    ) -> tuple[bool, str | None]:
        """Enrich and merge one property. Returns (enriched, leasing URL for units)."""
        result: EnrichmentResult = await self.orchestrator.enrich(
            PropertySnapshot.from_row(prop), website_url=req.override_url
        )
        stored_link = prop.leasing_link
        updates: dict = {}

        if result.suggestions:
            updates = self.merger.merge(prop, result.suggestions, req.force_fields)

        if updates:
            for column, value in updates.items():
                setattr(prop, column, value)
            prop.enrichment_status = STATUS_ENRICHED
            prop.enriched_at = _now()
            phase = {"status": "enriched", "fieldsUpdated": sorted(updates)}
        else:
            prop.enrichment_status = STATUS_REVIEWED
            phase = {"status": "no_new_data" if result.suggestions else "no_data_found"}

        phase["suggestions"] = len(result.suggestions)
        if result.errors:
            phase["errors"] = result.errors
        entry["phases"]["property"] = phase
        self.log.info("batch_property_enriched", property_id=prop.id, status=prop.enrichment_status, fields=sorted(updates))

        suggested_link = result.suggestions.get("leasing_link")
        leasing_url = (
            req.override_url
            or updates.get("leasing_link")
            or (suggested_link.value if suggested_link else None)
            or stored_link
        )
        return bool(updates), leasing_url

    async def _unit_phase(self, prop: Property, leasing_url: str, entry: dict) -> int:
        """Discover and persist inventory. Returns number of floor plans found."""
        result = await self.unit_discovery.discover(
            property_id=prop.id,
            property_name=prop.name,
            leasing_url=leasing_url,
            city=prop.city,
            google_data_id=prop.google_data_id,
        )
        inserted = self.persist_inventory(prop, result)

        prop.enrichment_status = STATUS_UNITS_SCANNED
        prop.units_scanned_at = _now()
        entry["phases"]["units"] = {
            "status": "found" if result.floor_plans else "none_found",
            "floorPlans": len(result.floor_plans),
            "units": len(result.units),
            "specials": len(result.specials),
            "videos": len(result.videos),
            "reviews": len(result.reviews),
            "sources": result.sources,
            "inserted": inserted,
        }
        if result.errors:
            entry["phases"]["units"]["errors"] = result.errors
        return len(result.floor_plans)

    # ── Persistence ──────────────────────────────────────────────────

    def persist_inventory(self, prop: Property, result: UnitDiscoveryResult) -> dict:
        """Insert floor plans, units and specials that are not stored yet."""
        inserted = {"floor_plans": 0, "units": 0, "specials": 0}
        fallback_image = next(iter(result.images.get("floor_plans") or []), {}).get("url")

        plans = {
            fp.name.lower(): fp
            for fp in self.db.query(FloorPlan).filter(FloorPlan.property_id == prop.id)
        }
        for plan in result.floor_plans:
            if plan.name.lower() in plans:
                continue
            row = FloorPlan(
                property_id=prop.id,
                name=plan.name,
                beds=plan.beds,
                baths=plan.baths,
                sqft=plan.sqft,
                market_rent=plan.rent_max or plan.rent_min,
                starting_at=plan.rent_min,
                units_available=plan.units_available,
                image_url=plan.image_url or fallback_image,
            )
            self.db.add(row)
            plans[plan.name.lower()] = row
            inserted["floor_plans"] += 1
        self.db.flush()

        known_units = {
            number for (number,) in
            self.db.query(Unit.unit_number).filter(Unit.property_id == prop.id)
        }
        for unit in result.units:
            if unit.unit_number in known_units:
                continue
            plan_row = plans.get((unit.floor_plan_name or "").lower())
            if plan_row is None:
                self.log.warning(
                    "unit_without_floor_plan",
                    property_id=prop.id,
                    unit_number=unit.unit_number,
                    floor_plan=unit.floor_plan_name,
                )
                continue
            self.db.add(Unit(
                property_id=prop.id,
                floor_plan_id=plan_row.id,
                unit_number=unit.unit_number,
                floor=unit.floor,
                rent=unit.rent,
                market_rent=unit.market_rent,
                available_from=unit.available_from,
                is_available=unit.status == "available",
                status=unit.status,
            ))
            known_units.add(unit.unit_number)
            inserted["units"] += 1

        scraped = any(s.startswith("http") for s in result.sources)
        special_source = "leasing_site" if scraped else "serpapi"
        for special in result.specials:
            prefix = special.text[:SPECIAL_MATCH_CHARS].lower()
            exists = (
                self.db.query(PropertySpecial.id)
                .filter(
                    PropertySpecial.property_id == prop.id,
                    func.lower(PropertySpecial.special_text).contains(prefix, autoescape=True),
                )
                .first()
            )
            if exists:
                continue
            self.db.add(PropertySpecial(
                property_id=prop.id,
                special_text=special.text,
                source=special_source,
                discovered_at=_now(),
                expires_at=_parse_expiry(special.expires),
                confidence=special.confidence,
                is_active=True,
            ))
            self.db.flush()
            inserted["specials"] += 1

        self.log.info("inventory_persisted", property_id=prop.id, **inserted)
        return inserted
