"""
Property Enrichment Service — FastAPI application.

Fills in missing property data (name, contact, amenities, leasing link,
management company) and discovers floor plans, units and specials from
public web sources. All routes live in routers/property.py.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from .config import get_settings
from .connector_status import log_connector_status
from .database import create_tables
from .http_client import close_clients
from .logging_config import setup_logging
from .routers.property import router as property_router
from .schemas.errors import ErrorResponse


# --- App Lifecycle ---
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    log_connector_status(get_settings())
    create_tables()
    logger.info("tables_ready")
    yield
    await close_clients()
    logger.info("shutdown_complete")


app = FastAPI(title="Property Enrichment", version="2.0.0", lifespan=lifespan)
app.include_router(property_router)


# --- Error handlers ---
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    body = ErrorResponse(error=str(exc.detail), status_code=exc.status_code)
    return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(
        error="Invalid request body",
        status_code=422,
        detail=[{"loc": list(e.get("loc", ())), "msg": e.get("msg", "")} for e in exc.errors()],
    )
    return JSONResponse(status_code=422, content=body.model_dump(exclude_none=True))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    body = ErrorResponse(error="Enrichment failed", status_code=500, message=str(exc) or type(exc).__name__)
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))
