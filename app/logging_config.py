"""
logging_config.py — Centralized Logging Configuration

Sets up Loguru as the single logging backend. Intercepts Python's stdlib
logging module so third-party getLogger() calls (httpx, uvicorn, sqlalchemy)
route through Loguru with the same format.

Business Rules:
- All pipeline components log through an injected Loguru logger bound
  with a component name, e.g. logger.bind(component="content_fetcher")
- Events are short snake_case names; details travel as keyword fields
- JSON format in production for machine parsing
- Human-readable format in development

Called by: app/main.py (on startup)
Depends on: LOG_LEVEL, APP_URL environment variables
"""

import logging
import os
import sys

from loguru import logger


def setup_logging() -> None:
    """Configure Loguru and intercept stdlib logging.

    Call once at app startup, before any other imports that log.
    """
    # Remove Loguru's default stderr handler so we control format
    logger.remove()

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    is_production = os.getenv("APP_URL", "").startswith("https://")

    if is_production:
        # Production: JSON lines to stdout (the platform captures these)
        logger.add(
            sys.stdout,
            level=log_level,
            format="{message}",
            serialize=True,
        )
    else:
        # Development: human-readable with colors, bound fields appended
        logger.add(
            sys.stdout,
            level=log_level,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<cyan>{extra[component]}</cyan> | "
                "{message} {extra}"
            ),
            colorize=True,
        )
        logger.configure(extra={"component": "app"})

    # Intercept stdlib logging → route through Loguru
    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    # Quiet noisy third-party loggers
    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("logging_configured", level=log_level, production=is_production)


def get_component_logger(component: str):
    """Return a Loguru logger bound to a pipeline component name."""
    return logger.bind(component=component)


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller (skip frames from stdlib logging internals)
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
