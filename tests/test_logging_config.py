"""
test_logging_config.py — Tests for app/logging_config.py

Verifies Loguru setup, stdlib logging interception, component binding,
and keyword fields landing in record extras. Uses loguru's sink capture
for assertions.

Called by: pytest
Depends on: app/logging_config.py
"""

import logging
import os
from unittest.mock import patch

import pytest
from loguru import logger

from app.logging_config import get_component_logger, setup_logging


@pytest.fixture(autouse=True)
def _clean_loguru():
    """Remove all handlers before/after each test for isolation."""
    logger.remove()
    yield
    logger.remove()


def test_setup_logging_adds_handler():
    """setup_logging() should add at least one Loguru handler."""
    assert len(logger._core.handlers) == 0
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000"}):
        setup_logging()
    assert len(logger._core.handlers) > 0


def test_stdlib_logging_intercepted():
    """After setup, stdlib logging.getLogger() messages go through Loguru."""
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000"}):
        setup_logging()

    messages = []
    logger.add(lambda m: messages.append(str(m)), format="{message}")

    logging.getLogger("test.intercept").warning("intercepted message")

    assert any("intercepted message" in m for m in messages)


def test_log_level_from_env():
    """LOG_LEVEL env var controls minimum log level."""
    with patch.dict(os.environ, {"APP_URL": "http://localhost:8000", "LOG_LEVEL": "WARNING"}):
        setup_logging()

    messages = []
    logger.add(lambda m: messages.append(str(m)), level="WARNING", format="{message}")

    logger.debug("should be filtered")
    logger.warning("should appear")

    assert any("should appear" in m for m in messages)
    assert not any("should be filtered" in m for m in messages)


def test_component_logger_binds_name_and_fields():
    """Keyword fields and the component name land in record extras."""
    records = []
    logger.add(lambda m: records.append(m.record), format="{message}")

    get_component_logger("content_fetcher").info("fetch_attempt", url="https://x.com", chars=12)

    record = records[-1]
    assert record["message"] == "fetch_attempt"
    assert record["extra"]["component"] == "content_fetcher"
    assert record["extra"]["url"] == "https://x.com"
    assert record["extra"]["chars"] == 12


def test_component_binding_not_leaked():
    records = []
    logger.add(lambda m: records.append(m.record), format="{message}")

    get_component_logger("batch").info("inside")
    logger.info("outside")

    assert records[-1]["extra"].get("component") != "batch"


def test_production_mode_uses_serialize():
    """When APP_URL is https, serialize=True (JSON output)."""
    with patch.dict(os.environ, {"APP_URL": "https://enrich.example.com"}):
        with patch("loguru.logger.add") as mock_add:
            setup_logging()
            serialize_calls = [
                c for c in mock_add.call_args_list
                if c.kwargs.get("serialize") is True
            ]
            assert len(serialize_calls) >= 1
