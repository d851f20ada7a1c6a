"""Shared pytest fixtures for stackpilot tests."""

import logging

import pytest
import structlog


@pytest.fixture(autouse=True)
def plain_logging():
    """Route structlog through stdlib logging without caching loggers between tests."""
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )
    logging.getLogger().setLevel(logging.DEBUG)
    yield
    structlog.reset_defaults()
