"""Logging configuration for stackpilot with console output and an optional run log file."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

import structlog


def setup_logging(
    log_level: str | None = None,
    log_file: Path | str | None = None,
    max_file_size_mb: int = 10,
) -> None:
    """Setup logging: structlog on top of stdlib handlers.

    Console output is rendered for humans on a TTY and as JSON otherwise.
    When ``log_file`` is given, every event is also written there as JSON.

    Args:
        log_level: Log level (defaults to STACKPILOT_LOG_LEVEL env var or INFO)
        log_file: Optional path of a run log file
        max_file_size_mb: Max file size before truncation (no backup files kept)
    """
    if log_level is None:
        log_level = os.getenv("STACKPILOT_LOG_LEVEL", "INFO")

    log_level_num = getattr(logging, log_level.upper(), logging.INFO)

    # Clear any existing handlers to prevent duplicates
    logging.getLogger().handlers.clear()

    from structlog.stdlib import BoundLogger, LoggerFactory, ProcessorFormatter

    renderer = (
        structlog.dev.ConsoleRenderer()
        if sys.stdout.isatty()
        else structlog.processors.JSONRenderer()
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_num)
    console_handler.setFormatter(ProcessorFormatter(processor=renderer))

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level_num)
    root_logger.addHandler(console_handler)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=max_file_size_mb * 1024 * 1024,
            backupCount=0,
            encoding="utf-8",
        )
        file_handler.setLevel(log_level_num)
        file_handler.setFormatter(
            ProcessorFormatter(processor=structlog.processors.JSONRenderer())
        )
        root_logger.addHandler(file_handler)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=LoggerFactory(),
        wrapper_class=BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger("stackpilot")
    logger.debug(
        "Logging system initialized",
        log_level=log_level,
        log_file=str(log_file) if log_file else None,
    )


def get_run_logger(**bindings: Any) -> Any:
    """Get the orchestration logger, optionally bound to extra context."""
    return structlog.get_logger("stackpilot").bind(**bindings)
