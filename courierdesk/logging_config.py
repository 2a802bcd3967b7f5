"""
logging_config.py — Centralized Logging Configuration for CourierDesk

Sets up Loguru as the single logging backend. Intercepts Python's stdlib
logging module so every logging.getLogger("courierdesk.*") call in the
services routes through Loguru with the request id bound by the middleware.

Business Rules:
- All logs go through Loguru (no direct print() or stdlib handlers);
  stdlib and structlog loggers are forwarded into it
- JSON format in production for machine parsing
- Human-readable format in development
- Request ID from middleware is included when available
- Log rotation: 50MB files, 7-day retention

Called by: courierdesk/main.py (on startup)
Depends on: LOG_LEVEL, APP_URL, LOG_FILE environment variables
"""

import logging
import os
import sys

import structlog
from loguru import logger


def _is_production() -> bool:
    app_url = os.getenv("APP_URL", "")
    return app_url.startswith("https://") and "localhost" not in app_url


def setup_logging() -> None:
    """Configure Loguru and intercept stdlib logging.

    Call once at app startup, before any other imports that log.
    """
    logger.remove()

    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    is_production = _is_production()

    if is_production:
        # JSON lines to stdout (container runtime captures these)
        logger.add(
            sys.stdout,
            level=log_level,
            format="{message}",
            serialize=True,
        )
        log_file = os.getenv("LOG_FILE")
        if log_file:
            logger.add(
                log_file,
                level=log_level,
                rotation="50 MB",
                retention="7 days",
                compression="gz",
                serialize=True,
            )
    else:
        logger.add(
            sys.stdout,
            level=log_level,
            format=(
                "<green>{time:HH:mm:ss}</green> | "
                "<level>{level: <8}</level> | "
                "<magenta>{extra[request_id]}</magenta> | "
                "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
                "{message}"
            ),
            colorize=True,
        )

    # Records logged outside a request still need the key for the format above
    logger.configure(extra={"request_id": "-"})

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    # structlog (email outbox) renders key=value lines into stdlib, which lands in Loguru
    structlog.configure(
        processors=[
            structlog.processors.format_exc_info,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )

    for noisy in ("httpx", "httpcore", "uvicorn.access", "sqlalchemy.engine", "sse_starlette"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.info("Logging configured", level=log_level, production=is_production)


class _InterceptHandler(logging.Handler):
    """Route stdlib logging records to Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip frames from stdlib logging internals
        frame, depth = logging.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )
