"""
Structured logging built on structlog.
Provides JSON or console output, optional file logging and per-request
context through contextvars.
"""

import logging
import sys
import time
import uuid

import structlog
from fastapi import Request
from structlog.stdlib import LoggerFactory

from utilities.config import BookstoreConfig


def setup_logging(config: BookstoreConfig) -> None:
    """
    Set up structured logging from the service configuration.

    Args:
        config: Supplies log_level, log_format, log_file and debug
    """
    level = getattr(logging, config.log_level)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if config.debug:
        processors.append(structlog.processors.CallsiteParameterAdder())

    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    log_path = config.get_log_file_path()
    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(file_handler)

    structlog.get_logger(__name__).info(
        "Logging system initialized",
        level=config.log_level,
        format=config.log_format,
        file=str(log_path) if log_path else None,
        debug=config.debug
    )


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


async def log_requests(request: Request, call_next):
    """
    HTTP middleware: bind a request id and log each request once it completes.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)

    logger = structlog.get_logger("api.access")
    started = time.perf_counter()
    response = await call_next(request)
    duration_ms = round((time.perf_counter() - started) * 1000, 2)

    logger.info(
        "Request handled",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=duration_ms
    )
    response.headers["X-Request-ID"] = request_id
    return response
