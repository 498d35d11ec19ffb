"""
Structured logging setup for the host assignment service.
Provides JSON-formatted logs with consistent fields for production monitoring.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.stdlib import LoggerFactory


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure structured logging with JSON output for production.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            _add_service_context,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        context_class=dict,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper()),
    )

    # Suppress noisy third-party loggers
    logging.getLogger("psycopg").setLevel(logging.WARNING)
    logging.getLogger("psycopg.pool").setLevel(logging.WARNING)


def _add_service_context(logger, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Tag every entry with the emitting service."""
    event_dict.setdefault("service", "lucky_host")
    return event_dict


def get_logger(name: str = None) -> structlog.stdlib.BoundLogger:
    """
    Get a structured logger instance.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


def log_host_selection(
    event_type_id: int,
    algorithm: str,
    candidate_count: int,
    chosen_user_id: int | None,
    duration_ms: float,
    error: str = None,
):
    """Log a host selection decision with consistent fields."""
    logger = get_logger("selection")

    log_data = {
        "event_type_id": event_type_id,
        "algorithm": algorithm,
        "candidate_count": candidate_count,
        "chosen_user_id": chosen_user_id,
        "duration_ms": duration_ms,
        "kind": "host_selection",
    }

    if error:
        log_data["error"] = error
        logger.error("Host selection failed", **log_data)
    else:
        logger.info("Host selection completed", **log_data)
