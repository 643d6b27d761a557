"""Structured logging configuration for riskgate."""

import logging
import sys
from typing import Any, Dict, Optional

import structlog
from structlog.types import Processor

from .config import get_settings


def setup_logging() -> None:
    """Configure structured logging for riskgate."""
    settings = get_settings()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        force=True,
    )

    # Configure structlog
    processors: list[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def log_audit_event(
    logger: structlog.stdlib.BoundLogger,
    event: str,
    actor: str,
    action: str,
    resource: str,
    status: str,
    duration_ms: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """Log an audit event for a side-effecting repository action."""
    log_data: Dict[str, Any] = {
        "actor": actor,
        "action": action,
        "resource": resource,
        "status": status,
    }

    if duration_ms is not None:
        log_data["duration_ms"] = duration_ms

    log_data.update(kwargs)

    logger.info(event, **log_data)


def log_pipeline_event(
    logger: structlog.stdlib.BoundLogger,
    run_id: str,
    phase: str,
    repository: Optional[str] = None,
    pull_number: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """Log a pipeline event with change context."""
    log_data: Dict[str, Any] = {
        "run_id": run_id,
        "phase": phase,
    }

    if repository is not None:
        log_data["repository"] = repository
    if pull_number is not None:
        log_data["pull_number"] = pull_number

    log_data.update(kwargs)

    logger.info(f"pipeline.{phase}", **log_data)


def log_github_call(
    logger: structlog.stdlib.BoundLogger,
    method: str,
    path: str,
    payload: Optional[Dict[str, Any]] = None,
    **kwargs: Any,
) -> None:
    """Log an outbound GitHub API call."""
    log_data: Dict[str, Any] = {
        "http_method": method,
        "api_path": path,
    }

    # Payload summary only; blobs can be large
    if payload:
        log_data["payload_keys"] = list(payload.keys())
        log_data["payload_size"] = len(str(payload))

    log_data.update(kwargs)

    logger.debug("github.call", **log_data)


# Initialize logging on module import
setup_logging()
