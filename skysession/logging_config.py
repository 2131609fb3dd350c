"""Structured logging for the session lifecycle.

Dedicated servers log JSON so hosted log collection can index the
deployment request id bound through contextvars; the CLI logs in console
format. Credential fields are redacted to a short preview before rendering.

Usage:
    from skysession.logging_config import get_logger, setup_logging

    setup_logging(service_name="dedicated-server", log_format="json")
    logger = get_logger(__name__)
    logger.info("deployment_ready", request_id=request_id, external_port=port)
"""

import logging
import os
import sys
from typing import Any, Literal

import structlog
from structlog.types import EventDict, Processor


# Event keys whose values are credentials. Only a preview of them is ever rendered.
SECRET_KEYS = frozenset({"api_token", "authorization", "delete_token", "token"})


def redact_secrets(_logger: Any, _method_name: str, event_dict: EventDict) -> EventDict:
    """Replace credential values with ``token_preview`` output."""
    for key in SECRET_KEYS.intersection(event_dict):
        value = event_dict[key]
        event_dict[key] = token_preview(value if isinstance(value, str) else None)
    return event_dict


def setup_logging(
    service_name: str | None = None,
    log_format: Literal["json", "console"] | None = None,
    log_level: str | None = None,
) -> None:
    """Configure structured logging with structlog.

    Args:
        service_name: Name of the process (e.g., "dedicated-server", "cli").
                     Falls back to SERVICE_NAME env var or "skysession".
        log_format: Output format - "json" for hosted servers, "console" for dev.
                   Falls back to LOG_FORMAT env var or "console".
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
                  Falls back to LOG_LEVEL env var or "INFO".
    """
    service_name = service_name or os.getenv("SERVICE_NAME", "skysession")
    log_format = log_format or os.getenv("LOG_FORMAT", "console")
    log_level = log_level or os.getenv("LOG_LEVEL", "INFO")

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=numeric_level,
        force=True,
    )

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        redact_secrets,
        structlog.processors.CallsiteParameterAdder(
            {
                structlog.processors.CallsiteParameter.FUNC_NAME,
                structlog.processors.CallsiteParameter.LINENO,
            }
        ),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer(sort_keys=False))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.plain_traceback,
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=service_name)

    logger = structlog.get_logger()
    logger.info(
        "logging_initialized",
        service=service_name,
        log_format=log_format,
        log_level=log_level,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance.

    Args:
        name: Optional logger name. If not provided, uses the caller's module name.

    Returns:
        Configured structlog logger instance.
    """
    return structlog.get_logger(name)


def token_preview(token: str | None) -> str:
    """Return a loggable preview of a secret: first 6 chars only."""
    if not token:
        return "null"
    if len(token) <= 6:
        return token
    return token[:6] + "•••"
