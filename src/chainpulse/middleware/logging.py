"""Structured logging configuration with structlog.

Every log line is an event name plus keyword fields. The webhook secret
can arrive as a query parameter, so URLs and auth headers are masked
before rendering.
"""

import logging
import re
import sys
from typing import Any

import structlog

from chainpulse.config import Settings

REDACTED = "***"
_SECRET_KEYS = frozenset({"authorization", "token", "webhook_secret"})
_TOKEN_PARAM = re.compile(r"(token=)[^&\s]+", re.IGNORECASE)


def redact_secrets(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask secret-bearing fields and token query parameters."""
    for key, value in event_dict.items():
        if key.lower() in _SECRET_KEYS:
            event_dict[key] = REDACTED
        elif isinstance(value, str) and "token=" in value.lower():
            event_dict[key] = _TOKEN_PARAM.sub(rf"\g<1>{REDACTED}", value)
    return event_dict


def _service_fields(environment: str) -> structlog.types.Processor:
    def add_service(_logger: Any, _method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", "chainpulse")
        event_dict.setdefault("environment", environment)
        return event_dict

    return add_service


def setup_logging(settings: Settings) -> None:
    """Configure structlog for JSON (production) or console (local) output."""
    renderer: structlog.types.Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _service_fields(settings.environment),
            redact_secrets,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # structlog renders the full line; stdlib only adds the level filter
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
    )