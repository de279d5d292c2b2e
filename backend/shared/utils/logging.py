"""
Structured logging for the Sports HQ service.

structlog renders every entry (console in dev, JSON elsewhere) and stdlib
records from uvicorn/httpx go through the same processor chain. Upstream URLs
carry the v1 key in their path, so a redaction step masks it in any `url`
field before rendering.
"""
from __future__ import annotations

import logging
import sys
from typing import Any, MutableMapping

import structlog

from shared.config import Environment, get_settings

REDACTED = "***"
_URL_FIELDS = ("url", "upstream_url")
_QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore", "asyncio")


def redact_url(url: str, v1_key: str | None = None) -> str:
    """Mask the v1 key path segment (/json/<key>/) of an upstream URL."""
    key = get_settings().tsdb_v1_key if v1_key is None else v1_key
    if not key:
        return url
    return url.replace(f"/json/{key}/", f"/json/{REDACTED}/")


def redact_upstream_keys(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    for field in _URL_FIELDS:
        value = event_dict.get(field)
        if isinstance(value, str):
            event_dict[field] = redact_url(value)
    return event_dict


def setup_logging(service_name: str) -> None:
    """
    Configure structlog and the stdlib root logger for this process.

    Args:
        service_name: Bound to every entry as `service`, alongside the
            configured instance id when there is one.
    """
    settings = get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    pre_chain: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        redact_upstream_keys,
    ]

    renderer: structlog.types.Processor
    if settings.environment is Environment.DEV:
        renderer = structlog.dev.ConsoleRenderer(colors=True)
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
            foreign_pre_chain=pre_chain,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.contextvars.clear_contextvars()
    context: dict[str, Any] = {"service": service_name}
    if settings.instance_id:
        context["instance_id"] = settings.instance_id
    structlog.contextvars.bind_contextvars(**context)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
