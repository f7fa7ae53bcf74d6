"""
land_registry.observability.logging

Structured logging configuration shared by the client core and the reference registry.

Responsibilities:
- Configure `structlog` for JSON logs (services) or console output (local development).
- Render domain values (principals, role sets) as plain JSON-friendly values.
- Strip credential-bearing keys before rendering.
- Provide a small wrapper for obtaining bound loggers.
"""

from __future__ import annotations

import enum
import logging
import sys
from typing import Any

import structlog

from land_registry.auth.principal import PrincipalId

_REDACTED_KEYS = frozenset({"token", "access_token", "root_key", "authorization", "secret"})

# httpx logs every request at INFO; the registry client logs its own events instead.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(*, service_name: str, level: str, json: bool = True) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer: Any = (
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name(service_name),
            _plain_values,
            _redact_credentials,
            structlog.processors.dict_tracebacks,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def _plain(value: Any) -> Any:
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, (set, frozenset)):
        return sorted(_plain(v) for v in value)
    if isinstance(value, PrincipalId):
        return value.text
    return value


def _plain_values(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    return {k: _plain(v) for k, v in event_dict.items()}


def _redact_credentials(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    for key in _REDACTED_KEYS.intersection(event_dict):
        event_dict[key] = "***"
    return event_dict


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata is bound via contextvars in `observability.middleware`.
# Identity tokens and root keys must never reach a log event unredacted.
