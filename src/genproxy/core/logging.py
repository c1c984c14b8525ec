"""Structured logging setup.

All modules log through ``structlog.get_logger()`` with snake_case event
names and keyword context. Entry points call :func:`configure_logging` once.
"""

from __future__ import annotations

import logging
from typing import IO, Any, MutableMapping, Optional

import structlog

from genproxy.core.config import LoggingConfig

# Event keys whose values must never reach a log sink.
SENSITIVE_KEYS = frozenset({"api_key", "credential", "key", "authorization"})
REDACTED = "[REDACTED]"


def redact_secrets(
    logger: Any, method_name: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor replacing credential-bearing fields."""
    for key in list(event_dict.keys()):
        if key.lower() in SENSITIVE_KEYS and event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def configure_logging(
    cfg: LoggingConfig | None = None, stream: Optional[IO[str]] = None
) -> None:
    """Configure structlog from the logging section of Settings.

    Records go to ``stream`` (stdout when omitted).
    """
    cfg = cfg or LoggingConfig()
    level = logging.getLevelName(cfg.level)

    if cfg.format == "console":
        renderer: Any = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            redact_secrets,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        cache_logger_on_first_use=False,
    )
