"""
Structured logging configuration using structlog.

JSON logs in production, coloured console output in development. Every
event logged during a dashboard session carries the signed-in `uid`, and
every event logged while serving a relay request carries its
`request_id`. Credential values (upstream API keys, Bluesky app
passwords and session tokens) are masked before rendering.
"""

import logging
import sys
from typing import Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from research_feed.config.settings import get_settings
from research_feed.identity import Identity

SECRET_FIELDS = frozenset({
    "api_key",
    "api_keys",
    "app_password",
    "password",
    "access_jwt",
    "accessJwt",
    "token",
})

MASK = "***"


def mask_secrets(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Replace the value of any credential field with a mask."""
    for key in SECRET_FIELDS.intersection(event_dict):
        if event_dict[key]:
            event_dict[key] = MASK
    return event_dict


def setup_logging() -> None:
    """
    Configure structlog and the stdlib root logger from settings.

    Usage:
        setup_logging()
        logger = structlog.get_logger(__name__)
        logger.info("Aggregation pass completed", resources=42)
    """
    settings = get_settings()

    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        mask_secrets,
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.is_production:
        renderer: list[Processor] = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderer = [structlog.dev.ConsoleRenderer(colors=True)]

    structlog.configure(
        processors=shared_processors + renderer,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
    )

    # Adapters and the relay log their own summaries
    for name in ("httpx", "httpcore", "asyncio", "uvicorn.access"):
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_identity(identity: Identity) -> None:
    """Tag subsequent log events with the signed-in user's uid."""
    structlog.contextvars.bind_contextvars(uid=identity.uid)


def clear_identity() -> None:
    structlog.contextvars.unbind_contextvars("uid")


def bind_request(request_id: str, **extra: Any) -> None:
    """Tag subsequent log events with the relay request's correlation id."""
    structlog.contextvars.bind_contextvars(request_id=request_id, **extra)


def clear_context() -> None:
    """Clear all bound context variables."""
    structlog.contextvars.clear_contextvars()
