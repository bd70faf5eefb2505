"""
Structured logging for the storefront backend.

structlog is configured once at startup. Every event carries an ISO UTC
timestamp, level, logger name and, while a request is being served, the
request and user identifiers stored in context variables. Development gets a
coloured console renderer; every other environment emits one JSON object per
line.
"""

import logging
import sys
import time
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterator, Optional
from uuid import uuid4

import structlog
from structlog.types import EventDict, Processor

from storefront.core.config import get_settings

_request_id: ContextVar[str] = ContextVar("storefront_request_id", default="")
_user_id: ContextVar[Optional[str]] = ContextVar("storefront_user_id", default=None)

# Operations slower than this are logged at warning level
SLOW_OPERATION_MS = 500

_THIRD_PARTY_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "asyncio": logging.WARNING,
}


def add_correlation_ids(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Attach the current request and user identifiers, when set."""
    request_id = _request_id.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)

    user_id = _user_id.get()
    if user_id:
        event_dict.setdefault("user_id", user_id)
    return event_dict


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        add_correlation_ids,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]


def configure_logging() -> None:
    """
    Configure structlog and the standard library root logger.

    Safe to call more than once; the last call wins.
    """
    settings = get_settings()

    renderer: Processor
    if settings.is_development:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            exception_formatter=structlog.dev.plain_traceback,
        )
    else:
        renderer = structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[*_shared_processors(), renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, settings.log_level),
        force=True,
    )
    for name, level in _THIRD_PARTY_LEVELS.items():
        logging.getLogger(name).setLevel(level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named after the calling module."""
    return structlog.get_logger(name)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Store the request identifier for the current context.

    A random UUID is generated when none is supplied (or the supplied value
    is empty).

    Returns:
        The identifier now in effect
    """
    request_id = request_id or str(uuid4())
    _request_id.set(request_id)
    return request_id


def get_request_id() -> str:
    return _request_id.get()


def set_user_id(user_id: Optional[str]) -> None:
    _user_id.set(user_id)


def get_user_id() -> Optional[str]:
    return _user_id.get()


def clear_context() -> None:
    """Forget request-scoped identifiers once a request has been served."""
    _request_id.set("")
    _user_id.set(None)
    structlog.contextvars.clear_contextvars()


@contextmanager
def log_performance(
    logger: structlog.stdlib.BoundLogger,
    operation: str,
    **context: Any,
) -> Iterator[None]:
    """
    Time a block and log how long it took.

    Failures are logged with the exception type and re-raised. Blocks slower
    than SLOW_OPERATION_MS are logged as warnings.

    Example:
        >>> with log_performance(logger, "checkout", user_id=7):
        ...     await service.create_order(7, payload)
    """
    started = time.perf_counter()
    logger.debug("Operation started", operation=operation, **context)
    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - started) * 1000
        logger.error(
            "Operation failed",
            operation=operation,
            duration_ms=round(elapsed, 2),
            error_type=type(e).__name__,
            **context,
        )
        raise

    elapsed = (time.perf_counter() - started) * 1000
    log = logger.warning if elapsed > SLOW_OPERATION_MS else logger.info
    log(
        "Operation completed",
        operation=operation,
        duration_ms=round(elapsed, 2),
        **context,
    )
