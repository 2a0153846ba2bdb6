"""Logging setup for TravelCMS using Loguru.

Console output is human-readable in development and JSON in production.
Two kinds of context end up on every record:

- the request context (request_id, actor_id, operation) that the route
  layer scopes with :func:`request_context`
- the store ``entity`` bound by :func:`entity_scope` while a database
  session is open, so store log lines say which table family they touch

Example:
    >>> from travelcms.logging import logger, request_context
    >>> with request_context(request_id="a1b2", actor_id="7", operation="update_post"):
    ...     logger.info("Post updated", post_id=12)
"""

import json
import sys
import traceback
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import asdict, dataclass, replace
from pathlib import Path
from typing import Any

from loguru import logger as loguru_logger

from travelcms.config import settings

# =============================================================================
# Request Context
# =============================================================================


@dataclass(frozen=True)
class RequestContext:
    """Who is doing what, for the duration of one inbound call."""

    request_id: str | None = None
    actor_id: str | None = None
    operation: str | None = None


_EMPTY_CONTEXT = RequestContext()
request_context_var: ContextVar[RequestContext] = ContextVar(
    "request_context", default=_EMPTY_CONTEXT
)


# =============================================================================
# JSON Serialization
# =============================================================================


def serialize(record: dict[str, Any]) -> str:
    """Render a Loguru record as a single JSON line.

    Args:
        record: Loguru log record dictionary

    Returns:
        JSON string with time, level, message, call site, request context,
        bound extras (``entity`` among them) and exception details
    """
    payload = {
        "time": record["time"].isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "module": record["module"],
        "function": record["function"],
        "line": record["line"],
    }
    payload.update(
        {key: value for key, value in asdict(request_context_var.get()).items() if value}
    )
    payload.update({key: value for key, value in record["extra"].items() if value is not None})

    if exc := record["exception"]:
        payload["exception"] = {
            "type": exc.type.__name__ if exc.type else None,
            "value": str(exc.value),
            "traceback": traceback.format_exception(exc.type, exc.value, exc.traceback),
        }

    return json.dumps(payload, default=str)


def patching(record: dict[str, Any]) -> None:
    """Store the serialized JSON on the record for the JSON formatter."""
    record["serialized"] = serialize(record)


def json_formatter(record: dict[str, Any]) -> str:
    return "{serialized}\n"


def console_formatter(record: dict[str, Any]) -> str:
    """Colored console line; the store entity is shown when one is bound."""
    entity = "<magenta>[{extra[entity]}]</magenta> " if record["extra"].get("entity") else ""
    return (
        "<green>{time:HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> | "
        f"{entity}<level>{{message}}</level>\n{{exception}}"
    )


# =============================================================================
# Logger Configuration
# =============================================================================


def setup_logging(
    level: str = "INFO",
    json_logs: bool = False,
    log_file: Path | None = None,
    colorize: bool = True,
) -> Any:
    """Configure Loguru sinks.

    Args:
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Emit JSON lines instead of the colored console format
        log_file: Optional file sink, rotated at 50 MB and kept for 14 days
        colorize: Color the console format (ignored for JSON)

    Returns:
        Patched Loguru logger
    """
    loguru_logger.remove()
    patched = loguru_logger.patch(patching)

    if json_logs:
        patched.add(sys.stdout, level=level, format=json_formatter, serialize=False)
    else:
        patched.add(sys.stdout, level=level, format=console_formatter, colorize=colorize)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        patched.add(
            log_file,
            level=level,
            format=json_formatter if json_logs else "{time} | {level} | {extra} | {message}",
            rotation="50 MB",
            retention="14 days",
            compression="zip",
            enqueue=True,
        )

    return patched


logger = setup_logging(
    level=settings.log_level,
    json_logs=settings.log_json,
    log_file=settings.log_file,
    colorize=not settings.log_json,
)


# =============================================================================
# Context Helpers
# =============================================================================


def set_request_context(
    request_id: str | None = None,
    actor_id: str | None = None,
    operation: str | None = None,
) -> Token[RequestContext]:
    """Merge values into the request context of the current task.

    Fields left as None keep their current value.

    Returns:
        Token for ``request_context_var.reset`` to restore the previous context
    """
    changes = {
        key: value
        for key, value in (
            ("request_id", request_id),
            ("actor_id", actor_id),
            ("operation", operation),
        )
        if value is not None
    }
    return request_context_var.set(replace(request_context_var.get(), **changes))


def clear_request_context() -> None:
    request_context_var.set(_EMPTY_CONTEXT)


def get_request_context() -> dict[str, str | None]:
    """Return the current request context values."""
    return asdict(request_context_var.get())


@contextmanager
def request_context(
    request_id: str | None = None,
    actor_id: str | None = None,
    operation: str | None = None,
) -> Iterator[RequestContext]:
    """Scope request context to a block, restoring the caller's on exit.

    Example:
        >>> with request_context(operation="search"):
        ...     logger.info("Searching")  # carries the caller's request_id too
    """
    token = set_request_context(request_id=request_id, actor_id=actor_id, operation=operation)
    try:
        yield request_context_var.get()
    finally:
        request_context_var.reset(token)


@contextmanager
def entity_scope(entity: str) -> Iterator[None]:
    """Bind ``entity`` to every record logged inside the block."""
    with loguru_logger.contextualize(entity=entity):
        yield


__all__ = [
    "logger",
    "RequestContext",
    "request_context_var",
    "set_request_context",
    "clear_request_context",
    "get_request_context",
    "request_context",
    "entity_scope",
    "setup_logging",
    "serialize",
]
