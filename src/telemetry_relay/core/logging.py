# src/telemetry_relay/core/logging.py
"""Structured logging configuration for telemetry-relay.

Dispatcher modules log through structlog.get_logger(__name__); httpx and
httpcore log through the stdlib. Both end up on one root handler whose
ProcessorFormatter renders them identically, as console lines or JSON.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

# Children (httpcore.connection, httpcore.http11, ...) inherit these levels
_HTTP_CLIENT_LOGGERS: tuple[str, ...] = ("httpx", "httpcore")

_FORMATTER_KEYS: tuple[str, ...] = ("_record", "_from_structlog")


def _strip_formatter_keys(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """ProcessorFormatter adds these to every event; renderers never see them."""
    for key in _FORMATTER_KEYS:
        del event_dict[key]
    return event_dict


def _resolve_level(level: str) -> int:
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level!r}")
    return resolved


def _event_processors() -> list[Any]:
    """Enrichment shared by structlog events and foreign stdlib records."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(json_output: bool) -> list[Any]:
    if json_output:
        return [_strip_formatter_keys, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [_strip_formatter_keys, structlog.dev.ConsoleRenderer(colors=False)]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging through one formatter.

    Args:
        json_output: One JSON object per line instead of console output
        level: Root level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        stream: Destination, stderr by default; CLI stdout carries results

    Raises:
        ValueError: If level is not a logging level name.
    """
    root_level = _resolve_level(level)
    event_processors = _event_processors()

    structlog.configure(
        processors=[*event_processors, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests reconfigure between cases
        cache_logger_on_first_use=False,
    )

    formatter = ProcessorFormatter(
        processors=_render_processors(json_output),
        foreign_pre_chain=event_processors,
    )
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    # Per-request DEBUG chatter from the HTTP client stays off even at DEBUG
    for name in _HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))
