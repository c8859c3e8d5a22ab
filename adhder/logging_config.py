"""
Structured logging for the task API and CLI.

structlog wraps stdlib logging: modules keep using
logging.getLogger(__name__), and their records are rendered by the same
processor chain as structlog loggers. Output is JSON when asked for,
console-friendly otherwise.

Per-request fields (request id, method, path) are bound into structlog
contextvars by the API middleware and show up on every line logged
while that request is handled.

Usage:
    from adhder.logging_config import setup_logging
    setup_logging(config)          # "logging" section of args/adhder.yaml

Environment:
    ADHDER_LOG_LEVEL   overrides logging.level
    ADHDER_LOG_FORMAT  "json" overrides logging.format
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _resolve(config: dict[str, Any] | None, level: str | None, json_output: bool | None) -> tuple[int, bool]:
    settings = (config or {}).get("logging") or {}

    if level is None:
        level = os.environ.get("ADHDER_LOG_LEVEL") or settings.get("level") or "INFO"
    if json_output is None:
        log_format = os.environ.get("ADHDER_LOG_FORMAT") or settings.get("format") or "console"
        json_output = str(log_format).lower() == "json"

    return getattr(logging, str(level).upper(), logging.INFO), json_output


def setup_logging(
    config: dict[str, Any] | None = None,
    level: str | None = None,
    json_output: bool | None = None,
) -> None:
    """Route stdlib and structlog output through one renderer on stderr."""
    numeric_level, json_output = _resolve(config, level, json_output)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(numeric_level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def bind_request_context(**values: Any) -> None:
    """Attach fields to every log line for the rest of the current request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**values)


def clear_request_context() -> None:
    structlog.contextvars.clear_contextvars()


__all__ = ["bind_request_context", "clear_request_context", "get_logger", "setup_logging"]
