"""structlog setup shared by every disflow module."""

from __future__ import annotations

import logging
from typing import Any

import structlog
from structlog.contextvars import (
    bind_contextvars,
    clear_contextvars,
    merge_contextvars,
)

__all__ = [
    "bind_interaction_context",
    "clear_context",
    "get_logger",
    "setup_logging",
]


def setup_logging(*, debug: bool = False) -> None:
    level = logging.DEBUG if debug else logging.INFO
    structlog.configure(
        processors=[
            merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> Any:
    if name is None:
        return structlog.get_logger()
    return structlog.get_logger(logger_name=name)


def bind_interaction_context(**fields: Any) -> None:
    bind_contextvars(**{key: value for key, value in fields.items() if value is not None})


def clear_context() -> None:
    clear_contextvars()
