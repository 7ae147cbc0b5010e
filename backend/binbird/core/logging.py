from __future__ import annotations

import logging

import structlog
from structlog.typing import FilteringBoundLogger


def configure_logging(debug: bool = False) -> None:
    """
    Route structlog events through the standard library root logger.

    Debug mode renders for a terminal; otherwise each event is one JSON line.
    Values bound with :func:`bind_device` are merged into every event logged
    while handling that request, including work handed off to threads.
    """

    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", level=level)

    renderer = (
        structlog.dev.ConsoleRenderer() if debug else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        cache_logger_on_first_use=True,
    )


def bind_device(device_id: str) -> None:
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(device_id=device_id)


def get_logger(name: str | None = None) -> FilteringBoundLogger:
    return structlog.get_logger(name)
