"""structlog setup.

Log calls everywhere use event-style names ("session.created",
"project.deleted") plus keyword context. Request ids are merged in from
contextvars, bound by RequestIdMiddleware.
"""

import logging

import structlog


def configure_logging(level: str = "info", debug: bool = False) -> None:
    """Configure structlog once, at app creation."""
    log_level = logging.DEBUG if debug else logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    renderer = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        cache_logger_on_first_use=True,
    )
