import logging
from typing import Optional

import structlog

from overflow.config import settings

# Loggers that duplicate what RequestLoggingMiddleware and the services already emit
_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx")


def configure_logging(json_logs: Optional[bool] = None) -> None:
    """Route stdlib and structlog output through one pipeline.

    JSON lines in production; a coloured console renderer when DEBUG is on,
    unless json_logs forces one or the other.
    """
    if json_logs is None:
        json_logs = not settings.debug

    level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(format="%(message)s", level=level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,  # must be first
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
    structlog.contextvars.bind_contextvars(app=settings.app_name)
