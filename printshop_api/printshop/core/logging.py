from __future__ import annotations

import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union

# Set per request by the HTTP middleware; "-" outside a request
correlation_id_var: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(correlation_id)s] %(name)s: %(message)s"

# Chatty third-party loggers kept at WARNING unless the root level is stricter
QUIET_LOGGERS = ("apscheduler", "sqlalchemy.engine", "aiosqlite")


class CorrelationIdFilter(logging.Filter):
    """Copies the current correlation id onto every record as `correlation_id`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = correlation_id_var.get() or "-"
        return True


# PUBLIC_INTERFACE
def configure_logging(level: Union[int, str, None] = None) -> None:
    """
    Send all logging to stdout in one line-per-record format tagged with the
    request correlation id.

    `level` defaults to the LOG_LEVEL setting. Calling this again replaces
    the handler instead of stacking a second one.
    """
    if level is None:
        from printshop.core.settings import get_app_settings

        level = get_app_settings().LOG_LEVEL
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(CorrelationIdFilter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
