import logging
import sys
from typing import Optional

from .config import LOG_LEVEL, LOG_NAMESPACES


class NamespaceFilter(logging.Filter):
    def __init__(self, allowed_namespaces=None):
        super().__init__()
        self.allowed_namespaces = allowed_namespaces if allowed_namespaces is not None else []

    def filter(self, record):
        if not self.allowed_namespaces:
            return True # No namespaces configured, allow everything
        return any(record.name.startswith(ns) for ns in self.allowed_namespaces)


log_formatter = logging.Formatter(
    fmt="%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)


def configure_logging(
    level: str = LOG_LEVEL,
    allowed_namespaces: Optional[list[str]] = None,
    stream=None,
) -> logging.Logger:
    """
    Sets up the 'pos_reports' logger with a single console handler.

    Modules log through logging.getLogger(__name__), so every logger in the
    package ("pos_reports.features.reports.service", ...) inherits from it.
    Calling this again replaces the handler instead of stacking a new one.
    """
    app_logger = logging.getLogger("pos_reports")
    app_logger.setLevel(level)

    console_handler = logging.StreamHandler(stream or sys.stdout)
    console_handler.setFormatter(log_formatter)

    namespaces = LOG_NAMESPACES if allowed_namespaces is None else allowed_namespaces
    if namespaces:
        console_handler.addFilter(NamespaceFilter(namespaces))

    app_logger.handlers = [console_handler]

    # The connection provider is chatty at DEBUG, keep it quieter than the rest
    if logging.getLevelName(level) == logging.DEBUG:
        logging.getLogger("pos_reports.core.database").setLevel(logging.INFO)

    # To see the SQL Tortoise sends:
    # logging.getLogger("tortoise.db_client").setLevel(logging.DEBUG)
    return app_logger
