"""
Report errors and the handlers that turn them into JSON responses.

Every failure a report can produce is a ReportError carrying the HTTP status
it maps to. Input errors are raised before a database connection is taken,
so a 400 never costs a pool slot.
"""

import logging

from fastapi import Request, status
from fastapi.responses import JSONResponse

from .config import REPORTS_OFFLINE_FALLBACK

logger = logging.getLogger(__name__)


class ReportError(Exception):
    """Base class for report failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ReportInputError(ReportError):
    """Client supplied parameters a report can't run with."""

    status_code = status.HTTP_400_BAD_REQUEST


class InvalidRangeError(ReportInputError):
    pass


class InvalidIntervalError(ReportInputError):
    pass


class InvalidLimitError(ReportInputError):
    pass


class InvalidDateError(ReportInputError):
    pass


class DataSourceUnavailableError(ReportError):
    """The database could not hand out a connection or answer in time. Not retried."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE


class UnknownQueryError(ReportError):
    """Anything else that went wrong while running a report."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


async def handle_report_error(request: Request, exc: ReportError) -> JSONResponse:
    """Convert a ReportError into the {success: false, error: ...} envelope."""
    content = {"success": False, "error": exc.message}
    if isinstance(exc, DataSourceUnavailableError):
        content["fallback"] = REPORTS_OFFLINE_FALLBACK
        logger.warning(f"Data source unavailable at {request.url.path}: {exc.message}")
    elif isinstance(exc, ReportInputError):
        logger.info(f"Rejected report request at {request.url.path}: {exc.message}")
    else:
        logger.error(f"Report failed at {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=content)


def register_exception_handlers(app):
    """Register the report error handlers with the FastAPI app"""
    app.add_exception_handler(ReportError, handle_report_error)
