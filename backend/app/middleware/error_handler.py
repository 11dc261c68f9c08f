"""Error handling for the API: domain errors and uncaught exceptions."""

import logging
from typing import Callable

from fastapi import Request, Response, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.config import settings
from app.services.csv_import.errors import CSVImportError, InvalidStateError, MappingError
from app.utils.logging_utils import redact_ip

logger = logging.getLogger(__name__)


async def csv_import_error_handler(request: Request, exc: CSVImportError) -> JSONResponse:
    """Turn an import pipeline error into a client response carrying its status code."""
    content = {"detail": exc.message}
    if isinstance(exc, InvalidStateError) and exc.current_status:
        content["current_status"] = exc.current_status
    if isinstance(exc, MappingError):
        if exc.missing_fields:
            content["missing_fields"] = exc.missing_fields
        if exc.unknown_fields:
            content["unknown_fields"] = exc.unknown_fields

    if exc.status_code >= 500:
        logger.error("Import error on %s %s: %s", request.method, request.url.path, exc.message)
    else:
        logger.info(
            "Rejected %s %s with %d: %s",
            request.method, request.url.path, exc.status_code, exc.message,
        )
    return JSONResponse(status_code=exc.status_code, content=content)


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """
    Middleware for handling uncaught exceptions.

    - Logs errors with request context (client IP redacted)
    - Returns safe error messages to clients (no stack traces in production)
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Handle request and catch any uncaught exceptions."""
        try:
            return await call_next(request)

        except Exception as exc:
            logger.exception(
                "Unhandled error on %s %s (user=%s, ip=%s, request_id=%s)",
                request.method,
                request.url.path,
                getattr(request.state, "user_id", None),
                redact_ip(request.client.host if request.client else None),
                getattr(request.state, "request_id", None),
            )

            if settings.DEBUG:
                # Development: Show detailed error
                error_detail = {
                    "error": str(exc),
                    "type": type(exc).__name__,
                    "detail": "An error occurred processing your request",
                }
            else:
                # Production: Generic error message (never expose internals)
                error_detail = {
                    "error": "Internal server error",
                    "detail": "An unexpected error occurred. Please try again later.",
                }

            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_detail
            )
