"""Request/response logging middleware for audit trails."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from app.core.logging_config import bind_request_context, clear_request_context, get_logger
from app.core.security import decode_token
from app.utils.logging_utils import redact_email, redact_ip


logger = get_logger(__name__)


class UserContextMiddleware(BaseHTTPMiddleware):
    """
    Middleware to extract user context from JWT token and add to request state.

    This middleware runs BEFORE logging middleware to provide user context.
    Does NOT validate the token (that's done by get_current_user dependency).
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Extract user id and email from token if present."""
        auth_header = request.headers.get("Authorization")

        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer "):]

            try:
                payload = decode_token(token)
            except JWTError:
                # Invalid or expired - the auth dependency will reject it
                payload = {}

            if payload.get("sub"):
                request.state.user_id = str(payload["sub"])
            if payload.get("email"):
                request.state.user_email = payload["email"]

        return await call_next(request)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for logging all API requests and responses.

    Binds the request id (and user id when known) to the structlog context so
    every record emitted while handling the request carries them.
    """

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        start_time = time.time()

        method = request.method
        path = request.url.path
        client_host = request.client.host if request.client else "unknown"
        user_email = getattr(request.state, "user_email", None)

        clear_request_context()
        bind_request_context(
            request_id=request_id,
            user_id=getattr(request.state, "user_id", None),
        )
        request.state.request_id = request_id

        logger.info(
            "request_started",
            method=method,
            path=path,
            user=redact_email(user_email),
            ip=redact_ip(client_host),
        )

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "request_failed",
                method=method,
                path=path,
                duration_ms=int((time.time() - start_time) * 1000),
                error=f"{type(e).__name__}: {e}",
            )
            raise
        finally:
            clear_request_context()

        logger.info(
            "request_completed",
            request_id=request_id,
            method=method,
            path=path,
            status=response.status_code,
            duration_ms=int((time.time() - start_time) * 1000),
        )

        # Add request ID to response headers for debugging
        response.headers["X-Request-ID"] = request_id
        return response


class AuditLogMiddleware(BaseHTTPMiddleware):
    """
    Middleware for auditing operations that change a user's ledger.

    Uploads, executions and deletions of imports are always audited.
    """

    AUDIT_SUFFIXES = {
        "/upload": "IMPORT_UPLOAD",
        "/execute": "IMPORT_EXECUTE",
        "/mapping": "IMPORT_MAPPING",
    }

    IMPORTS_PREFIX = "/api/v1/imports"

    def __init__(self, app: ASGIApp):
        super().__init__(app)

    def _audit_type(self, method: str, path: str):
        if not path.startswith(self.IMPORTS_PREFIX):
            return None
        for suffix, action in self.AUDIT_SUFFIXES.items():
            if path.rstrip("/").endswith(suffix):
                return action
        if method == "DELETE":
            return "IMPORT_DELETE"
        return None

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Audit sensitive operations."""
        audit_type = self._audit_type(request.method, request.url.path)
        if audit_type is None:
            return await call_next(request)

        response = await call_next(request)

        client_host = request.client.host if request.client else "unknown"
        logger.info(
            "audit",
            action=audit_type,
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            user=redact_email(getattr(request.state, "user_email", None)),
            ip=redact_ip(client_host),
            request_id=getattr(request.state, "request_id", "unknown"),
        )
        return response
