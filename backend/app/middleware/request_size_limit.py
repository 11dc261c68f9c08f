"""Middleware to reject oversized request bodies before they reach the import routes."""

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

# Room for multipart boundaries and part headers around the file itself
MULTIPART_OVERHEAD_BYTES = 64 * 1024


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """
    Middleware to limit request body size.

    Uploads larger than the file limit plus multipart overhead are refused
    with 413 without being read into memory by the route.
    """

    def __init__(self, app, max_request_size: int = 10 * 1024 * 1024):
        """
        Initialize middleware.

        Args:
            app: FastAPI application
            max_request_size: Maximum file size in bytes (default: 10MB)
        """
        super().__init__(app)
        self.max_request_size = max_request_size + MULTIPART_OVERHEAD_BYTES
        self._max_mb = f"{max_request_size / (1024 * 1024):.1f}MB"

    def _too_large(self) -> JSONResponse:
        return JSONResponse(
            status_code=413,
            content={"detail": f"Request body too large. Maximum size is {self._max_mb}"},
        )

    async def dispatch(self, request: Request, call_next):
        """Check request size before processing."""
        content_length = request.headers.get("content-length")
        if content_length and content_length.isdigit():
            if int(content_length) > self.max_request_size:
                return self._too_large()

        # Content-Length can be omitted with chunked encoding
        if request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            if len(body) > self.max_request_size:
                return self._too_large()

        response: Response = await call_next(request)
        return response
