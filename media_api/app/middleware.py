"""Request id propagation, request logging and body size limit."""
import contextvars
import logging
import time
import uuid

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

_logger = logging.getLogger("media_api")

request_id_ctx: contextvars.ContextVar[str] = contextvars.ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """Attach request_id to all log records for correlation."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx.get()
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tags each request with an id, logs it, and rejects oversized bodies before parsing."""

    def __init__(self, app, max_body_size: int):
        super().__init__(app)
        self.max_body_size = max_body_size

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        token = request_id_ctx.set(request_id)
        start = time.monotonic()
        try:
            _logger.info("Request start method=%s path=%s", request.method, request.url.path)
            content_length = request.headers.get("content-length")
            if content_length and content_length.isdigit() and int(content_length) > self.max_body_size:
                _logger.warning("Rejected request body size=%s limit=%d", content_length, self.max_body_size)
                response = JSONResponse(status_code=413, content={"detail": "Request body too large"})
            else:
                response = await call_next(request)
            elapsed_ms = int((time.monotonic() - start) * 1000)
            _logger.info(
                "Request end method=%s path=%s status=%d elapsed_ms=%d",
                request.method,
                request.url.path,
                response.status_code,
                elapsed_ms,
            )
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            request_id_ctx.reset(token)
