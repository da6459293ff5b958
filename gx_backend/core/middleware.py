import logging
import uuid
from typing import Iterable

import structlog
from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from gx_backend.core.errors import CorsRejectedError

logger = logging.getLogger("gx_backend.requests")


class CorsOriginGuardMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests whose Origin header is not allow-listed.

    Requests without an Origin (curl, server-to-server, mobile apps) pass
    through. Allowed origins continue to Starlette's CORSMiddleware, which
    adds the Access-Control-* headers and answers preflights.
    """

    def __init__(self, app, allowed_origins: Iterable[str]):
        super().__init__(app)
        self.allowed_origins = frozenset(allowed_origins)

    async def dispatch(self, request: Request, call_next):
        origin = request.headers.get("origin")
        if origin and origin not in self.allowed_origins:
            logger.warning(
                "CORS rejected origin=%s path=%s",
                origin,
                request.url.path,
                extra={"event_type": "cors_rejected"},
            )
            error = CorsRejectedError()
            return JSONResponse(status_code=error.status_code, content=error.to_body())
        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add X-Request-ID header for distributed tracing.

    If the client sends X-Request-ID, it is preserved.
    Otherwise, a new UUID is generated.

    The request ID is:
    - Available in request.state.request_id
    - Bound to structlog context vars, so every log record carries it
    - Returned in response headers for client correlation
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "REQUEST | id=%s | method=%s | path=%s",
            request_id,
            request.method,
            request.url.path,
        )

        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response
