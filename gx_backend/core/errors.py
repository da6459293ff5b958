"""
=============================================================================
GX SERVICES - ERROR HANDLING MODULE
=============================================================================
Error taxonomy and global exception handlers.

Every failure is answered with the same envelope:

    {"success": false, "message": "...", ...}

Features:
- ApiError subclasses carry their HTTP status and client-facing message
- Server-side causes are logged in full and echoed to the client only
  outside production
- Starlette 404/405 are both answered as "Endpoint not found"
- Catch-all handler so no request failure takes the process down

Usage:
    # In main.py
    from gx_backend.core.errors import register_exception_handlers
    register_exception_handlers(app)
=============================================================================
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from gx_backend.core.config import settings
from gx_backend.schemas.contact import FieldError

logger = logging.getLogger(__name__)

VALIDATION_ERROR_MESSAGE = "Validation error"
SERVICE_UNAVAILABLE_MESSAGE = (
    "Email service temporarily unavailable. Please try again later."
)
DISPATCH_FAILED_MESSAGE = (
    "Failed to send message. Please try again later or contact us directly."
)
NOT_FOUND_MESSAGE = "Endpoint not found"
MALFORMED_BODY_MESSAGE = "Invalid JSON in request body"
CORS_REJECTED_MESSAGE = "CORS policy violation"
PAYLOAD_TOO_LARGE_MESSAGE = "Request body too large"
INTERNAL_ERROR_MESSAGE = "Internal server error"


def error_body(message: str, **extra: Any) -> Dict[str, Any]:
    """Build the failure envelope, dropping keys whose value is None."""
    body: Dict[str, Any] = {"success": False, "message": message}
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


def rate_limit_headers(request: Request) -> Optional[Dict[str, str]]:
    """RateLimit-* headers recorded for this request by the rate limiter."""
    return getattr(request.state, "rate_limit_headers", None)


def diagnostic_detail(cause: Optional[BaseException]) -> Optional[str]:
    """Return the cause text for clients, or None in production."""
    if cause is None or settings.is_production:
        return None
    return str(cause)


class ApiError(Exception):
    """Base class for failures that map to a fixed HTTP response."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    message: str = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None, cause: Optional[BaseException] = None):
        super().__init__(message or self.message)
        if message:
            self.message = message
        self.cause = cause

    def to_body(self) -> Dict[str, Any]:
        return error_body(self.message)


class ContactValidationError(ApiError):
    """Client-supplied data failed the ContactForm schema."""

    status_code = status.HTTP_400_BAD_REQUEST
    message = VALIDATION_ERROR_MESSAGE

    def __init__(self, errors: List[FieldError]):
        super().__init__()
        self.errors = errors

    def to_body(self) -> Dict[str, Any]:
        return error_body(
            self.message, errors=[error.model_dump() for error in self.errors]
        )


class ServiceUnavailableError(ApiError):
    """Mail transport could not be verified or reached."""

    message = SERVICE_UNAVAILABLE_MESSAGE


class DispatchFailedError(ApiError):
    """Transport verified but the send (or anything after validation) failed."""

    message = DISPATCH_FAILED_MESSAGE

    def to_body(self) -> Dict[str, Any]:
        return error_body(self.message, error=diagnostic_detail(self.cause))


class MalformedBodyError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    message = MALFORMED_BODY_MESSAGE


class PayloadTooLargeError(ApiError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    message = PAYLOAD_TOO_LARGE_MESSAGE


class CorsRejectedError(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    message = CORS_REJECTED_MESSAGE


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_body(),
            headers=rate_limit_headers(request),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code in (
            status.HTTP_404_NOT_FOUND,
            status.HTTP_405_METHOD_NOT_ALLOWED,
        ):
            return JSONResponse(
                status_code=status.HTTP_404_NOT_FOUND,
                content=error_body(NOT_FOUND_MESSAGE),
            )
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all handler for unhandled exceptions.

        - Logs the full traceback server-side
        - Returns the generic envelope, with the cause outside production
        """
        logger.error(
            "Unhandled exception on %s %s",
            request.method,
            request.url.path,
            exc_info=exc,
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_body(INTERNAL_ERROR_MESSAGE, error=diagnostic_detail(exc)),
            headers=rate_limit_headers(request),
        )
