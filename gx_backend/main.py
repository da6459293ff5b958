import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gx_backend.api.routes import contact, health
from gx_backend.core.config import settings
from gx_backend.core.errors import register_exception_handlers
from gx_backend.core.logging import setup_logging
from gx_backend.core.middleware import CorsOriginGuardMiddleware, RequestIdMiddleware
from gx_backend.core.security_headers import SecurityHeadersMiddleware
from gx_backend.services.contact_service import ContactService

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events"""
    # The SMTP transport is built once here and shared by every request.
    if getattr(app.state, "contact_service", None) is None:
        app.state.contact_service = ContactService.from_settings()

    logger.info(f"Starting {settings.PROJECT_NAME} v{settings.VERSION} on port {settings.PORT}")
    logger.info(f"SMTP configured for: {settings.SMTP_HOST}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Email recipients: {', '.join(settings.email_recipients)}")
    if not settings.SMTP_TLS_REJECT_UNAUTHORIZED:
        logger.warning("SMTP TLS certificate validation is disabled")

    yield

    logger.info("Shutting down...")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description="Contact form relay for GX Integrated Services.",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None,
)

# CORS headers and preflight for allow-listed origins
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origin_list,
    allow_credentials=True,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)

# 403 for any other origin
app.add_middleware(
    CorsOriginGuardMiddleware, allowed_origins=settings.allowed_origin_list
)

app.add_middleware(SecurityHeadersMiddleware)

# Request ID Tracing
app.add_middleware(RequestIdMiddleware)

# Register global exception handlers
register_exception_handlers(app)

app.include_router(health.router)
app.include_router(contact.router)
