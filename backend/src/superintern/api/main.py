"""Main FastAPI application for the SuperIntern API."""

import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from superintern import __version__
from superintern.api.rate_limit import limiter
from superintern.api.v1.admin import router as admin_router
from superintern.api.v1.auth import router as auth_router
from superintern.api.v1.company_requests import router as company_requests_router
from superintern.api.v1.profile import router as profile_router
from superintern.api.v1.referral import router as referral_router
from superintern.api.v1.tasks import router as tasks_router
from superintern.api.v1.webhooks import router as webhooks_router
from superintern.logging_config import bind_request_context, configure_logging, get_logger
from superintern.services import build_services
from superintern.settings import settings
from superintern.storage.db import Database

logger = get_logger(__name__)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Bind a request id to the log context and echo it back."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id", "")[:64] or uuid.uuid4().hex
        bind_request_context(request_id, request.method, request.url.path)

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id
        return response


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        response.headers["X-Frame-Options"] = "DENY"
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        # API only serves JSON
        response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info("app_starting", env=settings.env)

    app.state.services.db.create_tables()
    logger.info("database_tables_ready")

    yield

    # Shutdown
    logger.info("app_shutting_down")
    app.state.services.db.dispose()


def create_app(database: Database | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        database: Database handle to use (a new one from settings if omitted)

    Returns:
        Configured FastAPI app
    """
    # Hide API docs in production
    is_production = settings.env == "production"

    app = FastAPI(
        title="SuperIntern API",
        description="Internship program with referrals and a task marketplace",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.services = build_services(database or Database())

    # Security Headers middleware (must be added before CORS)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestContextMiddleware)

    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        max_age=3600,
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests. Please try again later."},
        )

    @app.exception_handler(SQLAlchemyError)
    async def store_error_handler(request: Request, exc: SQLAlchemyError):
        # Store details stay in the logs
        logger.error("store_unavailable", path=request.url.path, error=str(exc))
        return JSONResponse(
            status_code=503,
            content={"detail": "Service temporarily unavailable. Please try again."},
        )

    app.include_router(auth_router, prefix="/api/v1")
    app.include_router(profile_router, prefix="/api/v1")
    app.include_router(referral_router, prefix="/api/v1")
    app.include_router(tasks_router, prefix="/api/v1")
    app.include_router(admin_router, prefix="/api/v1")
    app.include_router(webhooks_router, prefix="/api/v1")
    app.include_router(company_requests_router, prefix="/api/v1")

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
        }

    return app


# Create app instance
app = create_app()
