"""Main FastAPI application for the waitlist API."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.routing import APIRoute
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from waitlist import __version__
from waitlist.api.rate_limit import limiter
from waitlist.api.v1.referral import router as referral_router
from waitlist.api.v1.signup import router as signup_router
from waitlist.errors import WaitlistError
from waitlist.logging_config import configure_logging, get_logger
from waitlist.settings import settings
from waitlist.signup.service import SignupService, create_signup_service

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses.

    These headers protect against common web vulnerabilities:
    - Clickjacking
    - MIME sniffing
    - Information disclosure
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        # Prevent clickjacking - don't allow embedding in iframes
        response.headers["X-Frame-Options"] = "DENY"

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Referrer Policy - don't leak URLs (and their sign-in tokens) to other sites
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("app_starting", env=settings.env)

    if not settings.email_enabled:
        logger.warning("mailgun_not_configured", message="Sign-in and welcome emails will not be sent")

    app.state.signup_service.store.setup()
    logger.info("document_store_ready")

    yield

    # Shutdown
    logger.info("app_shutting_down")


def available_routes(app: FastAPI) -> list[str]:
    """``METHOD /path`` for every documented endpoint."""
    return [
        f"{method} {route.path}"
        for route in app.routes
        if isinstance(route, APIRoute) and route.include_in_schema
        for method in sorted(route.methods)
    ]


def create_app(signup_service: SignupService | None = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        signup_service: Service to serve; built from settings when omitted

    Returns:
        Configured FastAPI app
    """
    # Hide API docs in production
    is_production = settings.env == "production"

    app = FastAPI(
        title="June Waitlist API",
        description="Magic-link signup, referral codes and leaderboard",
        version=__version__,
        docs_url=None if is_production else "/api/docs",
        redoc_url=None if is_production else "/api/redoc",
        openapi_url=None if is_production else "/api/openapi.json",
        lifespan=lifespan,
    )

    app.state.signup_service = signup_service or create_signup_service()

    # Security Headers middleware (must be added before CORS)
    app.add_middleware(SecurityHeadersMiddleware)

    # CORS middleware - SECURITY: Never allow wildcard in production
    allowed_origins = [
        origin.strip()
        for origin in settings.allowed_origins.split(",")
        if origin.strip()
    ]

    # Block wildcard in production
    if is_production and "*" in allowed_origins:
        logger.error("cors_wildcard_blocked", message="Wildcard CORS not allowed in production")
        allowed_origins = []  # Block all if misconfigured

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=3600,  # Cache preflight for 1 hour
    )

    # Rate limiting (shared instance from rate_limit module)
    app.state.limiter = limiter

    @app.exception_handler(RateLimitExceeded)
    async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
        return JSONResponse(
            status_code=429,
            content={"detail": "Too many requests. Please try again later."},
        )

    @app.exception_handler(WaitlistError)
    async def waitlist_error_handler(request: Request, exc: WaitlistError):
        if exc.public:
            detail = exc.message
        else:
            logger.error("request_failed", path=request.url.path, code=exc.code, error=exc.message)
            detail = "Internal server error"

        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": detail, "code": exc.code},
        )

    @app.exception_handler(404)
    async def not_found_handler(request: Request, exc: Exception):
        logger.info("route_not_found", method=request.method, path=request.url.path)
        return JSONResponse(
            status_code=404,
            content={
                "detail": "Route not found",
                "method": request.method,
                "path": request.url.path,
                "available_routes": available_routes(app),
            },
        )

    # Include v1 API routers
    app.include_router(signup_router, prefix="/api/v1")
    app.include_router(referral_router, prefix="/api/v1")

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "version": __version__,
            "env": settings.env,
            "email_enabled": app.state.signup_service.email_service.enabled,
        }

    # Root endpoint
    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "June Waitlist API",
            "version": __version__,
            "docs": "/api/docs",
        }

    return app


def build_app() -> FastAPI:
    """Factory for ``uvicorn --factory``: configures logging, then the app."""
    configure_logging()
    return create_app()
