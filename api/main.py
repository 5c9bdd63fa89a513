"""
SlideDeck Analytics API - Main Application

FastAPI application entry point for the landing-page analytics service.
Handles event ingestion from the public landing page and the admin
dashboard's statistics endpoints.

Port: 7300
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded

from core.config import get_settings
from core.logger import get_logger, setup_logging
from api.middleware.rate_limit import limiter, _rate_limit_exceeded_handler
from api.routes import analytics, auth, tracking
from cache.factory import create_cache_backends
from core.redis_client import is_redis_available

# Initialize centralized logging (must be done before importing routes)
setup_logging()
logger = get_logger(__name__)

settings = get_settings()

# Initialize Sentry (if enabled)
if settings.SENTRY_ENABLED and settings.SENTRY_DSN:
    try:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[
                FastApiIntegration(),
                SqlalchemyIntegration(),
            ],
            traces_sample_rate=0.1,
            environment=settings.ENVIRONMENT,
            release=settings.APP_VERSION,
        )
        logger.info("Sentry error tracking initialized")
    except ImportError:
        logger.warning("Sentry SDK not installed. Install with: pip install sentry-sdk[fastapi]")

app = FastAPI(
    title=settings.APP_NAME,
    description="Landing page event ingestion and funnel / heatmap analytics",
    version=settings.APP_VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    openapi_url="/openapi.json" if settings.DEBUG else None
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# The beacon sends text/plain, so no preflight is needed for /track
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

MAX_REQUEST_SIZE = settings.MAX_REQUEST_SIZE_MB * 1024 * 1024


@app.middleware("http")
async def limit_request_size(request: Request, call_next):
    """
    Reject requests whose Content-Length exceeds MAX_REQUEST_SIZE_MB.

    Returns:
        Response: 413 for oversized bodies, otherwise the route's response
    """
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_REQUEST_SIZE:
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(
            f"Request rejected: Content-Length {content_length} bytes exceeds limit {MAX_REQUEST_SIZE} bytes. "
            f"IP: {client_ip}, Path: {request.url.path}"
        )
        return JSONResponse(
            status_code=413,
            content={
                "detail": f"Request body too large. Maximum size is {settings.MAX_REQUEST_SIZE_MB}MB",
                "error_code": "payload_too_large",
            }
        )
    return await call_next(request)


@app.middleware("http")
async def add_security_headers(request: Request, call_next):
    """Add security headers to all HTTP responses."""
    response = await call_next(request)

    if settings.ENVIRONMENT == "production":
        response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains; preload"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

    return response


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint to verify API is running.

    Returns:
        dict: Status and version information
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT,
        "cache_backend": settings.CACHE_BACKEND,
        "redis": is_redis_available() if settings.CACHE_BACKEND == "redis" else None
    }


@app.get("/", tags=["Root"])
async def root():
    """API welcome message and documentation links."""
    return {
        "message": f"Welcome to {settings.APP_NAME} API",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_URL}/docs",
        "health": f"{settings.API_URL}/health"
    }


app.include_router(tracking.router, prefix="/api/analytics", tags=["Tracking"])
app.include_router(analytics.router, prefix="/api/analytics", tags=["Analytics"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])


@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """
    Global exception handler for unhandled errors.

    Returns:
        JSONResponse: 500 with the message only in DEBUG
    """
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "detail": "Internal server error",
            "message": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


@app.on_event("startup")
async def startup_event():
    """
    Application startup event handler.

    Builds the shared session cache and presence tracker, and optionally
    creates the database tables.
    """
    if settings.ENVIRONMENT == "production" and settings.DEBUG:
        logger.critical("SECURITY ERROR: DEBUG=True in production environment!")
        raise RuntimeError("DEBUG must be False in production. Check your environment variables.")

    logger.info(f"Starting {settings.APP_NAME} API v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    if not getattr(app.state, "session_cache", None):
        app.state.session_cache, app.state.presence = create_cache_backends()

    if settings.AUTO_CREATE_TABLES:
        from core.database import Base, engine
        import models  # noqa: F401  (registers the tables)

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables ensured")

    if not settings.ADMIN_EMAIL or not settings.ADMIN_PASSWORD_HASH:
        logger.warning("ADMIN_EMAIL / ADMIN_PASSWORD_HASH not set; dashboard login is disabled")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event handler."""
    logger.info(f"Shutting down {settings.APP_NAME} API")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=7300,
        reload=settings.DEBUG
    )
