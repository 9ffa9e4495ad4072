"""
FastAPI main application for the Vestitus backend.

To run: uvicorn app.main:app --reload
"""
from contextlib import asynccontextmanager
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.core.database import close_db, check_db_connection
from app.api.v1 import api_router
from app.error_handlers import register_exception_handlers
from app.logging_config import setup_logging
from app.middleware import (
    RequestLoggingMiddleware,
    limiter,
    rate_limit_exceeded_handler,
    http_exception_handler,
)
from app.services.oauth import build_oauth_verifiers

logger = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build process-wide collaborators on startup and release them on shutdown.
    """
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    if not settings.is_production:
        logger.warning("Non-production environment: password reset codes are returned in API responses")

    app.state.oauth_verifiers = build_oauth_verifiers(settings)

    yield

    logger.info("Shutting down application...")
    await app.state.oauth_verifiers.aclose()
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Vestitus - accounts, sign-in, favourites and addresses",
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
    lifespan=lifespan
)

app.state.limiter = limiter

app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.include_router(api_router)


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "docs": "/docs" if settings.debug else "disabled",
        "api_v1": "/api/v1"
    }


@app.get("/health")
async def health_check():
    """Health check including database reachability."""
    database_ok = await check_db_connection()
    return {
        "status": "healthy" if database_ok else "degraded",
        "database": "ok" if database_ok else "unreachable",
        "version": settings.app_version
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug
    )
