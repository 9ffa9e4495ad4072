# app/middleware.py
"""Request logging, rate limiting and HTTPException handling."""

import time
from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded

from app.core.config import settings
from app.logging_config import get_logger

logger = get_logger("middleware")

# Applied per-route to the credential endpoints
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log all requests with timing and status"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        client = request.client.host if request.client else "unknown"

        logger.info(f"[REQUEST] {request.method} {request.url.path} - Client: {client}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            logger.error(
                f"[ERROR] {request.method} {request.url.path} - "
                f"Duration: {process_time:.2f}ms - Error: {e}",
                exc_info=True
            )
            raise

        process_time = (time.time() - start_time) * 1000  # ms
        logger.info(
            f"[RESPONSE] {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Duration: {process_time:.2f}ms"
        )
        response.headers["X-Process-Time"] = f"{process_time:.2f}ms"
        return response


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Custom handler for rate limit errors"""
    logger.warning(
        f"[RATE_LIMIT] Client {request.client.host if request.client else 'unknown'} "
        f"exceeded rate limit on {request.url.path}"
    )
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "message": "Too many requests. Please slow down and try again later.",
            "retry_after": 60
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """HTTPException handler with logging, rendered like application errors"""
    logger.warning(
        f"[HTTP_ERROR] {request.method} {request.url.path} - "
        f"Status: {exc.status_code} - Detail: {exc.detail}"
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail if isinstance(exc.detail, str) else "HTTP error",
            "details": {},
            "path": str(request.url.path)
        },
        headers=getattr(exc, "headers", None),
    )
