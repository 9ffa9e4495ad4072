"""Application exceptions and the handlers that turn them into JSON responses."""
from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import SQLAlchemyError, IntegrityError
from typing import Union

from .logging_config import get_logger

logger = get_logger("error_handlers")


class AppException(Exception):
    """Base exception for application-specific errors."""

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(AppException):
    """Raised when a requested resource is not found."""

    def __init__(self, message: str, resource: str = None, identifier: Union[int, str] = None):
        details = {}
        if resource:
            details["resource"] = resource
        if identifier is not None:
            details["identifier"] = str(identifier)
        super().__init__(message=message, status_code=404, details=details)


class UnauthorizedError(AppException):
    """Bad credentials, bad or expired OTP, failed token or provider verification."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message=message, status_code=401)


class ForbiddenError(AppException):
    """Authenticated, but the resource belongs to someone else."""

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message, status_code=403)


class BadRequestError(AppException):
    """Missing correlation data or an identity that is already linked."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=400, details=details)


class ConflictError(AppException):
    """Duplicate email or provider id, or password reuse."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=409, details=details)


async def app_exception_handler(request: Request, exc: AppException):
    """Handler for custom application exceptions."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"Application error: {exc.message}",
        extra={
            "status_code": exc.status_code,
            "path": request.url.path,
            "method": request.method,
        }
    )

    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.message,
            "details": exc.details,
            "path": request.url.path
        },
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handler for request validation errors."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": " -> ".join(str(loc) for loc in error["loc"]),
            "message": error["msg"],
            "type": error["type"]
        })

    logger.warning(
        f"Validation error on {request.method} {request.url.path}",
        extra={"validation_errors": errors}
    )

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error": "Validation failed",
            "validation_errors": errors,
            "path": request.url.path
        }
    )


async def sqlalchemy_exception_handler(request: Request, exc: SQLAlchemyError):
    """Handler for SQLAlchemy database errors."""
    if isinstance(exc, IntegrityError):
        error_msg = "Data integrity constraint violated"
        status_code = status.HTTP_409_CONFLICT
    else:
        error_msg = "Database error occurred"
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    logger.error(
        f"Database error: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "error": error_msg,
            "path": request.url.path
        }
    )


async def generic_exception_handler(request: Request, exc: Exception):
    """Handler for unexpected exceptions."""
    logger.critical(
        f"Unhandled exception: {exc}",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
        },
        exc_info=True
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "Internal server error",
            "message": "An unexpected error occurred. Please contact support if the issue persists.",
            "path": request.url.path,
        }
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppException, app_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, sqlalchemy_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
