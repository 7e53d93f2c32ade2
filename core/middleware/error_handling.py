"""
Exception handlers that render every failure as the same JSON envelope.

Error messages pass through sanitization so credentials and tokens never
reach clients or logs.
"""

import logging
import re
from typing import Any, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.exceptions import AuthenticationFailed, PortalError

logger = logging.getLogger(__name__)

# Patterns for sensitive data that should never be echoed
SENSITIVE_PATTERNS = [
    re.compile(r'bearer\s+[A-Za-z0-9._-]+', re.IGNORECASE),
    re.compile(r'password"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'token"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'secret"?\s*[:=]\s*"?[^"\s,}]+', re.IGNORECASE),
    re.compile(r'authorization"?\s*:\s*"?[^"\s,}]+', re.IGNORECASE),
]


def sanitize_error_message(message: Any) -> str:
    """
    Remove sensitive information from error messages.

    Args:
        message: Original error message

    Returns:
        Sanitized error message
    """
    sanitized = str(message)
    for pattern in SENSITIVE_PATTERNS:
        sanitized = pattern.sub("[REDACTED]", sanitized)
    return sanitized


def error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Any] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    """Build the ``{"error": {...}}`` envelope."""
    body = {
        "error": {
            "code": error_code,
            "message": message,
            "path": str(request.url.path),
            "method": request.method,
        }
    }
    if details is not None:
        body["error"]["details"] = details

    request_id = getattr(request.state, "request_id", None)
    if request_id:
        body["error"]["request_id"] = request_id

    return JSONResponse(status_code=status_code, content=body, headers=headers)


def _format_validation_errors(exc: RequestValidationError) -> list[dict[str, Any]]:
    errors = []
    for error in exc.errors():
        errors.append(
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": sanitize_error_message(error["msg"]),
                "type": error["type"],
            }
        )
    return errors


def setup_error_handlers(app: FastAPI, debug: bool = False) -> None:
    """
    Set up exception handlers for FastAPI application.

    Args:
        app: FastAPI application instance
        debug: Include exception types for unexpected errors
    """

    @app.exception_handler(PortalError)
    async def portal_error_handler(request: Request, exc: PortalError):
        """Handle domain errors raised by the service layer."""
        message = sanitize_error_message(exc.message)
        headers = None
        if isinstance(exc, AuthenticationFailed):
            # Reason stays in logs; clients only see the code and message
            logger.info(
                "Authentication failed: %s %s (%s)",
                request.method,
                request.url.path,
                exc.reason,
            )
            if exc.status_code == status.HTTP_401_UNAUTHORIZED:
                headers = {"WWW-Authenticate": "Bearer"}
        elif exc.status_code >= 500:
            logger.error("%s: %s %s", exc.error_code, request.method, request.url.path)
        else:
            logger.warning(
                "%s: %s %s - %s", exc.error_code, request.method, request.url.path, message
            )
        return error_response(
            request, exc.status_code, exc.error_code, message, headers=headers
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions."""
        return error_response(
            request,
            exc.status_code,
            "HTTP_EXCEPTION",
            sanitize_error_message(exc.detail),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle validation errors."""
        details = _format_validation_errors(exc)
        logger.warning(
            "Validation error: %s %s - %s", request.method, request.url.path, details
        )
        return error_response(
            request,
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            "VALIDATION_ERROR",
            "Request validation failed",
            details=details,
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = sanitize_error_message(exc) or "Invalid input provided"
        logger.warning("Value error: %s %s - %s", request.method, request.url.path, message)
        return error_response(
            request, status.HTTP_400_BAD_REQUEST, "INVALID_INPUT", message
        )

    @app.exception_handler(IntegrityError)
    async def integrity_error_handler(request: Request, exc: IntegrityError):
        logger.error(
            "Database integrity error: %s %s", request.method, request.url.path,
            exc_info=debug,
        )
        return error_response(
            request,
            status.HTTP_409_CONFLICT,
            "INTEGRITY_ERROR",
            "Database integrity constraint violated",
        )

    @app.exception_handler(OperationalError)
    async def operational_error_handler(request: Request, exc: OperationalError):
        logger.error(
            "Database operational error: %s %s", request.method, request.url.path,
            exc_info=True,
        )
        return error_response(
            request,
            status.HTTP_503_SERVICE_UNAVAILABLE,
            "DATABASE_ERROR",
            "Database service temporarily unavailable",
        )

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError):
        logger.error(
            "SQLAlchemy error: %s %s", request.method, request.url.path, exc_info=True
        )
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "DATABASE_ERROR",
            "A database error occurred",
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """Handle all other exceptions."""
        logger.error(
            "Unhandled exception: %s %s - %s: %s",
            request.method,
            request.url.path,
            type(exc).__name__,
            sanitize_error_message(exc),
            exc_info=True,
        )
        return error_response(
            request,
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "INTERNAL_SERVER_ERROR",
            "An unexpected error occurred",
            details={"type": type(exc).__name__} if debug else None,
        )
