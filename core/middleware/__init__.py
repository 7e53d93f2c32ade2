"""
Core middleware package.

- Error handlers rendering a uniform JSON envelope with sanitized messages
- Structured request logging with sensitive-data masking
- Session-token authentication
"""

from core.middleware.error_handling import (
    error_response,
    setup_error_handlers,
    sanitize_error_message,
)

from core.middleware.logging import (
    StructuredFormatter,
    StructuredLoggingMiddleware,
    setup_logging,
)

from core.middleware.authentication import (
    AuthenticationMiddleware,
    get_session_claims,
)

__all__ = [
    # Error handling
    "error_response",
    "setup_error_handlers",
    "sanitize_error_message",
    # Logging
    "StructuredFormatter",
    "StructuredLoggingMiddleware",
    "setup_logging",
    # Authentication
    "AuthenticationMiddleware",
    "get_session_claims",
]
