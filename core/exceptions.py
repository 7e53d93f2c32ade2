"""
Domain exceptions raised by the service layer.

Each exception carries the HTTP status and error code it is rendered with by
the error handlers in ``core.middleware.error_handling``.
"""

from fastapi import status


class PortalError(Exception):
    """Base class for errors that are terminal for the current request."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "PORTAL_ERROR"
    default_message: str = "The request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ==================== Authentication ==================== #

class AuthenticationFailed(PortalError):
    """
    Login was refused.

    Subclasses are only told apart in logs and audit events; clients see the
    same error code with a short message.
    """

    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "AUTHENTICATION_FAILED"
    reason = "authentication_failed"


class InvalidCredentials(AuthenticationFailed):
    default_message = "Invalid email or password"
    reason = "invalid_credentials"


class AccountInactive(AuthenticationFailed):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Your account has been deactivated. Please contact support."
    reason = "account_inactive"


class AccessCodeRequired(AuthenticationFailed):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "A valid access code is required for your first login."
    reason = "access_code_required"


class AccessRevoked(AuthenticationFailed):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = (
        "Your access code has expired. Please contact your referrer for a new one."
    )
    reason = "access_revoked"


class InvalidResetToken(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_RESET_TOKEN"
    default_message = "Invalid or expired password reset token."


# ==================== Access codes ==================== #

class CodeGenerationExhausted(PortalError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "CODE_GENERATION_EXHAUSTED"
    default_message = "Failed to generate a unique access code. Please try again later."


class DuplicateAccessCode(Exception):
    """A generated code collided with a persisted one. Never leaves the issuer."""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"Access code collision on {code[:2]}***")


class AccountCollision(Exception):
    """A concurrent insert took the candidate's email or derived username. Retried by the issuer."""


# ==================== Applications ==================== #

class DuplicateApplication(PortalError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "DUPLICATE_APPLICATION"
    default_message = "You have already applied to this job."


class ResumeRequired(PortalError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "RESUME_REQUIRED"
    default_message = "A resume is required before applying. Please complete your profile."


# ==================== Generic ==================== #

class Conflict(PortalError):
    """A concurrent writer changed the record between read and write."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    default_message = "The resource was modified concurrently. Please retry."


class NotFound(PortalError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class Forbidden(PortalError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_message = "You don't have permission to perform this action"
