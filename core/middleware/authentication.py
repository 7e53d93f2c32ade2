"""
Authentication middleware for session tokens.

Verifies the bearer token on every non-public request and injects its claims
into the request scope. Loading the account itself is left to the
``api.dependencies`` layer, which owns the database session.
"""

import logging
from typing import Callable, Optional

import jwt
from fastapi import Request, status

from core.middleware.error_handling import error_response
from core.security import SessionClaims, verify_session_token

logger = logging.getLogger(__name__)

# Public endpoints that don't require authentication
PUBLIC_ENDPOINTS = [
    "/",
    "/health",
    "/api/v1/health",
    "/api/v1/auth/login",
    "/api/v1/auth/forgot-password",
    "/api/v1/auth/reset-password",
    "/docs",
    "/redoc",
    "/openapi.json",
]

PUBLIC_PREFIXES = ("/docs", "/redoc")


class AuthenticationMiddleware:
    """
    Reject requests without a valid session token.

    Expired, malformed and forged tokens are answered with the same 401 so
    clients cannot tell them apart.
    """

    def __init__(
        self,
        app: Callable,
        jwt_secret: Optional[str] = None,
        jwt_algorithm: Optional[str] = None,
    ):
        self.app = app
        self.jwt_secret = jwt_secret
        self.jwt_algorithm = jwt_algorithm

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        if scope.get("method") == "OPTIONS" or self._is_public_endpoint(request.url.path):
            await self.app(scope, receive, send)
            return

        token = self._extract_token(request)
        if not token:
            response = error_response(
                request,
                status.HTTP_401_UNAUTHORIZED,
                "AUTHENTICATION_REQUIRED",
                "Authentication required",
                headers={"WWW-Authenticate": "Bearer"},
            )
            await response(scope, receive, send)
            return

        try:
            claims = verify_session_token(token, self.jwt_secret, self.jwt_algorithm)
        except jwt.ExpiredSignatureError:
            logger.info("Rejected expired session token on %s", request.url.path)
            claims = None
        except jwt.InvalidTokenError as exc:
            logger.warning("Rejected invalid session token on %s: %s", request.url.path, exc)
            claims = None

        if claims is None:
            response = error_response(
                request,
                status.HTTP_401_UNAUTHORIZED,
                "TOKEN_INVALID",
                "Invalid or expired authentication token",
                headers={"WWW-Authenticate": "Bearer"},
            )
            await response(scope, receive, send)
            return

        scope.setdefault("state", {})["claims"] = claims
        await self.app(scope, receive, send)

    def _is_public_endpoint(self, path: str) -> bool:
        return path in PUBLIC_ENDPOINTS or path.startswith(PUBLIC_PREFIXES)

    def _extract_token(self, request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization")
        if auth_header and auth_header.startswith("Bearer "):
            return auth_header[7:].strip() or None
        return None


def get_session_claims(request: Request) -> Optional[SessionClaims]:
    """Claims injected by the middleware, or None on public endpoints."""
    return getattr(request.state, "claims", None)
