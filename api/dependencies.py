"""FastAPI dependencies for dependency injection."""

from typing import AsyncGenerator, Callable
from fastapi import Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.middleware.authentication import get_session_claims
from database.engine import Database
from database.models.users import AccountStatus, User, UserRole


def get_database(request: Request) -> Database:
    """The pool built at startup and stored on the application."""
    return request.app.state.database


async def get_db(
    database: Database = Depends(get_database),
) -> AsyncGenerator[AsyncSession, None]:
    """One session per request; uncommitted work is rolled back."""
    async with database.session() as session:
        yield session


async def get_current_user(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Load the account named by the verified session token.

    The middleware has already checked the signature and expiry; this
    re-reads the account so deactivation takes effect immediately.
    """
    claims = get_session_claims(request)
    if claims is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = await db.get(User, claims.id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Account no longer exists",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


async def require_active_user(
    current_user: User = Depends(get_current_user),
) -> User:
    """Require user to be active."""
    if current_user.status != AccountStatus.ACTIVE:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Inactive user account",
        )
    return current_user


def require_roles(*roles: UserRole) -> Callable:
    """Dependency factory restricting an endpoint to the given roles."""

    async def dependency(current_user: User = Depends(require_active_user)) -> User:
        if current_user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{' or '.join(r.value for r in roles)} access required",
            )
        return current_user

    return dependency


require_admin_user = require_roles(UserRole.ADMIN)
require_seeker = require_roles(UserRole.SEEKER)


def get_pagination_params(
    page: int = Query(1, ge=1, description="Page number (1-indexed)"),
    limit: int = Query(20, ge=1, le=100, description="Items per page"),
) -> dict:
    return {"page": page, "limit": limit}
