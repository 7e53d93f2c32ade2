"""
Authentication endpoints.

Login runs the access-code onboarding gate for seekers.
"""

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_active_user
from api.schemas.auth import (
    AccountResponse,
    ChangePasswordRequest,
    ChangePasswordResponse,
    ForgotPasswordRequest,
    LoginRequest,
    LoginResponse,
    ResetPasswordRequest,
)
from api.schemas.common import MessageResponse
from api.services import auth as auth_service
from core.integrations.email import send_password_reset_email
from database.models.users import User

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    response_model=LoginResponse,
    summary="Log In",
    description="Exchange credentials for a session token. First-time seekers need a valid access code.",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """Authenticate and return a signed session token."""
    result = await auth_service.authenticate(db, request.email, request.password)
    return LoginResponse(
        token=result.token,
        user=AccountResponse.model_validate(result.user),
    )


@router.post(
    "/change-password",
    response_model=ChangePasswordResponse,
    summary="Change Password",
    description="Change the password and clear the first-login flag.",
)
async def change_password(
    request: ChangePasswordRequest,
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    token = await auth_service.change_password(
        db,
        current_user,
        current_password=request.current_password,
        new_password=request.new_password,
    )
    return ChangePasswordResponse(
        message="Password changed successfully",
        token=token,
        user=AccountResponse.model_validate(current_user),
    )


@router.get(
    "/me",
    response_model=AccountResponse,
    summary="Get Current User",
)
async def me(current_user: User = Depends(require_active_user)):
    """Retrieve the current account."""
    return current_user


@router.post(
    "/forgot-password",
    response_model=MessageResponse,
    summary="Request Password Reset",
    description="Email a reset link. The response is the same whether or not the account exists.",
)
async def forgot_password(
    request: ForgotPasswordRequest,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
):
    grant = await auth_service.request_password_reset(db, request.email)
    if grant is not None:
        background_tasks.add_task(
            send_password_reset_email, grant.email, grant.username, grant.token
        )
    return MessageResponse(
        message="If an account with that email exists, a password reset link has been sent."
    )


@router.post(
    "/reset-password",
    response_model=MessageResponse,
    summary="Reset Password",
    description="Set a new password with a single-use reset token.",
)
async def reset_password(
    request: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    await auth_service.reset_password(db, request.token, request.new_password)
    return MessageResponse(message="Password has been reset successfully.")
