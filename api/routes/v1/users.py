"""
Account administration endpoints.

Admins create accounts of any role and toggle their status.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_admin_user
from api.schemas.auth import AccountResponse
from api.schemas.users import AccountStatusUpdate, CreateUserRequest, CreateUserResponse
from api.services import users as user_service
from database.models.users import User

router = APIRouter(prefix="/users", tags=["users"])


@router.post(
    "",
    response_model=CreateUserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create User",
    description="Create an account of any role. Only super admins can grant super admin.",
)
async def create_user(
    request: CreateUserRequest,
    current_user: User = Depends(require_admin_user),
    db: AsyncSession = Depends(get_db),
):
    created = await user_service.create_user(
        db,
        created_by=current_user,
        email=request.email,
        role=request.role,
        username=request.username,
        password=request.password,
        is_super_admin=request.is_super_admin,
    )
    return CreateUserResponse(
        message="User created successfully",
        user=AccountResponse.model_validate(created.user),
        temporary_password=created.temporary_password,
    )


@router.get(
    "/{user_id}",
    response_model=AccountResponse,
    summary="Get User",
)
async def get_user(
    user_id: int = Path(..., description="User ID"),
    current_user: User = Depends(require_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.get_user(db, user_id)


@router.patch(
    "/{user_id}/status",
    response_model=AccountResponse,
    summary="Set Account Status",
    description="Activate or deactivate an account. Deactivated accounts cannot log in.",
)
async def set_user_status(
    request: AccountStatusUpdate,
    user_id: int = Path(..., description="User ID"),
    current_user: User = Depends(require_admin_user),
    db: AsyncSession = Depends(get_db),
):
    return await user_service.set_account_status(
        db, user_id, request.status, changed_by=current_user
    )
