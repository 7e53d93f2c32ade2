"""
Access code endpoints.

Admins choose the validity window; referrers always issue fixed-length
windows. The code is emailed to the candidate after the response is sent.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, get_pagination_params, require_roles
from api.schemas.access_codes import (
    AccessCodeListResponse,
    AdminAccessCodeRequest,
    IssuedAccessCodeResponse,
    ReferrerAccessCodeRequest,
)
from api.services import access_codes as access_code_service
from core.integrations.email import send_access_code_email
from core.utils.datetime import now
from database.models.access_codes import AccessCodeStatus
from database.models.users import User, UserRole

router = APIRouter(tags=["access-codes"])


async def _issue(
    db: AsyncSession,
    background_tasks: BackgroundTasks,
    issuer: User,
    issuer_label: str,
    candidate_email: str,
    expires_at,
) -> IssuedAccessCodeResponse:
    issued = await access_code_service.issue_access_code(
        db, candidate_email, issuer, expires_at
    )
    code = issued.access_code
    background_tasks.add_task(
        send_access_code_email,
        code.candidate_email,
        code.code,
        code.expires_at,
        issuer_label,
        issued.temporary_password,
    )
    return IssuedAccessCodeResponse(
        message=f"Access code generated for {code.candidate_email}",
        access_code=access_code_service.serialize_access_code(code, now()),
        account_created=issued.account_created,
    )


@router.post(
    "/admin/access-codes",
    response_model=IssuedAccessCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue Access Code (Admin)",
    description="Issue a single-use access code valid for the given minutes, hours or days.",
)
async def issue_admin_access_code(
    request: AdminAccessCodeRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_roles(UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    expires_at = access_code_service.compute_expiry(
        request.duration_value, request.duration_unit
    )
    return await _issue(
        db,
        background_tasks,
        current_user,
        "An administrator",
        request.candidate_email,
        expires_at,
    )


@router.post(
    "/referrer/access-codes",
    response_model=IssuedAccessCodeResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Issue Access Code (Referrer)",
    description="Issue a single-use access code with the fixed referrer validity window.",
)
async def issue_referrer_access_code(
    request: ReferrerAccessCodeRequest,
    background_tasks: BackgroundTasks,
    current_user: User = Depends(require_roles(UserRole.REFERRER)),
    db: AsyncSession = Depends(get_db),
):
    return await _issue(
        db,
        background_tasks,
        current_user,
        f"Your referrer {current_user.username}",
        request.candidate_email,
        access_code_service.referrer_expiry(),
    )


@router.get(
    "/access-codes",
    response_model=AccessCodeListResponse,
    summary="List Access Codes",
    description="Admins see every code, referrers see the codes they issued.",
)
async def list_access_codes(
    status_label: Optional[AccessCodeStatus] = Query(
        None, alias="status", description="Filter by derived state"
    ),
    generated_by: Optional[int] = Query(None, description="Issuer id (admins only)"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.REFERRER)),
    db: AsyncSession = Depends(get_db),
):
    if current_user.role == UserRole.REFERRER:
        generated_by = current_user.id
    return await access_code_service.list_access_codes(
        db,
        generated_by=generated_by,
        status_label=status_label,
        **pagination,
    )
