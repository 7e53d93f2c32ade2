"""
Application workflow endpoints.

Seekers apply and withdraw; the job's poster (or an admin) moves applications
through their statuses. Hiring consumes one of the job's openings.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_db,
    get_pagination_params,
    require_active_user,
    require_roles,
    require_seeker,
)
from api.schemas.applications import (
    ApplicationCreate,
    ApplicationDetail,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationStatusUpdate,
    StatusTransitionResponse,
)
from api.schemas.common import MessageResponse
from api.services import applications as application_service
from database.models.applications import ApplicationStatus
from database.models.users import User, UserRole

router = APIRouter(prefix="/applications", tags=["applications"])


@router.post(
    "",
    response_model=ApplicationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Apply for Job",
    description="Submit an application. Requires a resume on file.",
)
async def create_application(
    request: ApplicationCreate,
    current_user: User = Depends(require_seeker),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.create_application(db, request.job_id, current_user)


@router.get(
    "",
    response_model=ApplicationListResponse,
    summary="List Applications",
    description="Seekers see their own applications, posters those on their jobs, admins all.",
)
async def list_applications(
    application_status: Optional[ApplicationStatus] = Query(
        None, alias="status", description="Filter by status"
    ),
    job_id: Optional[int] = Query(None, description="Filter by job"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.list_applications(
        db,
        current_user,
        status=application_status,
        job_id=job_id,
        **pagination,
    )


@router.get(
    "/{application_id}",
    response_model=ApplicationDetail,
    summary="Get Application Details",
)
async def get_application(
    application_id: int = Path(..., description="Application ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await application_service.get_application(db, application_id, current_user)


@router.patch(
    "/{application_id}/status",
    response_model=StatusTransitionResponse,
    summary="Update Application Status",
    description="Move an application to Received, Interview Scheduled, Rejected or Hired.",
)
async def update_application_status(
    request: ApplicationStatusUpdate,
    application_id: int = Path(..., description="Application ID"),
    current_user: User = Depends(require_roles(UserRole.POSTER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    actor_id = current_user.id
    await application_service.ensure_can_transition(db, application_id, current_user)
    result = await application_service.transition_application_status(
        db, application_id, request.status, actor_id=actor_id
    )
    return StatusTransitionResponse(
        application=ApplicationResponse.model_validate(result.application),
        previous_status=result.previous_status,
        openings_remaining=result.openings_remaining,
        job_closed=result.job_closed,
        warning=result.warning,
    )


@router.delete(
    "/{application_id}",
    response_model=MessageResponse,
    summary="Withdraw Application",
)
async def withdraw_application(
    application_id: int = Path(..., description="Application ID"),
    current_user: User = Depends(require_roles(UserRole.SEEKER, UserRole.ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    actor_id = current_user.id
    await application_service.ensure_can_withdraw(db, application_id, current_user)
    await application_service.withdraw_application(db, application_id, actor_id=actor_id)
    return MessageResponse(message="Application withdrawn")
