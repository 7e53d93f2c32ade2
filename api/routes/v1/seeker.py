"""
Seeker endpoints: onboarding and saved jobs.
"""

from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_db, require_seeker
from api.schemas.auth import AccountResponse, OnboardingRequest
from api.schemas.common import MessageResponse
from api.schemas.jobs import SaveJobRequest, SavedJobListResponse, SavedJobResponse
from api.services import auth as auth_service
from api.services import jobs as job_service
from database.models.users import User

router = APIRouter(prefix="/seeker", tags=["seeker"])


@router.post(
    "/onboarding",
    response_model=AccountResponse,
    summary="Complete Onboarding",
    description="Record the uploaded resume reference and mark onboarding complete.",
)
async def complete_onboarding(
    request: OnboardingRequest,
    current_user: User = Depends(require_seeker),
    db: AsyncSession = Depends(get_db),
):
    return await auth_service.complete_onboarding(
        db, current_user, request.resume_id, request.resume_file_name
    )


@router.get(
    "/saved-jobs",
    response_model=SavedJobListResponse,
    summary="List Saved Jobs",
)
async def list_saved_jobs(
    current_user: User = Depends(require_seeker),
    db: AsyncSession = Depends(get_db),
):
    return {"saved_jobs": await job_service.list_saved_jobs(db, current_user.id)}


@router.post(
    "/saved-jobs",
    response_model=SavedJobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Save Job",
    description="Bookmark a job. Jobs already applied to cannot be saved.",
)
async def save_job(
    request: SaveJobRequest,
    current_user: User = Depends(require_seeker),
    db: AsyncSession = Depends(get_db),
):
    user_id = current_user.id
    saved = await job_service.save_job(db, user_id, request.job_id)
    return {"saved_at": saved.saved_at, "job": await job_service.get_job(db, saved.job_id)}


@router.delete(
    "/saved-jobs/{job_id}",
    response_model=MessageResponse,
    summary="Unsave Job",
)
async def unsave_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(require_seeker),
    db: AsyncSession = Depends(get_db),
):
    await job_service.unsave_job(db, current_user.id, job_id)
    return MessageResponse(message="Job unsaved successfully")
