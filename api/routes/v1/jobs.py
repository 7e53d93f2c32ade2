"""
Job management endpoints.

Posters manage their own jobs; admins manage every job. A job closes when its
last opening is filled and reopens when openings are raised again.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_db,
    get_pagination_params,
    require_active_user,
    require_roles,
)
from api.schemas.jobs import (
    JobCreate,
    JobListResponse,
    JobResponse,
    JobStatusUpdate,
    OpeningsUpdate,
)
from api.services import jobs as job_service
from database.models.jobs import JobStatus
from database.models.users import User, UserRole

router = APIRouter(prefix="/jobs", tags=["jobs"])

require_job_manager = require_roles(UserRole.POSTER, UserRole.ADMIN)


@router.post(
    "",
    response_model=JobResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create Job",
)
async def create_job(
    request: JobCreate,
    current_user: User = Depends(require_job_manager),
    db: AsyncSession = Depends(get_db),
):
    """Post a new job. It starts active with at least one opening."""
    return await job_service.create_job(db, current_user, **request.model_dump())


@router.get(
    "",
    response_model=JobListResponse,
    summary="List Jobs",
    description="Seekers only see active jobs; posters see their own; admins see all.",
)
async def list_jobs(
    job_status: Optional[JobStatus] = Query(None, alias="status", description="Filter by status"),
    pagination: dict = Depends(get_pagination_params),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    posted_by = None
    if current_user.role == UserRole.POSTER:
        posted_by = current_user.id
    elif current_user.role != UserRole.ADMIN:
        job_status = JobStatus.ACTIVE

    page, limit = pagination["page"], pagination["limit"]
    jobs, total = await job_service.list_jobs(
        db,
        status=job_status,
        posted_by=posted_by,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return JobListResponse(
        jobs=[JobResponse.model_validate(job) for job in jobs],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


@router.get(
    "/{job_id}",
    response_model=JobResponse,
    summary="Get Job",
)
async def get_job(
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(require_active_user),
    db: AsyncSession = Depends(get_db),
):
    return await job_service.get_job(db, job_id)


@router.patch(
    "/{job_id}/openings",
    response_model=JobResponse,
    summary="Update Openings",
    description="Set the number of openings. Zero closes the job; more than zero reopens it.",
)
async def update_openings(
    request: OpeningsUpdate,
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(require_job_manager),
    db: AsyncSession = Depends(get_db),
):
    job = await job_service.get_job(db, job_id)
    job_service.ensure_can_manage_job(job, current_user)
    return await job_service.update_job_openings(db, job_id, request.number_of_openings)


@router.patch(
    "/{job_id}/status",
    response_model=JobResponse,
    summary="Set Job Status",
    description="Toggle a job between active and inactive.",
)
async def set_status(
    request: JobStatusUpdate,
    job_id: int = Path(..., description="Job ID"),
    current_user: User = Depends(require_job_manager),
    db: AsyncSession = Depends(get_db),
):
    job = await job_service.get_job(db, job_id)
    job_service.ensure_can_manage_job(job, current_user)
    return await job_service.set_job_status(db, job_id, JobStatus(request.status))
