"""
Job service functions for API endpoints.

Openings are a finite shared counter; every change to it is a single
conditional UPDATE so concurrent hires can never drive it below zero.
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple
import logging

from sqlalchemy import select, update, delete, func, case, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import Conflict, Forbidden, NotFound
from core.utils.datetime import now as utc_now
from database.models.applications import Application
from database.models.jobs import Job, JobStatus, JobType, SavedJob
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)


async def get_job(db: AsyncSession, job_id: int, refresh: bool = False) -> Job:
    """Fetch a job or raise NotFound."""
    job = await db.get(Job, job_id, populate_existing=refresh)
    if job is None:
        raise NotFound("Job not found")
    return job


def ensure_can_manage_job(job: Job, user: User) -> None:
    """Only the posting account or an admin may change a job."""
    if user.role == UserRole.ADMIN:
        return
    if job.posted_by_id != user.id:
        raise Forbidden("You can only manage jobs you posted")


async def create_job(
    db: AsyncSession,
    poster: User,
    title: str,
    description: str,
    company: str,
    location: str,
    salary: Decimal = Decimal("0"),
    job_type: JobType = JobType.FULL_TIME,
    number_of_openings: int = 1,
) -> Job:
    """
    Create an active job posting.

    Raises:
        ValueError: Fewer than one opening or negative salary
    """
    if number_of_openings < 1:
        raise ValueError("A new job needs at least one opening")
    if salary < 0:
        raise ValueError("Salary cannot be negative")

    job = Job(
        title=title,
        description=description,
        company=company,
        location=location,
        salary=salary,
        job_type=job_type,
        status=JobStatus.ACTIVE,
        number_of_openings=number_of_openings,
        posted_by_id=poster.id,
    )
    db.add(job)
    await db.commit()

    logger.info("Job %s created by account %s", job.id, poster.id)
    return job


async def list_jobs(
    db: AsyncSession,
    status: Optional[JobStatus] = None,
    posted_by: Optional[int] = None,
    limit: int = 20,
    offset: int = 0,
) -> Tuple[List[Job], int]:
    query = select(Job)
    if status is not None:
        query = query.where(Job.status == status)
    if posted_by is not None:
        query = query.where(Job.posted_by_id == posted_by)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0
    result = await db.execute(
        query.order_by(Job.created_at.desc(), Job.id.desc()).offset(offset).limit(limit)
    )
    return list(result.scalars().all()), total


# ==================== Openings ==================== #

async def decrement_openings_if_positive(
    db: AsyncSession, job_id: int
) -> Optional[Tuple[int, bool]]:
    """
    Take one opening from a job, closing it when none remain.

    Runs inside the caller's transaction and does not commit.

    Returns:
        (new_count, closed_now), or None when the job had no openings left
    """
    result = await db.execute(
        update(Job)
        .where(Job.id == job_id, Job.number_of_openings > 0)
        .values(
            number_of_openings=Job.number_of_openings - 1,
            # SET expressions see the pre-update row
            status=case(
                (Job.number_of_openings == 1, JobStatus.CLOSED.value),
                else_=Job.status,
            ),
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        return None

    new_count = (
        await db.execute(select(Job.number_of_openings).where(Job.id == job_id))
    ).scalar_one()
    return new_count, new_count == 0


async def update_job_openings(db: AsyncSession, job_id: int, count: int) -> Job:
    """
    Set the number of openings.

    Zero closes the job; a positive count reopens a closed job.
    """
    if count < 0:
        raise ValueError("Number of openings cannot be negative")

    if count == 0:
        new_status = JobStatus.CLOSED.value
    else:
        new_status = case(
            (Job.status == JobStatus.CLOSED, JobStatus.ACTIVE.value),
            else_=Job.status,
        )

    result = await db.execute(
        update(Job)
        .where(Job.id == job_id)
        .values(
            number_of_openings=count,
            status=new_status,
            updated_at=utc_now(),
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise NotFound("Job not found")
    await db.commit()

    logger.info("Job %s openings set to %d", job_id, count)
    return await get_job(db, job_id, refresh=True)


async def set_job_status(db: AsyncSession, job_id: int, status: JobStatus) -> Job:
    """
    Toggle a job between active and inactive.

    A job without openings stays closed; raise its openings to reopen it.
    """
    if status not in (JobStatus.ACTIVE, JobStatus.INACTIVE):
        raise ValueError("Job status can only be set to active or inactive")

    result = await db.execute(
        update(Job)
        .where(Job.id == job_id, Job.number_of_openings > 0)
        .values(status=status.value, updated_at=utc_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        await get_job(db, job_id)
        raise Conflict("A job with no openings is closed; raise its openings to reopen it")
    await db.commit()

    return await get_job(db, job_id, refresh=True)


# ==================== Saved jobs ==================== #

async def save_job(db: AsyncSession, user_id: int, job_id: int) -> SavedJob:
    """
    Bookmark a job for a seeker.

    Raises:
        NotFound: Job does not exist
        Conflict: Already applied to, or already saved
    """
    await get_job(db, job_id)

    applied = (
        await db.execute(
            select(
                exists().where(
                    Application.job_id == job_id, Application.applicant_id == user_id
                )
            )
        )
    ).scalar()
    if applied:
        raise Conflict("You cannot save a job you have already applied for")

    saved = SavedJob(user_id=user_id, job_id=job_id)
    db.add(saved)
    try:
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise Conflict("This job is already saved") from exc
    return saved


async def unsave_job(db: AsyncSession, user_id: int, job_id: int) -> None:
    result = await db.execute(
        delete(SavedJob).where(SavedJob.user_id == user_id, SavedJob.job_id == job_id)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound("Job not found in saved list")
    await db.commit()


async def list_saved_jobs(db: AsyncSession, user_id: int) -> List[Dict[str, Any]]:
    """Saved jobs for a seeker, most recent first."""
    result = await db.execute(
        select(SavedJob, Job)
        .join(Job, Job.id == SavedJob.job_id)
        .where(SavedJob.user_id == user_id)
        .order_by(SavedJob.saved_at.desc(), SavedJob.id.desc())
    )
    return [{"saved_at": saved.saved_at, "job": job} for saved, job in result.all()]
