"""
Application service functions for API endpoints.

Provides the application status state machine. Hiring consumes one of the
job's openings in the same transaction as the status change.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional
import logging

from sqlalchemy import select, update, delete, func, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.jobs import decrement_openings_if_positive, get_job
from core.exceptions import (
    Conflict,
    DuplicateApplication,
    Forbidden,
    NotFound,
    ResumeRequired,
)
from core.security import AuditAction, ResourceType, log_audit_event
from core.utils.datetime import now as utc_now
from database.models.applications import Application, ApplicationStatus
from database.models.jobs import Job, SavedJob
from database.models.users import User, UserRole

logger = logging.getLogger(__name__)

# A lost compare-and-swap is retried this many times in total
STATUS_WRITE_ATTEMPTS = 2


@dataclass
class TransitionResult:
    application: Application
    previous_status: ApplicationStatus
    openings_remaining: Optional[int] = None
    job_closed: bool = False
    openings_exhausted: bool = False

    @property
    def warning(self) -> Optional[str]:
        if self.openings_exhausted:
            return "Job has no openings left; status updated without decrementing openings"
        return None


async def create_application(
    db: AsyncSession, job_id: int, applicant: User
) -> Application:
    """
    Submit an application for a job.

    Args:
        db: Database session
        job_id: Job being applied to
        applicant: Seeker applying

    Returns:
        The new application in ``Received``

    Raises:
        NotFound: Job does not exist
        DuplicateApplication: Applicant already applied to this job
        ResumeRequired: Applicant has no resume on file
    """
    applicant_id = applicant.id
    resume_id = applicant.resume_id

    await get_job(db, job_id)

    already_applied = (
        await db.execute(
            select(
                exists().where(
                    Application.job_id == job_id,
                    Application.applicant_id == applicant_id,
                )
            )
        )
    ).scalar()
    if already_applied:
        raise DuplicateApplication()

    if not resume_id:
        raise ResumeRequired()

    application = Application(
        job_id=job_id,
        applicant_id=applicant_id,
        resume_path=resume_id,
        status=ApplicationStatus.RECEIVED,
    )
    db.add(application)
    try:
        # Applying replaces any bookmark on the job
        await db.execute(
            delete(SavedJob).where(
                SavedJob.user_id == applicant_id, SavedJob.job_id == job_id
            )
        )
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateApplication() from exc

    log_audit_event(
        AuditAction.APPLICATION_CREATED,
        ResourceType.APPLICATION,
        resource_id=application.id,
        user_id=applicant_id,
        details={"job_id": job_id},
        contains_pii=False,
    )
    return application


async def transition_application_status(
    db: AsyncSession,
    application_id: int,
    new_status: ApplicationStatus | str,
    actor_id: Optional[int] = None,
) -> TransitionResult:
    """
    Move an application to a new status.

    Entering ``Hired`` from any other status takes one opening from the job.
    When the job has none left the status still changes and the result is
    flagged instead.

    Raises:
        ValueError: Unknown status
        NotFound: Application does not exist
        Conflict: The status kept changing underneath us
    """
    new_status = ApplicationStatus(new_status)

    for attempt in range(1, STATUS_WRITE_ATTEMPTS + 1):
        row = (
            await db.execute(
                select(Application.status, Application.job_id).where(
                    Application.id == application_id
                )
            )
        ).one_or_none()
        if row is None:
            raise NotFound("Application not found")
        previous_status, job_id = row

        swapped = await db.execute(
            update(Application)
            .where(
                Application.id == application_id,
                Application.status == previous_status,
            )
            .values(status=new_status, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if swapped.rowcount != 1:
            await db.rollback()
            logger.info(
                "Application %s status changed concurrently (attempt %d/%d)",
                application_id,
                attempt,
                STATUS_WRITE_ATTEMPTS,
            )
            continue

        openings_remaining: Optional[int] = None
        job_closed = False
        openings_exhausted = False
        if new_status == ApplicationStatus.HIRED and previous_status != ApplicationStatus.HIRED:
            outcome = await decrement_openings_if_positive(db, job_id)
            if outcome is None:
                openings_exhausted = True
                logger.warning(
                    "Hired application %s on job %s with no openings left",
                    application_id,
                    job_id,
                )
            else:
                openings_remaining, job_closed = outcome
                if job_closed:
                    logger.info("Job %s closed, last opening filled", job_id)

        await db.commit()

        result = TransitionResult(
            application=await db.get(
                Application, application_id, populate_existing=True
            ),
            previous_status=previous_status,
            openings_remaining=openings_remaining,
            job_closed=job_closed,
            openings_exhausted=openings_exhausted,
        )
        log_audit_event(
            AuditAction.APPLICATION_STATUS_CHANGED,
            ResourceType.APPLICATION,
            resource_id=application_id,
            user_id=actor_id,
            details={
                "from": previous_status.value,
                "to": new_status.value,
                "openings_remaining": result.openings_remaining,
                "openings_exhausted": result.openings_exhausted,
            },
            contains_pii=False,
        )
        return result

    raise Conflict("The application status was changed concurrently. Please retry.")


async def withdraw_application(
    db: AsyncSession, application_id: int, actor_id: Optional[int] = None
) -> None:
    """Delete an application. Openings taken by a hire are not restored."""
    result = await db.execute(
        delete(Application).where(Application.id == application_id)
    )
    if result.rowcount == 0:
        await db.rollback()
        raise NotFound("Application not found")
    await db.commit()

    log_audit_event(
        AuditAction.APPLICATION_WITHDRAWN,
        ResourceType.APPLICATION,
        resource_id=application_id,
        user_id=actor_id,
        contains_pii=False,
    )


# ==================== Authorization ==================== #

async def ensure_can_transition(db: AsyncSession, application_id: int, user: User) -> None:
    """Only the job's poster or an admin moves an application."""
    row = (
        await db.execute(
            select(Job.posted_by_id)
            .join(Application, Application.job_id == Job.id)
            .where(Application.id == application_id)
        )
    ).one_or_none()
    if row is None:
        raise NotFound("Application not found")
    if user.role != UserRole.ADMIN and row.posted_by_id != user.id:
        raise Forbidden("Only the job's poster can update this application")


async def ensure_can_withdraw(db: AsyncSession, application_id: int, user: User) -> None:
    """Only the applicant or an admin withdraws an application."""
    applicant_id = (
        await db.execute(
            select(Application.applicant_id).where(Application.id == application_id)
        )
    ).scalar_one_or_none()
    if applicant_id is None:
        raise NotFound("Application not found")
    if user.role != UserRole.ADMIN and applicant_id != user.id:
        raise Forbidden("You can only withdraw your own applications")


# ==================== Reads ==================== #

def _scoped_query(viewer: User):
    query = (
        select(Application, Job, User)
        .join(Job, Job.id == Application.job_id)
        .join(User, User.id == Application.applicant_id)
    )
    if viewer.role == UserRole.SEEKER:
        return query.where(Application.applicant_id == viewer.id)
    if viewer.role == UserRole.POSTER:
        return query.where(Job.posted_by_id == viewer.id)
    if viewer.role == UserRole.ADMIN:
        return query
    raise Forbidden("Your role cannot view applications")


def _serialize(application: Application, job: Job, applicant: User) -> Dict[str, Any]:
    return {
        "id": application.id,
        "status": application.status,
        "resume_path": application.resume_path,
        "applied_at": application.applied_at,
        "updated_at": application.updated_at,
        "job": {
            "id": job.id,
            "title": job.title,
            "company": job.company,
            "status": job.status,
        },
        "applicant": {
            "id": applicant.id,
            "username": applicant.username,
            "email": applicant.email,
        },
    }


async def get_application(
    db: AsyncSession, application_id: int, viewer: User
) -> Dict[str, Any]:
    """
    Get one application visible to ``viewer``.

    Applications outside the viewer's scope are reported as missing.
    """
    row = (
        await db.execute(
            _scoped_query(viewer).where(Application.id == application_id)
        )
    ).one_or_none()
    if row is None:
        raise NotFound("Application not found")
    return _serialize(*row)


async def list_applications(
    db: AsyncSession,
    viewer: User,
    status: Optional[ApplicationStatus] = None,
    job_id: Optional[int] = None,
    page: int = 1,
    limit: int = 20,
) -> Dict[str, Any]:
    """
    List applications visible to ``viewer``, newest first.

    Returns:
        Dictionary with applications list and pagination info
    """
    query = _scoped_query(viewer)
    if status is not None:
        query = query.where(Application.status == status)
    if job_id is not None:
        query = query.where(Application.job_id == job_id)

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0

    rows = (
        await db.execute(
            query.order_by(Application.applied_at.desc(), Application.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).all()

    return {
        "applications": [_serialize(*row) for row in rows],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }
