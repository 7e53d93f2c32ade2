"""
Tests for job postings, openings and saved jobs.
"""

from decimal import Decimal

import pytest

from api.services.jobs import (
    create_job,
    decrement_openings_if_positive,
    ensure_can_manage_job,
    get_job,
    list_jobs,
    list_saved_jobs,
    save_job,
    set_job_status,
    unsave_job,
    update_job_openings,
)
from core.exceptions import Conflict, Forbidden, NotFound
from database.models.applications import Application
from database.models.jobs import JobStatus, JobType
from database.models.users import UserRole


class TestCreateJob:
    """Test job creation."""

    @pytest.mark.asyncio
    async def test_creates_active_job(self, db_session, make_user):
        poster = await make_user(role=UserRole.POSTER)

        job = await create_job(
            db_session,
            poster,
            title="Data Engineer",
            description="Pipelines",
            company="Initech",
            location="Remote",
            salary=Decimal("120000.00"),
            job_type=JobType.CONTRACT,
            number_of_openings=3,
        )

        assert job.id is not None
        assert job.status == JobStatus.ACTIVE
        assert job.number_of_openings == 3
        assert job.posted_by_id == poster.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("openings,salary", [(0, Decimal("1")), (1, Decimal("-1"))])
    async def test_rejects_invalid_values(self, db_session, make_user, openings, salary):
        poster = await make_user(role=UserRole.POSTER)

        with pytest.raises(ValueError):
            await create_job(
                db_session, poster, "T", "D", "C", "L",
                salary=salary, number_of_openings=openings,
            )

    @pytest.mark.asyncio
    async def test_list_filters(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        other = await make_user(role=UserRole.POSTER)
        await make_job(poster, openings=2)
        await make_job(poster, openings=0)
        await make_job(other, openings=1)

        jobs, total = await list_jobs(db_session, posted_by=poster.id)
        assert total == 2

        jobs, total = await list_jobs(db_session, status=JobStatus.ACTIVE)
        assert total == 2
        assert all(job.status == JobStatus.ACTIVE for job in jobs)


class TestDecrementOpenings:
    """Test the conditional openings counter."""

    @pytest.mark.asyncio
    async def test_decrement_keeps_job_open(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=3)

        outcome = await decrement_openings_if_positive(db_session, job.id)
        await db_session.commit()

        assert outcome == (2, False)
        refreshed = await get_job(db_session, job.id, refresh=True)
        assert refreshed.number_of_openings == 2
        assert refreshed.status == JobStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_last_opening_closes_job(self, db_session, make_user, make_job):
        """Test taking the last opening closes the job in the same write."""
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=1)

        outcome = await decrement_openings_if_positive(db_session, job.id)
        await db_session.commit()

        assert outcome == (0, True)
        refreshed = await get_job(db_session, job.id, refresh=True)
        assert refreshed.number_of_openings == 0
        assert refreshed.status == JobStatus.CLOSED

    @pytest.mark.asyncio
    async def test_no_openings_left(self, db_session, make_user, make_job):
        """Test the counter never goes below zero."""
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=0)

        assert await decrement_openings_if_positive(db_session, job.id) is None
        await db_session.commit()

        refreshed = await get_job(db_session, job.id, refresh=True)
        assert refreshed.number_of_openings == 0

    @pytest.mark.asyncio
    async def test_inactive_job_keeps_status(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=2, status=JobStatus.INACTIVE)

        await decrement_openings_if_positive(db_session, job.id)
        await db_session.commit()

        refreshed = await get_job(db_session, job.id, refresh=True)
        assert refreshed.status == JobStatus.INACTIVE


class TestUpdateOpenings:
    """Test setting the openings count directly."""

    @pytest.mark.asyncio
    async def test_zero_closes(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=2)

        updated = await update_job_openings(db_session, job.id, 0)

        assert updated.number_of_openings == 0
        assert updated.status == JobStatus.CLOSED

    @pytest.mark.asyncio
    async def test_positive_reopens_closed_job(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=0)

        updated = await update_job_openings(db_session, job.id, 4)

        assert updated.number_of_openings == 4
        assert updated.status == JobStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_positive_keeps_inactive(self, db_session, make_user, make_job):
        """Test raising openings does not un-hide an inactive job."""
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=1, status=JobStatus.INACTIVE)

        updated = await update_job_openings(db_session, job.id, 5)

        assert updated.status == JobStatus.INACTIVE

    @pytest.mark.asyncio
    async def test_negative_rejected(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster)

        with pytest.raises(ValueError):
            await update_job_openings(db_session, job.id, -1)

    @pytest.mark.asyncio
    async def test_missing_job(self, db_session):
        with pytest.raises(NotFound):
            await update_job_openings(db_session, 999, 1)


class TestSetJobStatus:
    """Test the active/inactive toggle."""

    @pytest.mark.asyncio
    async def test_toggle(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=2)
        job_id = job.id

        assert (await set_job_status(db_session, job_id, JobStatus.INACTIVE)).status == JobStatus.INACTIVE
        assert (await set_job_status(db_session, job_id, JobStatus.ACTIVE)).status == JobStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_closed_job_cannot_be_activated(self, db_session, make_user, make_job):
        """Test a job with no openings stays closed."""
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=0)
        job_id = job.id

        with pytest.raises(Conflict):
            await set_job_status(db_session, job_id, JobStatus.ACTIVE)

        refreshed = await get_job(db_session, job_id, refresh=True)
        assert refreshed.status == JobStatus.CLOSED

    @pytest.mark.asyncio
    async def test_closed_is_not_settable(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        job = await make_job(poster, openings=2)

        with pytest.raises(ValueError):
            await set_job_status(db_session, job.id, JobStatus.CLOSED)

    @pytest.mark.asyncio
    async def test_missing_job(self, db_session):
        with pytest.raises(NotFound):
            await set_job_status(db_session, 999, JobStatus.ACTIVE)


class TestManageJob:
    """Test job ownership checks."""

    @pytest.mark.asyncio
    async def test_owner_and_admin_allowed(self, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        admin = await make_user(role=UserRole.ADMIN)
        job = await make_job(poster)

        ensure_can_manage_job(job, poster)
        ensure_can_manage_job(job, admin)

    @pytest.mark.asyncio
    async def test_other_poster_forbidden(self, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        other = await make_user(role=UserRole.POSTER)
        job = await make_job(poster)

        with pytest.raises(Forbidden):
            ensure_can_manage_job(job, other)


class TestSavedJobs:
    """Test seeker bookmarks."""

    @pytest.mark.asyncio
    async def test_save_and_list(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        seeker = await make_user()
        job = await make_job(poster, title="Platform Engineer")

        await save_job(db_session, seeker.id, job.id)
        saved = await list_saved_jobs(db_session, seeker.id)

        assert len(saved) == 1
        assert saved[0]["job"].title == "Platform Engineer"
        assert saved[0]["saved_at"] is not None

    @pytest.mark.asyncio
    async def test_save_twice(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        seeker = await make_user()
        job = await make_job(poster)
        seeker_id, job_id = seeker.id, job.id

        await save_job(db_session, seeker_id, job_id)
        with pytest.raises(Conflict):
            await save_job(db_session, seeker_id, job_id)

    @pytest.mark.asyncio
    async def test_cannot_save_applied_job(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        seeker = await make_user(resume_id="resumes/1.pdf")
        job = await make_job(poster)
        db_session.add(Application(job_id=job.id, applicant_id=seeker.id, resume_path="resumes/1.pdf"))
        await db_session.commit()

        with pytest.raises(Conflict):
            await save_job(db_session, seeker.id, job.id)

    @pytest.mark.asyncio
    async def test_save_missing_job(self, db_session, make_user):
        seeker = await make_user()

        with pytest.raises(NotFound):
            await save_job(db_session, seeker.id, 999)

    @pytest.mark.asyncio
    async def test_unsave(self, db_session, make_user, make_job):
        poster = await make_user(role=UserRole.POSTER)
        seeker = await make_user()
        job = await make_job(poster)
        seeker_id, job_id = seeker.id, job.id

        await save_job(db_session, seeker_id, job_id)
        await unsave_job(db_session, seeker_id, job_id)

        assert await list_saved_jobs(db_session, seeker_id) == []
        with pytest.raises(NotFound):
            await unsave_job(db_session, seeker_id, job_id)
