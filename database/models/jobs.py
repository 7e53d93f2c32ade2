from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Text,
    Integer,
    Numeric,
    ForeignKey,
    DateTime,
    Index,
    CheckConstraint,
    UniqueConstraint,
    Enum as SQLEnum,
)
from core.utils.datetime import now
from database.engine import Base, PrimaryKey, enum_values
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum


# ==================== Enums ===================== #
class JobType(str, PyEnum):
    FULL_TIME = "Full-time"
    PART_TIME = "Part-time"
    CONTRACT = "Contract"
    TEMPORARY = "Temporary"
    INTERNSHIP = "Internship"


class JobStatus(str, PyEnum):
    ACTIVE = "active"  # visible and accepting applications
    INACTIVE = "inactive"  # hidden by the poster
    CLOSED = "closed"  # no openings left


# ==================== Job Model ===================== #
class Job(Base):
    """
    Job posting with a finite number of openings.

    ``number_of_openings`` reaching zero closes the job; raising it again
    reopens the job.
    """

    __tablename__ = "jobs"

    id: Mapped[int] = mapped_column(
        PrimaryKey, primary_key=True, nullable=False, autoincrement=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    company: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[str] = mapped_column(String(255), nullable=False)
    salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    job_type: Mapped[JobType] = mapped_column(
        SQLEnum(JobType, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=JobType.FULL_TIME,
    )
    status: Mapped[JobStatus] = mapped_column(
        SQLEnum(JobStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=JobStatus.ACTIVE,
    )
    number_of_openings: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    posted_by_id: Mapped[int] = mapped_column(
        PrimaryKey, ForeignKey("users.id"), nullable=False, index=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    __table_args__ = (
        CheckConstraint("number_of_openings >= 0", name="ck_jobs_openings_non_negative"),
        CheckConstraint("salary >= 0", name="ck_jobs_salary_non_negative"),
        Index("idx_jobs_status_created", "status", "created_at"),
    )

    @property
    def is_open(self) -> bool:
        return self.status == JobStatus.ACTIVE and self.number_of_openings > 0

    def __repr__(self) -> str:
        return f"<Job {self.id} openings={self.number_of_openings}>"


# ==================== SavedJob Model ===================== #
class SavedJob(Base):
    """Seeker bookmark on a job."""

    __tablename__ = "saved_jobs"

    id: Mapped[int] = mapped_column(
        PrimaryKey, primary_key=True, nullable=False, autoincrement=True
    )
    user_id: Mapped[int] = mapped_column(
        PrimaryKey, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    job_id: Mapped[int] = mapped_column(
        PrimaryKey, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    saved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )

    __table_args__ = (
        UniqueConstraint("user_id", "job_id", name="uq_saved_jobs_user_job"),
    )
