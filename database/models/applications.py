from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    ForeignKey,
    DateTime,
    Index,
    UniqueConstraint,
    Enum as SQLEnum,
)
from core.utils.datetime import now
from database.engine import Base, PrimaryKey, enum_values
from datetime import datetime
from enum import Enum as PyEnum


class ApplicationStatus(str, PyEnum):
    RECEIVED = "Received"
    INTERVIEW_SCHEDULED = "Interview Scheduled"
    REJECTED = "Rejected"
    HIRED = "Hired"


class Application(Base):
    """
    A seeker's application to one job.

    Entering ``Hired`` consumes one of the job's openings.
    """

    __tablename__ = "applications"

    id: Mapped[int] = mapped_column(
        PrimaryKey, primary_key=True, nullable=False, autoincrement=True
    )
    job_id: Mapped[int] = mapped_column(
        PrimaryKey, ForeignKey("jobs.id", ondelete="CASCADE"), nullable=False
    )
    applicant_id: Mapped[int] = mapped_column(
        PrimaryKey, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    # Snapshot of the applicant's resume id at submission time
    resume_path: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ApplicationStatus] = mapped_column(
        SQLEnum(
            ApplicationStatus, native_enum=False, length=30, values_callable=enum_values
        ),
        nullable=False,
        default=ApplicationStatus.RECEIVED,
    )

    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    __table_args__ = (
        UniqueConstraint("job_id", "applicant_id", name="uq_applications_job_applicant"),
        Index("idx_applications_applicant", "applicant_id"),
        Index("idx_applications_job_status", "job_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Application {self.id} {self.status.value}>"
