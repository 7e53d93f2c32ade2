"""Job-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Literal
from pydantic import BaseModel, ConfigDict, Field, field_validator

from api.schemas.common import PageMeta, TimestampMixin
from database.models.jobs import JobStatus, JobType


class JobCreate(BaseModel):
    """Schema for creating a job."""

    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    company: str = Field(min_length=1, max_length=255)
    location: str = Field(min_length=1, max_length=255)
    salary: Decimal = Field(default=Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    job_type: JobType = JobType.FULL_TIME
    number_of_openings: int = Field(default=1, ge=1, le=10_000)

    @field_validator("title", "company", "location", mode="before")
    @classmethod
    def strip_text(cls, v: str) -> str:
        """Strip whitespace from short text fields."""
        if isinstance(v, str):
            return v.strip()
        return v


class JobResponse(TimestampMixin):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    company: str
    location: str
    salary: Decimal
    job_type: JobType
    status: JobStatus
    number_of_openings: int
    posted_by_id: int


class JobListResponse(PageMeta):
    jobs: list[JobResponse]


class OpeningsUpdate(BaseModel):
    number_of_openings: int = Field(ge=0, le=10_000)


class JobStatusUpdate(BaseModel):
    """Closed is reached through openings only."""

    status: Literal["active", "inactive"]


class SaveJobRequest(BaseModel):
    job_id: int = Field(gt=0)


class SavedJobResponse(BaseModel):
    saved_at: datetime
    job: JobResponse


class SavedJobListResponse(BaseModel):
    saved_jobs: list[SavedJobResponse]
