"""Application-related Pydantic schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from api.schemas.common import PageMeta
from database.models.applications import ApplicationStatus
from database.models.jobs import JobStatus


class ApplicationCreate(BaseModel):
    job_id: int = Field(gt=0, description="Job to apply for")


class ApplicationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    job_id: int
    applicant_id: int
    resume_path: str
    status: ApplicationStatus
    applied_at: datetime
    updated_at: datetime


class ApplicationStatusUpdate(BaseModel):
    status: ApplicationStatus = Field(description="Target status")


class StatusTransitionResponse(BaseModel):
    application: ApplicationResponse
    previous_status: ApplicationStatus
    openings_remaining: Optional[int] = Field(
        None, description="Openings left after a hire consumed one"
    )
    job_closed: bool = False
    warning: Optional[str] = None


class ApplicationJobSummary(BaseModel):
    id: int
    title: str
    company: str
    status: JobStatus


class ApplicantSummary(BaseModel):
    id: int
    username: str
    email: str


class ApplicationDetail(BaseModel):
    id: int
    status: ApplicationStatus
    resume_path: str
    applied_at: datetime
    updated_at: datetime
    job: ApplicationJobSummary
    applicant: ApplicantSummary


class ApplicationListResponse(PageMeta):
    applications: list[ApplicationDetail]
