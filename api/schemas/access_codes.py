"""Access code Pydantic schemas."""

from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from api.schemas.common import PageMeta
from database.models.access_codes import AccessCodeStatus

DurationUnitType = Literal["minutes", "hours", "days"]


class ReferrerAccessCodeRequest(BaseModel):
    """Referrers pick the candidate; the validity window is fixed."""

    candidate_email: EmailStr

    @field_validator("candidate_email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class AdminAccessCodeRequest(ReferrerAccessCodeRequest):
    duration_value: int = Field(gt=0, le=100_000, description="Length of the validity window")
    duration_unit: DurationUnitType = Field(description="Unit of the validity window")


class AccessCodeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code: str
    candidate_email: str
    expires_at: datetime
    generated_by_id: int
    generated_by_username: Optional[str] = None
    is_used: bool
    used_by_id: Optional[int] = None
    used_at: Optional[datetime] = None
    created_at: datetime
    status: AccessCodeStatus = Field(description="Derived from usage and expiry at read time")


class IssuedAccessCodeResponse(BaseModel):
    message: str
    access_code: AccessCodeResponse
    account_created: bool


class AccessCodeListResponse(PageMeta):
    access_codes: list[AccessCodeResponse]
