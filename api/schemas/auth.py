"""Authentication and account Pydantic schemas."""

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from database.models.users import AccountStatus, OnboardingStatus, UserRole


class LoginRequest(BaseModel):
    """Credentials for a login attempt."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class AccountResponse(BaseModel):
    """Public view of an account."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: str
    role: UserRole
    is_super_admin: bool
    first_login: bool
    onboarding_status: OnboardingStatus
    status: AccountStatus
    resume_id: Optional[str] = None
    resume_file_name: Optional[str] = None
    last_login_at: Optional[datetime] = None
    created_at: datetime


class LoginResponse(BaseModel):
    token: str = Field(description="Signed session token")
    user: AccountResponse


class ChangePasswordRequest(BaseModel):
    current_password: Optional[str] = Field(
        None, max_length=128, description="Required once the first login is complete"
    )
    new_password: str = Field(min_length=8, max_length=128)


class ChangePasswordResponse(BaseModel):
    message: str
    token: str
    user: AccountResponse


class OnboardingRequest(BaseModel):
    resume_id: str = Field(min_length=1, max_length=255, description="Stored resume reference")
    resume_file_name: Optional[str] = Field(None, max_length=255)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1, max_length=2048)
    new_password: str = Field(min_length=8, max_length=128)
