"""Account administration Pydantic schemas."""

from typing import Optional
from pydantic import BaseModel, EmailStr, Field, field_validator

from api.schemas.auth import AccountResponse
from database.models.users import AccountStatus, UserRole


class CreateUserRequest(BaseModel):
    email: EmailStr
    role: UserRole
    username: Optional[str] = Field(None, min_length=3, max_length=100, pattern=r"^[A-Za-z0-9._-]+$")
    password: Optional[str] = Field(
        None, min_length=8, max_length=128, description="Generated when omitted"
    )
    is_super_admin: bool = False

    @field_validator("email", mode="after")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class CreateUserResponse(BaseModel):
    message: str
    user: AccountResponse
    temporary_password: Optional[str] = Field(
        None, description="Only present when the password was generated"
    )


class AccountStatusUpdate(BaseModel):
    status: AccountStatus
