from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Enum as SQLEnum,
)
from core.utils.datetime import now
from database.engine import Base, PrimaryKey, enum_values
from datetime import datetime
from enum import Enum as PyEnum


# ==================== Enums ===================== #
class UserRole(str, PyEnum):
    SEEKER = "job_seeker"  # candidate looking for work
    POSTER = "job_poster"  # employer posting jobs
    REFERRER = "job_referrer"  # sponsor who hands out access codes
    ADMIN = "admin"  # platform administrator


class OnboardingStatus(str, PyEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class AccountStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class User(Base):
    """
    Portal account for every role.

    ``first_login`` stays true until the account changes its password; for
    seekers it also decides which branch of the login gate applies.
    """

    __tablename__: str = "users"
    id: Mapped[int] = mapped_column(
        PrimaryKey, primary_key=True, nullable=False, autoincrement=True
    )
    username: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    role: Mapped[UserRole] = mapped_column(
        SQLEnum(UserRole, native_enum=False, length=50, values_callable=enum_values),
        nullable=False,
        default=UserRole.SEEKER,
    )
    is_super_admin: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    first_login: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    onboarding_status: Mapped[OnboardingStatus] = mapped_column(
        SQLEnum(
            OnboardingStatus, native_enum=False, length=50, values_callable=enum_values
        ),
        nullable=False,
        default=OnboardingStatus.NOT_STARTED,
    )
    status: Mapped[AccountStatus] = mapped_column(
        SQLEnum(AccountStatus, native_enum=False, length=20, values_callable=enum_values),
        nullable=False,
        default=AccountStatus.ACTIVE,
    )

    # Resume reference (binary lives in external storage)
    resume_id: Mapped[str | None] = mapped_column(String(255))
    resume_file_name: Mapped[str | None] = mapped_column(String(255))

    # Timestamps
    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=now,
        onupdate=now,
    )
    created_by: Mapped[int | None] = mapped_column(
        PrimaryKey, ForeignKey("users.id"), nullable=True
    )

    @property
    def is_seeker(self) -> bool:
        return self.role == UserRole.SEEKER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def has_resume(self) -> bool:
        return bool(self.resume_id)

    def __repr__(self) -> str:
        return f"<User {self.id} {self.role.value}>"
