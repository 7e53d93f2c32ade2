"""
Access Codes Module

Single-use, time-boxed codes that gate a seeker account's first login.
Codes are never deleted; expired and unused codes are simply dead.
"""

from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import (
    String,
    Boolean,
    ForeignKey,
    DateTime,
    Index,
    CheckConstraint,
)
from core.utils.datetime import ensure_utc, now
from database.engine import Base, PrimaryKey
from datetime import datetime
from enum import Enum as PyEnum
from typing import Optional


# ==================== Enums ===================== #
class AccessCodeStatus(str, PyEnum):
    """Derived state label. Computed at read time, never stored."""

    USED_AND_VALID = "used and valid"
    USED_AND_EXPIRED = "used and expired"
    UNUSED_AND_EXPIRED = "unused and expired"
    UNUSED_AND_VALID = "unused and valid"


# ==================== AccessCode Model ===================== #
class AccessCode(Base):
    """
    Access code issued by an admin or referrer for one candidate email.
    """

    __tablename__ = "access_codes"

    id: Mapped[int] = mapped_column(
        PrimaryKey, primary_key=True, nullable=False, autoincrement=True
    )
    code: Mapped[str] = mapped_column(String(32), nullable=False, unique=True)
    candidate_email: Mapped[str] = mapped_column(String(255), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    # Issuer
    generated_by_id: Mapped[int] = mapped_column(
        PrimaryKey, ForeignKey("users.id"), nullable=False
    )
    generated_by_username: Mapped[str | None] = mapped_column(String(100))

    # Consumption
    is_used: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    used_by_id: Mapped[int | None] = mapped_column(
        PrimaryKey, ForeignKey("users.id"), nullable=True
    )
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=now, onupdate=now
    )

    __table_args__ = (
        # Unused codes carry no consumer; used codes carry both consumer and time
        CheckConstraint(
            "(is_used = false AND used_by_id IS NULL AND used_at IS NULL) OR "
            "(is_used = true AND used_by_id IS NOT NULL AND used_at IS NOT NULL)",
            name="ck_access_codes_usage_consistent",
        ),
        Index("idx_access_codes_generated_by_expiry", "generated_by_id", "expires_at"),
        Index("idx_access_codes_email_used", "candidate_email", "is_used"),
        Index("idx_access_codes_used_by", "used_by_id"),
    )

    def is_expired(self, reference: Optional[datetime] = None) -> bool:
        return ensure_utc(self.expires_at) < (reference or now())

    def status_label(self, reference: Optional[datetime] = None) -> AccessCodeStatus:
        expired = self.is_expired(reference)
        if self.is_used:
            return (
                AccessCodeStatus.USED_AND_EXPIRED
                if expired
                else AccessCodeStatus.USED_AND_VALID
            )
        return (
            AccessCodeStatus.UNUSED_AND_EXPIRED
            if expired
            else AccessCodeStatus.UNUSED_AND_VALID
        )

    def __repr__(self) -> str:
        return f"<AccessCode {self.id} used={self.is_used}>"
