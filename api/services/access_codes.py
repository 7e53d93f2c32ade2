"""
Access code service functions.

Issues single-use access codes, provisions the candidate's seeker account in
the same transaction, and lists issued codes with their derived state.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional
import logging
import re

from sqlalchemy import select, func, and_, exists
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.exceptions import (
    AccountCollision,
    CodeGenerationExhausted,
    Conflict,
    DuplicateAccessCode,
)
from core.security import (
    ACCESS_CODE_ALPHABET,
    AuditAction,
    ResourceType,
    generate_code,
    generate_temporary_password,
    hash_password,
    log_audit_event,
)
from core.utils.datetime import DurationUnit, add_duration, now as utc_now
from database.models.access_codes import AccessCode, AccessCodeStatus
from database.models.users import OnboardingStatus, User, UserRole

logger = logging.getLogger(__name__)


@dataclass
class IssuedAccessCode:
    """Outcome of a successful issuance."""

    access_code: AccessCode
    user_id: int
    account_created: bool
    temporary_password: Optional[str] = None


def compute_expiry(
    duration_value: int,
    duration_unit: DurationUnit,
    now: Optional[datetime] = None,
) -> datetime:
    """Expiry instant for a validity window starting at ``now``."""
    return add_duration(now or utc_now(), duration_value, duration_unit)


def referrer_expiry(now: Optional[datetime] = None) -> datetime:
    """Referrers always issue fixed-length windows."""
    return compute_expiry(settings.referrer_code_validity_days, "days", now)


async def code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(exists().where(AccessCode.code == code)))
    return bool(result.scalar())


async def issue_access_code(
    db: AsyncSession,
    candidate_email: str,
    issued_by: User,
    expires_at: datetime,
    alphabet: str = ACCESS_CODE_ALPHABET,
    length: Optional[int] = None,
    max_attempts: Optional[int] = None,
) -> IssuedAccessCode:
    """
    Issue a new access code for a candidate.

    Args:
        db: Database session
        candidate_email: Email the code is bound to
        issued_by: Admin or referrer issuing the code
        expires_at: End of the validity window
        alphabet: Characters codes are drawn from
        length: Code length (defaults to settings)
        max_attempts: Generation attempts before giving up (defaults to settings)

    Returns:
        The persisted unused code and the account provisioning outcome

    Raises:
        CodeGenerationExhausted: Every attempt collided with an existing code
        Conflict: Concurrent issuances kept taking the candidate's account row
    """
    email = candidate_email.strip().lower()
    issuer_id = issued_by.id
    issuer_username = issued_by.username or issued_by.email
    length = length or settings.access_code_length
    max_attempts = max_attempts or settings.access_code_max_attempts

    account_collided = False
    for attempt in range(1, max_attempts + 1):
        code = generate_code(alphabet, length)
        try:
            issued = await _persist_code(
                db,
                code=code,
                email=email,
                expires_at=expires_at,
                issuer_id=issuer_id,
                issuer_username=issuer_username,
            )
        except DuplicateAccessCode:
            logger.info(
                "Access code collision on attempt %d/%d, regenerating",
                attempt,
                max_attempts,
            )
            account_collided = False
            continue
        except AccountCollision as exc:
            # The next attempt re-reads the account and derives a free username
            logger.info(
                "Candidate account collided on attempt %d/%d, retrying: %s",
                attempt,
                max_attempts,
                exc,
            )
            account_collided = True
            continue

        log_audit_event(
            AuditAction.ACCESS_CODE_ISSUED,
            ResourceType.ACCESS_CODE,
            resource_id=issued.access_code.id,
            user_id=issuer_id,
            details={
                "candidate_email": email,
                "expires_at": issued.access_code.expires_at,
                "account_created": issued.account_created,
                "attempts": attempt,
            },
        )
        return issued

    if account_collided:
        raise Conflict("The candidate account was modified concurrently. Please retry.")
    logger.error("Gave up generating an access code after %d attempts", max_attempts)
    raise CodeGenerationExhausted()


async def _persist_code(
    db: AsyncSession,
    code: str,
    email: str,
    expires_at: datetime,
    issuer_id: int,
    issuer_username: str,
) -> IssuedAccessCode:
    """
    Insert one candidate code together with the account side effects.

    Raises:
        DuplicateAccessCode: The code is already taken, before or during the insert
        AccountCollision: A concurrent issuance inserted the same email or username
    """
    if await code_exists(db, code):
        raise DuplicateAccessCode(code)

    try:
        user, account_created, temporary_password = await _provision_account(
            db, email, issuer_id
        )
        access_code = AccessCode(
            code=code,
            candidate_email=email,
            expires_at=expires_at,
            generated_by_id=issuer_id,
            generated_by_username=issuer_username,
            is_used=False,
        )
        db.add(access_code)
        await db.flush()
        user_id = user.id
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        if await code_exists(db, code):
            raise DuplicateAccessCode(code) from exc
        raise AccountCollision(str(exc.orig)) from exc

    if account_created:
        log_audit_event(
            AuditAction.ACCOUNT_CREATED,
            ResourceType.USER,
            resource_id=user_id,
            user_id=issuer_id,
            details={"email": email, "role": UserRole.SEEKER.value},
        )

    return IssuedAccessCode(
        access_code=access_code,
        user_id=user_id,
        account_created=account_created,
        temporary_password=temporary_password,
    )


async def _provision_account(
    db: AsyncSession, email: str, issuer_id: int
) -> tuple[User, bool, Optional[str]]:
    result = await db.execute(select(User).where(User.email == email))
    user = result.scalar_one_or_none()

    if user is None:
        temporary_password = generate_temporary_password()
        user = User(
            username=await derive_username(db, email),
            email=email,
            password_hash=hash_password(temporary_password),
            role=UserRole.SEEKER,
            first_login=True,
            onboarding_status=OnboardingStatus.NOT_STARTED,
            created_by=issuer_id,
        )
        db.add(user)
        await db.flush()
        logger.info("Provisioned seeker account %s for access code", user.id)
        return user, True, temporary_password

    if user.onboarding_status != OnboardingStatus.COMPLETED and not user.first_login:
        # Send the account back through the first-login gate
        user.first_login = True
        user.onboarding_status = OnboardingStatus.NOT_STARTED
        logger.info("Reset first-login state for account %s", user.id)

    return user, False, None


_USERNAME_UNSAFE = re.compile(r"[^a-z0-9._-]")


async def derive_username(db: AsyncSession, email: str) -> str:
    """Username from the email local part, suffixed with a counter when taken."""
    base = _USERNAME_UNSAFE.sub("", email.split("@", 1)[0].lower()) or "user"
    base = base[:90]

    result = await db.execute(
        select(User.username).where(
            (User.username == base) | (User.username.like(f"{base}%"))
        )
    )
    taken = set(result.scalars().all())
    if base not in taken:
        return base

    suffix = 1
    while f"{base}{suffix}" in taken:
        suffix += 1
    return f"{base}{suffix}"


# ==================== Listing ==================== #

def _label_filter(label: AccessCodeStatus, reference: datetime):
    expired = AccessCode.expires_at < reference
    valid = AccessCode.expires_at >= reference
    return {
        AccessCodeStatus.USED_AND_VALID: and_(AccessCode.is_used.is_(True), valid),
        AccessCodeStatus.USED_AND_EXPIRED: and_(AccessCode.is_used.is_(True), expired),
        AccessCodeStatus.UNUSED_AND_EXPIRED: and_(AccessCode.is_used.is_(False), expired),
        AccessCodeStatus.UNUSED_AND_VALID: and_(AccessCode.is_used.is_(False), valid),
    }[label]


def serialize_access_code(code: AccessCode, reference: datetime) -> Dict[str, Any]:
    return {
        "id": code.id,
        "code": code.code,
        "candidate_email": code.candidate_email,
        "expires_at": code.expires_at,
        "generated_by_id": code.generated_by_id,
        "generated_by_username": code.generated_by_username,
        "is_used": code.is_used,
        "used_by_id": code.used_by_id,
        "used_at": code.used_at,
        "created_at": code.created_at,
        "status": code.status_label(reference).value,
    }


async def list_access_codes(
    db: AsyncSession,
    generated_by: Optional[int] = None,
    status_label: Optional[AccessCodeStatus] = None,
    page: int = 1,
    limit: int = 20,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """
    List issued codes, newest first.

    Args:
        db: Database session
        generated_by: Only codes issued by this account
        status_label: Only codes currently in this derived state
        page: 1-based page number
        limit: Page size
        now: Reference instant for the derived state

    Returns:
        Dictionary with the codes and pagination info
    """
    reference = now or utc_now()
    query = select(AccessCode)
    if generated_by is not None:
        query = query.where(AccessCode.generated_by_id == generated_by)
    if status_label is not None:
        query = query.where(_label_filter(status_label, reference))

    total = (
        await db.execute(select(func.count()).select_from(query.subquery()))
    ).scalar() or 0

    result = await db.execute(
        query.order_by(AccessCode.created_at.desc(), AccessCode.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    codes = result.scalars().all()

    return {
        "access_codes": [serialize_access_code(c, reference) for c in codes],
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": (total + limit - 1) // limit,
    }
