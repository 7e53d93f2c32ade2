"""
Authentication service functions.

Login runs the onboarding gate: seekers logging in for the first time must
hold a valid access code, which is consumed on success, and returning seekers
lose access once the code they redeemed expires.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional
import logging

import jwt
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import (
    AccessCodeRequired,
    AccessRevoked,
    AccountInactive,
    AuthenticationFailed,
    Conflict,
    InvalidCredentials,
    InvalidResetToken,
)
from core.security import (
    AuditAction,
    ResourceType,
    SessionClaims,
    create_password_reset_token,
    create_session_token,
    hash_password,
    log_audit_event,
    password_fingerprint,
    verify_password,
    verify_password_reset_token,
)
from core.utils.datetime import now as utc_now
from database.models.access_codes import AccessCode
from database.models.users import AccountStatus, OnboardingStatus, User, UserRole

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8

# Attempts at consuming a first-login code before reporting a conflict
CONSUME_ATTEMPTS = 2


class GateState(str, Enum):
    NON_SEEKER_BYPASS = "non_seeker_bypass"
    FIRST_LOGIN_GRANTED = "first_login_granted"
    RETURNING_VALID = "returning_valid"
    RETURNING_UNLINKED = "returning_unlinked"


@dataclass
class GateDecision:
    state: GateState
    access_code_id: Optional[int] = None


@dataclass
class LoginResult:
    token: str
    user: User
    gate: GateDecision


def session_claims_for(user: User) -> SessionClaims:
    return SessionClaims(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role.value,
        first_login=user.first_login,
        is_super_admin=user.is_super_admin,
        onboarding_status=user.onboarding_status.value,
        status=user.status.value,
    )


def issue_session_token(user: User) -> str:
    return create_session_token(session_claims_for(user))


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.email == email.strip().lower()))
    return result.scalar_one_or_none()


async def authenticate(
    db: AsyncSession,
    email: str,
    password: str,
    now: Optional[datetime] = None,
) -> LoginResult:
    """
    Verify credentials, run the onboarding gate and mint a session token.

    Args:
        db: Database session
        email: Login email
        password: Plaintext password
        now: Reference instant (defaults to the current time)

    Returns:
        LoginResult with the signed token

    Raises:
        InvalidCredentials: Unknown email or wrong password
        AccountInactive: Account is deactivated
        AccessCodeRequired: First login without a valid unused code
        AccessRevoked: The code the account redeemed has expired
        Conflict: Lost the race for a code twice
    """
    now = now or utc_now()
    user = await get_user_by_email(db, email)

    if user is None or not verify_password(password, user.password_hash):
        _log_denied(None if user is None else user.id, InvalidCredentials.reason)
        raise InvalidCredentials()

    user_id = user.id
    if user.status != AccountStatus.ACTIVE:
        _log_denied(user_id, AccountInactive.reason)
        raise AccountInactive()

    try:
        decision = await evaluate_onboarding_gate(db, user, now)
    except AuthenticationFailed as exc:
        await db.rollback()
        _log_denied(user_id, exc.reason)
        raise
    except Conflict:
        await db.rollback()
        _log_denied(user_id, "access_code_contention")
        raise

    user.last_login_at = now
    await db.commit()

    token = issue_session_token(user)
    log_audit_event(
        AuditAction.LOGIN_SUCCEEDED,
        ResourceType.USER,
        resource_id=user_id,
        user_id=user_id,
        details={"gate": decision.state.value, "access_code_id": decision.access_code_id},
        contains_pii=False,
    )
    return LoginResult(token=token, user=user, gate=decision)


def _log_denied(user_id: Optional[int], reason: str) -> None:
    logger.warning("Login denied: %s", reason)
    log_audit_event(
        AuditAction.LOGIN_DENIED,
        ResourceType.USER,
        resource_id=user_id,
        user_id=user_id,
        details={"reason": reason},
        contains_pii=False,
    )


async def evaluate_onboarding_gate(
    db: AsyncSession,
    user: User,
    now: Optional[datetime] = None,
) -> GateDecision:
    """
    Decide whether an authenticated account may start a session.

    Consuming a first-login code is written but not committed; the caller
    owns the transaction.
    """
    now = now or utc_now()

    if user.role != UserRole.SEEKER:
        return GateDecision(GateState.NON_SEEKER_BYPASS)

    if user.first_login:
        code_id = await consume_first_login_code(db, user.id, user.email, now)
        return GateDecision(GateState.FIRST_LOGIN_GRANTED, access_code_id=code_id)

    result = await db.execute(
        select(AccessCode)
        .where(AccessCode.used_by_id == user.id)
        .order_by(AccessCode.used_at.desc(), AccessCode.id.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    linked = result.scalar_one_or_none()
    if linked is None:
        # Accounts created without a code (admin-provisioned, legacy)
        return GateDecision(GateState.RETURNING_UNLINKED)
    if linked.is_expired(now):
        raise AccessRevoked()
    return GateDecision(GateState.RETURNING_VALID, access_code_id=linked.id)


async def consume_first_login_code(
    db: AsyncSession, user_id: int, email: str, now: datetime
) -> int:
    """
    Mark the newest valid unused code for ``email`` as used by ``user_id``.

    Returns:
        The consumed code id

    Raises:
        AccessCodeRequired: No valid unused code exists
        Conflict: Another login consumed every candidate we tried
    """
    for attempt in range(1, CONSUME_ATTEMPTS + 1):
        result = await db.execute(
            select(AccessCode.id)
            .where(
                AccessCode.candidate_email == email,
                AccessCode.is_used.is_(False),
                AccessCode.expires_at >= now,
            )
            .order_by(AccessCode.created_at.desc(), AccessCode.id.desc())
            .limit(1)
        )
        code_id = result.scalar_one_or_none()
        if code_id is None:
            raise AccessCodeRequired()

        consumed = await db.execute(
            update(AccessCode)
            .where(
                AccessCode.id == code_id,
                AccessCode.is_used.is_(False),
                AccessCode.expires_at >= now,
            )
            .values(is_used=True, used_by_id=user_id, used_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount == 1:
            log_audit_event(
                AuditAction.ACCESS_CODE_CONSUMED,
                ResourceType.ACCESS_CODE,
                resource_id=code_id,
                user_id=user_id,
                contains_pii=False,
            )
            return code_id

        logger.info(
            "Access code %s consumed concurrently (attempt %d/%d)",
            code_id,
            attempt,
            CONSUME_ATTEMPTS,
        )

    raise Conflict("The access code was redeemed concurrently. Please retry.")


# ==================== Account operations ==================== #

async def change_password(
    db: AsyncSession,
    user: User,
    current_password: Optional[str],
    new_password: str,
) -> str:
    """
    Change a password and clear the first-login flag.

    The current password is only required once the first login is complete.

    Returns:
        A fresh session token reflecting the new account state
    """
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )

    if not user.first_login:
        if not current_password:
            raise ValueError("Current password is required")
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentials("Invalid current password")

    user.password_hash = hash_password(new_password)
    user.first_login = False
    await db.commit()

    log_audit_event(
        AuditAction.PASSWORD_CHANGED,
        ResourceType.USER,
        resource_id=user.id,
        user_id=user.id,
        contains_pii=False,
    )
    return issue_session_token(user)


@dataclass
class PasswordResetGrant:
    user_id: int
    email: str
    username: str
    token: str


async def request_password_reset(
    db: AsyncSession, email: str
) -> Optional[PasswordResetGrant]:
    """
    Mint a reset token for an active account.

    Returns None for unknown or inactive accounts; callers answer both cases
    the same way.
    """
    user = await get_user_by_email(db, email)
    if user is None or user.status != AccountStatus.ACTIVE:
        logger.info("Password reset requested for an unknown or inactive account")
        return None

    token = create_password_reset_token(user.id, user.password_hash)
    log_audit_event(
        AuditAction.PASSWORD_RESET_REQUESTED,
        ResourceType.USER,
        resource_id=user.id,
        user_id=user.id,
        contains_pii=False,
    )
    return PasswordResetGrant(
        user_id=user.id, email=user.email, username=user.username, token=token
    )


async def reset_password(db: AsyncSession, token: str, new_password: str) -> None:
    """
    Set a new password from a reset token and clear the first-login flag.

    The token is tied to the password it was minted against, and the write
    only lands while that password is still in place, so each token works once.

    Raises:
        ValueError: New password too short
        InvalidResetToken: Expired, forged or already used token
    """
    if not new_password or len(new_password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"New password must be at least {MIN_PASSWORD_LENGTH} characters long"
        )

    try:
        user_id, fingerprint = verify_password_reset_token(token)
    except jwt.ExpiredSignatureError as exc:
        raise InvalidResetToken(
            "Password reset token has expired. Please request a new one."
        ) from exc
    except jwt.InvalidTokenError as exc:
        logger.warning("Rejected password reset token: %s", exc)
        raise InvalidResetToken() from exc

    current_hash = (
        await db.execute(select(User.password_hash).where(User.id == user_id))
    ).scalar_one_or_none()
    if current_hash is None or password_fingerprint(current_hash) != fingerprint:
        raise InvalidResetToken()

    result = await db.execute(
        update(User)
        .where(User.id == user_id, User.password_hash == current_hash)
        .values(password_hash=hash_password(new_password), first_login=False)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise InvalidResetToken()
    await db.commit()

    log_audit_event(
        AuditAction.PASSWORD_RESET,
        ResourceType.USER,
        resource_id=user_id,
        user_id=user_id,
        contains_pii=False,
    )


async def complete_onboarding(
    db: AsyncSession,
    user: User,
    resume_id: str,
    resume_file_name: Optional[str] = None,
) -> User:
    """Record the seeker's resume reference and finish onboarding."""
    if not resume_id or not resume_id.strip():
        raise ValueError("A resume reference is required to complete onboarding")

    user.resume_id = resume_id.strip()
    user.resume_file_name = resume_file_name
    user.onboarding_status = OnboardingStatus.COMPLETED
    await db.commit()

    logger.info("Account %s completed onboarding", user.id)
    return user
