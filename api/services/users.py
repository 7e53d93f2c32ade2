"""
User service functions for API endpoints.

Administrative account management. Seeker accounts are normally provisioned
by access-code issuance; this module covers every other role.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.services.access_codes import derive_username
from core.exceptions import Conflict, Forbidden, NotFound
from core.security import (
    AuditAction,
    ResourceType,
    generate_temporary_password,
    hash_password,
    log_audit_event,
)
from database.models.users import AccountStatus, OnboardingStatus, User, UserRole

logger = logging.getLogger(__name__)

USERNAME_ATTEMPTS = 3


@dataclass
class CreatedAccount:
    user: User
    temporary_password: Optional[str] = None


async def get_user(db: AsyncSession, user_id: int) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


async def create_user(
    db: AsyncSession,
    created_by: User,
    email: str,
    role: UserRole,
    username: Optional[str] = None,
    password: Optional[str] = None,
    is_super_admin: bool = False,
) -> CreatedAccount:
    """
    Create an account of any role.

    Args:
        db: Database session
        created_by: Admin creating the account
        email: Account email
        role: Account role
        username: Optional username (derived from the email when omitted)
        password: Optional initial password (a temporary one is generated when omitted)
        is_super_admin: Only a super admin may grant this, and only to admins

    Returns:
        The account and the generated temporary password, if any

    Raises:
        Forbidden: Caller cannot grant super admin
        Conflict: Email or username already taken
    """
    if is_super_admin:
        if not created_by.is_super_admin:
            raise Forbidden("Only a super admin can create super admins")
        if role != UserRole.ADMIN:
            raise ValueError("Only admin accounts can be super admins")

    creator_id = created_by.id
    email = email.strip().lower()
    temporary_password = None
    if not password:
        temporary_password = password = generate_temporary_password()

    password_hash = hash_password(password)

    for attempt in range(1, USERNAME_ATTEMPTS + 1):
        existing = await db.execute(select(User.id).where(User.email == email))
        if existing.scalar_one_or_none() is not None:
            raise Conflict("An account with this email already exists")

        user = User(
            username=username or await derive_username(db, email),
            email=email,
            password_hash=password_hash,
            role=role,
            is_super_admin=is_super_admin,
            first_login=True,
            # Only seekers go through onboarding
            onboarding_status=(
                OnboardingStatus.NOT_STARTED
                if role == UserRole.SEEKER
                else OnboardingStatus.COMPLETED
            ),
            status=AccountStatus.ACTIVE,
            created_by=creator_id,
        )
        db.add(user)
        try:
            await db.commit()
            break
        except IntegrityError as exc:
            await db.rollback()
            if username:
                raise Conflict("An account with this email or username already exists") from exc
            # A derived name was claimed concurrently; the next pass re-checks both
            logger.info(
                "Derived username collided on attempt %d/%d", attempt, USERNAME_ATTEMPTS
            )
    else:
        raise Conflict("The account could not be created. Please retry.")

    log_audit_event(
        AuditAction.ACCOUNT_CREATED,
        ResourceType.USER,
        resource_id=user.id,
        user_id=creator_id,
        details={"email": email, "role": role.value},
    )
    return CreatedAccount(user=user, temporary_password=temporary_password)


async def set_account_status(
    db: AsyncSession, user_id: int, status: AccountStatus, changed_by: User
) -> User:
    """Activate or deactivate an account."""
    if user_id == changed_by.id and status == AccountStatus.INACTIVE:
        raise ValueError("You cannot deactivate your own account")

    user = await get_user(db, user_id)
    if user.is_super_admin and not changed_by.is_super_admin:
        raise Forbidden("Only a super admin can change a super admin's status")

    previous = user.status
    user.status = status
    await db.commit()

    log_audit_event(
        AuditAction.ACCOUNT_STATUS_CHANGED,
        ResourceType.USER,
        resource_id=user_id,
        user_id=changed_by.id,
        details={"from": previous.value, "to": status.value},
        contains_pii=False,
    )
    return user
