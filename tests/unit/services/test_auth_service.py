"""
Tests for login and the onboarding gate.

Tests:
- Credential checks and inactive accounts
- First-login code consumption
- Revocation of returning seekers
- Concurrent logins racing for one code
- Password change and onboarding completion
- Password reset tokens
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from api.services.auth import (
    GateState,
    authenticate,
    change_password,
    complete_onboarding,
    consume_first_login_code,
    evaluate_onboarding_gate,
    issue_session_token,
    request_password_reset,
    reset_password,
)
from core.exceptions import (
    AccessCodeRequired,
    AccessRevoked,
    AccountInactive,
    InvalidCredentials,
    InvalidResetToken,
)
from core.security import (
    create_password_reset_token,
    verify_password,
    verify_password_reset_token,
    verify_session_token,
)
from core.utils.datetime import now
from database.models.access_codes import AccessCode
from database.models.users import AccountStatus, OnboardingStatus, User, UserRole

# Password the make_user fixture assigns
DEFAULT_PASSWORD = "Password123!"


async def fetch_code(db, code_id) -> AccessCode:
    return await db.get(AccessCode, code_id, populate_existing=True)


class TestAuthenticate:
    """Test credential verification."""

    @pytest.mark.asyncio
    async def test_unknown_email(self, db_session):
        with pytest.raises(InvalidCredentials):
            await authenticate(db_session, "ghost@example.com", DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_wrong_password(self, db_session, make_user):
        """Test a wrong password looks exactly like an unknown email."""
        user = await make_user(role=UserRole.POSTER)

        with pytest.raises(InvalidCredentials) as exc_info:
            await authenticate(db_session, user.email, "not-the-password")
        assert exc_info.value.message == InvalidCredentials.default_message

    @pytest.mark.asyncio
    async def test_inactive_account(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER, status=AccountStatus.INACTIVE)

        with pytest.raises(AccountInactive):
            await authenticate(db_session, user.email, DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_inactive_account_wrong_password(self, db_session, make_user):
        """Test the password is checked before the account status."""
        user = await make_user(role=UserRole.POSTER, status=AccountStatus.INACTIVE)

        with pytest.raises(InvalidCredentials):
            await authenticate(db_session, user.email, "not-the-password")

    @pytest.mark.asyncio
    async def test_email_is_case_insensitive(self, db_session, make_user):
        user = await make_user(role=UserRole.ADMIN, email="boss@example.com")

        result = await authenticate(db_session, "  Boss@Example.COM ", DEFAULT_PASSWORD)
        assert result.user.id == user.id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role", [UserRole.POSTER, UserRole.REFERRER, UserRole.ADMIN])
    async def test_non_seekers_bypass_gate(self, db_session, make_user, role):
        """Test non-seekers log in without any access code."""
        user = await make_user(role=role, first_login=True)

        result = await authenticate(db_session, user.email, DEFAULT_PASSWORD)

        assert result.gate.state == GateState.NON_SEEKER_BYPASS
        assert result.user.last_login_at is not None

    @pytest.mark.asyncio
    async def test_token_claims(self, db_session, make_user):
        """Test the session token reflects the account state."""
        user = await make_user(role=UserRole.ADMIN, is_super_admin=True)

        result = await authenticate(db_session, user.email, DEFAULT_PASSWORD)
        claims = verify_session_token(result.token)

        assert claims.id == user.id
        assert claims.email == user.email
        assert claims.role == "admin"
        assert claims.is_super_admin is True
        assert claims.first_login is False
        assert claims.onboarding_status == "completed"
        assert claims.status == "active"


class TestFirstLoginGate:
    """Test seekers logging in for the first time."""

    @pytest.mark.asyncio
    async def test_without_code(self, db_session, make_user):
        """Test a first login without a code is refused and changes nothing."""
        seeker = await make_user(first_login=True, onboarding_status=OnboardingStatus.NOT_STARTED)

        with pytest.raises(AccessCodeRequired):
            await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

        await db_session.refresh(seeker)
        assert seeker.first_login is True
        assert seeker.last_login_at is None

    @pytest.mark.asyncio
    async def test_with_expired_code(self, db_session, make_user, make_access_code):
        """Test expired codes do not open the gate."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        code = await make_access_code(admin, seeker.email, expires_in=timedelta(minutes=-1))
        code_id = code.id

        with pytest.raises(AccessCodeRequired):
            await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

        assert (await fetch_code(db_session, code_id)).is_used is False

    @pytest.mark.asyncio
    async def test_code_for_other_email(self, db_session, make_user, make_access_code):
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        await make_access_code(admin, "somebody.else@example.com")

        with pytest.raises(AccessCodeRequired):
            await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_with_valid_code(self, db_session, make_user, make_access_code):
        """Test a valid code is consumed and the flag is left alone."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        code = await make_access_code(admin, seeker.email)

        result = await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

        assert result.gate.state == GateState.FIRST_LOGIN_GRANTED
        assert result.gate.access_code_id == code.id
        assert verify_session_token(result.token).first_login is True

        consumed = await fetch_code(db_session, code.id)
        assert consumed.is_used is True
        assert consumed.used_by_id == seeker.id
        assert consumed.used_at is not None

        await db_session.refresh(seeker)
        assert seeker.first_login is True

    @pytest.mark.asyncio
    async def test_newest_code_consumed_first(self, db_session, make_user, make_access_code):
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        older = await make_access_code(admin, seeker.email)
        newer = await make_access_code(admin, seeker.email)

        result = await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

        assert result.gate.access_code_id == newer.id
        assert (await fetch_code(db_session, older.id)).is_used is False

    @pytest.mark.asyncio
    async def test_second_login_needs_another_code(self, db_session, make_user, make_access_code):
        """Test each first-login session spends one code until the password changes."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        await make_access_code(admin, seeker.email)

        await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)
        with pytest.raises(AccessCodeRequired):
            await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)


class TestReturningGate:
    """Test seekers who already changed their password."""

    @pytest.mark.asyncio
    async def test_unlinked_account_allowed(self, db_session, make_user):
        """Test seekers never provisioned through a code are let in."""
        seeker = await make_user(first_login=False)

        result = await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)
        assert result.gate.state == GateState.RETURNING_UNLINKED

    @pytest.mark.asyncio
    async def test_valid_linked_code(self, db_session, make_user, make_access_code):
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=False)
        code = await make_access_code(admin, seeker.email)
        code.is_used, code.used_by_id, code.used_at = True, seeker.id, now()
        await db_session.commit()

        result = await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

        assert result.gate.state == GateState.RETURNING_VALID
        assert result.gate.access_code_id == code.id

    @pytest.mark.asyncio
    async def test_expired_linked_code_revokes(self, db_session, make_user, make_access_code):
        """Test an expired linked code blocks a correct password."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=False)
        code = await make_access_code(admin, seeker.email, expires_in=timedelta(days=-1))
        code.is_used, code.used_by_id, code.used_at = True, seeker.id, now() - timedelta(days=2)
        await db_session.commit()

        with pytest.raises(AccessRevoked):
            await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)

    @pytest.mark.asyncio
    async def test_revocation_at_reference_time(self, db_session, make_user, make_access_code):
        """Test a code that is valid now revokes access once it lapses."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=False)
        code = await make_access_code(admin, seeker.email, expires_in=timedelta(hours=1))
        code.is_used, code.used_by_id, code.used_at = True, seeker.id, now()
        await db_session.commit()

        decision = await evaluate_onboarding_gate(db_session, seeker)
        assert decision.state == GateState.RETURNING_VALID

        with pytest.raises(AccessRevoked):
            await evaluate_onboarding_gate(db_session, seeker, now() + timedelta(hours=2))


class TestConcurrentConsumption:
    """Test two logins racing for the same code."""

    @pytest.mark.asyncio
    async def test_single_code_consumed_once(self, database, make_user, make_access_code):
        """Test only one of two concurrent consumers gets the code."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        code = await make_access_code(admin, seeker.email)
        seeker_id, email, reference = seeker.id, seeker.email, now()

        async def consume():
            async with database.session() as session:
                try:
                    code_id = await consume_first_login_code(session, seeker_id, email, reference)
                    await session.commit()
                    return code_id
                except AccessCodeRequired as exc:
                    return exc

        results = await asyncio.gather(consume(), consume())

        granted = [r for r in results if r == code.id]
        refused = [r for r in results if isinstance(r, AccessCodeRequired)]
        assert len(granted) == 1
        assert len(refused) == 1

    @pytest.mark.asyncio
    async def test_concurrent_logins(self, database, make_user, make_access_code):
        """Test full logins race the same way."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        await make_access_code(admin, seeker.email)
        email = seeker.email

        async def login():
            async with database.session() as session:
                try:
                    return await authenticate(session, email, DEFAULT_PASSWORD)
                except AccessCodeRequired as exc:
                    return exc

        results = await asyncio.gather(login(), login(), login())

        assert sum(not isinstance(r, Exception) for r in results) == 1
        assert sum(isinstance(r, AccessCodeRequired) for r in results) == 2

        async with database.session() as session:
            used = (
                await session.execute(
                    select(AccessCode).where(AccessCode.candidate_email == email)
                )
            ).scalar_one()
            assert used.is_used is True

    @pytest.mark.asyncio
    async def test_two_codes_two_logins(self, database, make_user, make_access_code):
        """Test two codes for one email let two concurrent logins through."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        first = await make_access_code(admin, seeker.email)
        second = await make_access_code(admin, seeker.email)
        seeker_id, email, reference = seeker.id, seeker.email, now()

        async def consume():
            async with database.session() as session:
                code_id = await consume_first_login_code(session, seeker_id, email, reference)
                await session.commit()
                return code_id

        results = await asyncio.gather(consume(), consume())
        assert sorted(results) == sorted([first.id, second.id])


class TestChangePassword:
    """Test password changes."""

    @pytest.mark.asyncio
    async def test_first_login_needs_no_current_password(self, db_session, make_user):
        seeker = await make_user(first_login=True)

        token = await change_password(db_session, seeker, None, "BrandNew123")

        assert seeker.first_login is False
        assert verify_password("BrandNew123", seeker.password_hash)
        assert verify_session_token(token).first_login is False

    @pytest.mark.asyncio
    async def test_returning_requires_current_password(self, db_session, make_user):
        seeker = await make_user(first_login=False)

        with pytest.raises(ValueError):
            await change_password(db_session, seeker, None, "BrandNew123")
        with pytest.raises(InvalidCredentials):
            await change_password(db_session, seeker, "wrong-password", "BrandNew123")

        await change_password(db_session, seeker, DEFAULT_PASSWORD, "BrandNew123")
        assert verify_password("BrandNew123", seeker.password_hash)

    @pytest.mark.asyncio
    async def test_short_password_rejected(self, db_session, make_user):
        seeker = await make_user(first_login=True)

        with pytest.raises(ValueError):
            await change_password(db_session, seeker, None, "short")
        assert seeker.first_login is True

    @pytest.mark.asyncio
    async def test_returning_login_after_change(self, db_session, make_user, make_access_code):
        """Test the consumed code becomes the linked code once the flag clears."""
        admin = await make_user(role=UserRole.ADMIN)
        seeker = await make_user(first_login=True)
        code = await make_access_code(admin, seeker.email)

        await authenticate(db_session, seeker.email, DEFAULT_PASSWORD)
        await change_password(db_session, seeker, None, "BrandNew123")
        result = await authenticate(db_session, seeker.email, "BrandNew123")

        assert result.gate.state == GateState.RETURNING_VALID
        assert result.gate.access_code_id == code.id


class TestCompleteOnboarding:
    """Test onboarding completion."""

    @pytest.mark.asyncio
    async def test_records_resume(self, db_session, make_user):
        seeker = await make_user(onboarding_status=OnboardingStatus.NOT_STARTED)

        await complete_onboarding(db_session, seeker, " resumes/42.pdf ", "cv.pdf")

        stored = await db_session.get(User, seeker.id, populate_existing=True)
        assert stored.onboarding_status == OnboardingStatus.COMPLETED
        assert stored.resume_id == "resumes/42.pdf"
        assert stored.resume_file_name == "cv.pdf"

    @pytest.mark.asyncio
    async def test_blank_resume_rejected(self, db_session, make_user):
        seeker = await make_user(onboarding_status=OnboardingStatus.NOT_STARTED)

        with pytest.raises(ValueError):
            await complete_onboarding(db_session, seeker, "   ")


class TestPasswordReset:
    """Test reset token issuance and redemption."""

    @pytest.mark.asyncio
    async def test_unknown_and_inactive_get_nothing(self, db_session, make_user):
        inactive = await make_user(role=UserRole.POSTER, status=AccountStatus.INACTIVE)

        assert await request_password_reset(db_session, "ghost@example.com") is None
        assert await request_password_reset(db_session, inactive.email) is None

    @pytest.mark.asyncio
    async def test_grant_bound_to_account(self, db_session, make_user):
        user = await make_user(role=UserRole.REFERRER)

        grant = await request_password_reset(db_session, user.email.upper())

        assert grant.user_id == user.id
        assert grant.email == user.email
        user_id, _ = verify_password_reset_token(grant.token)
        assert user_id == user.id

    @pytest.mark.asyncio
    async def test_reset_sets_password_and_clears_first_login(self, db_session, make_user):
        seeker = await make_user(first_login=True)
        user_id = seeker.id
        grant = await request_password_reset(db_session, seeker.email)

        await reset_password(db_session, grant.token, "Recovered123")

        user = await db_session.get(User, user_id, populate_existing=True)
        assert user.first_login is False
        assert verify_password("Recovered123", user.password_hash)
        assert not verify_password(DEFAULT_PASSWORD, user.password_hash)

    @pytest.mark.asyncio
    async def test_token_works_once(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)
        grant = await request_password_reset(db_session, user.email)

        await reset_password(db_session, grant.token, "FirstReset123")
        with pytest.raises(InvalidResetToken):
            await reset_password(db_session, grant.token, "SecondReset123")

    @pytest.mark.asyncio
    async def test_password_change_voids_token(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)
        grant = await request_password_reset(db_session, user.email)

        await change_password(db_session, user, DEFAULT_PASSWORD, "Changed12345")

        with pytest.raises(InvalidResetToken):
            await reset_password(db_session, grant.token, "Recovered123")

    @pytest.mark.asyncio
    async def test_expired_token(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)
        token = create_password_reset_token(
            user.id, user.password_hash, expires_delta=timedelta(seconds=-1)
        )

        with pytest.raises(InvalidResetToken, match="expired"):
            await reset_password(db_session, token, "Recovered123")

    @pytest.mark.asyncio
    async def test_forged_token(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)
        forged = create_password_reset_token(
            user.id,
            user.password_hash,
            secret_key="some-other-secret-key-that-is-long-enough",
        )

        with pytest.raises(InvalidResetToken):
            await reset_password(db_session, forged, "Recovered123")

    @pytest.mark.asyncio
    async def test_session_token_rejected(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)

        with pytest.raises(InvalidResetToken):
            await reset_password(db_session, issue_session_token(user), "Recovered123")

    @pytest.mark.asyncio
    async def test_short_password(self, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)
        grant = await request_password_reset(db_session, user.email)

        with pytest.raises(ValueError):
            await reset_password(db_session, grant.token, "short")

    @pytest.mark.asyncio
    async def test_concurrent_redemption_single_winner(self, database, db_session, make_user):
        user = await make_user(role=UserRole.POSTER)
        grant = await request_password_reset(db_session, user.email)

        async def redeem(password):
            async with database.session() as session:
                try:
                    await reset_password(session, grant.token, password)
                    return "ok"
                except InvalidResetToken:
                    return "rejected"

        results = await asyncio.gather(redeem("RaceOne12345"), redeem("RaceTwo12345"))

        assert sorted(results) == ["ok", "rejected"]
