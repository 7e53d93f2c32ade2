"""Shared fixtures and utilities for tests."""

import os

# Settings are read at import time, so the environment is prepared first
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-key-min-32-chars-long-for-security")
os.environ.setdefault("JWT_ALGORITHM", "HS256")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ["APP_ENV"] = "test"
os.environ.setdefault("JSON_LOGS", "false")
os.environ.pop("SMTP_HOST", None)

from datetime import timedelta
from typing import Optional

import httpx
import pytest
import pytest_asyncio

from api.main import create_app
from api.services.auth import issue_session_token
from core.security import hash_password
from core.utils.datetime import now
from database.engine import Database
from database.models.access_codes import AccessCode
from database.models.jobs import Job, JobStatus
from database.models.users import AccountStatus, OnboardingStatus, User, UserRole

DEFAULT_PASSWORD = "Password123!"


@pytest_asyncio.fixture
async def database(tmp_path):
    """File-backed SQLite database per test, so separate sessions really race."""
    db = Database(f"sqlite+aiosqlite:///{tmp_path / 'portal.db'}")
    await db.create_all()
    yield db
    await db.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with database.session() as session:
        yield session


@pytest.fixture
def make_user(db_session):
    """Factory persisting an account with a known password."""
    counter = {"n": 0}

    async def _make_user(
        role: UserRole = UserRole.SEEKER,
        email: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        first_login: bool = False,
        onboarding_status: OnboardingStatus = OnboardingStatus.COMPLETED,
        status: AccountStatus = AccountStatus.ACTIVE,
        resume_id: Optional[str] = None,
        is_super_admin: bool = False,
    ) -> User:
        counter["n"] += 1
        email = email or f"{role.value}{counter['n']}@example.com"
        user = User(
            username=email.split("@")[0],
            email=email,
            password_hash=hash_password(password),
            role=role,
            is_super_admin=is_super_admin,
            first_login=first_login,
            onboarding_status=onboarding_status,
            status=status,
            resume_id=resume_id,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_job(db_session):
    async def _make_job(poster: User, openings: int = 1, **overrides) -> Job:
        job = Job(
            title=overrides.pop("title", "Backend Engineer"),
            description=overrides.pop("description", "Build services"),
            company=overrides.pop("company", "Acme"),
            location=overrides.pop("location", "Pune"),
            number_of_openings=openings,
            status=overrides.pop(
                "status", JobStatus.ACTIVE if openings > 0 else JobStatus.CLOSED
            ),
            posted_by_id=poster.id,
            **overrides,
        )
        db_session.add(job)
        await db_session.commit()
        return job

    return _make_job


@pytest.fixture
def make_access_code(db_session):
    """Insert a code directly, bypassing issuance."""
    counter = {"n": 0}

    async def _make_access_code(
        issuer: User,
        candidate_email: str,
        expires_in: timedelta = timedelta(days=1),
    ) -> AccessCode:
        counter["n"] += 1
        code = AccessCode(
            code=f"TESTCD{counter['n']:02d}",
            candidate_email=candidate_email,
            expires_at=now() + expires_in,
            generated_by_id=issuer.id,
            generated_by_username=issuer.username,
        )
        db_session.add(code)
        await db_session.commit()
        return code

    return _make_access_code


@pytest.fixture
def auth_headers():
    """Bearer header for an account, minted without going through login."""

    def _auth_headers(user: User) -> dict:
        return {"Authorization": f"Bearer {issue_session_token(user)}"}

    return _auth_headers


@pytest.fixture
def app(database):
    return create_app(database=database, configure_logging=False)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
