import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy import BigInteger, Integer, event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger(__name__)


# Base class for declarative models
class Base(DeclarativeBase):
    pass


# BIGINT ids; SQLite only autoincrements INTEGER PRIMARY KEY columns
PrimaryKey = BigInteger().with_variant(Integer(), "sqlite")


def enum_values(enum_cls) -> list[str]:
    """Persist enum values rather than member names."""
    return [member.value for member in enum_cls]


class Database:
    """
    Connection pool and session factory for one database.

    Built once at process start and passed to whoever needs sessions; there is
    no module-level engine.
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 20,
        max_overflow: int = 10,
        echo: bool = False,
    ):
        self.url = make_url(url)
        engine_kwargs: dict = {"echo": echo}

        if self.url.get_backend_name() == "sqlite":
            # Writers queue on the file lock instead of failing immediately
            engine_kwargs["connect_args"] = {"timeout": 30}
        else:
            engine_kwargs["pool_size"] = pool_size
            engine_kwargs["max_overflow"] = max_overflow
            engine_kwargs["pool_pre_ping"] = True

        logger.info(
            "Connecting to database at %s",
            self.url.render_as_string(hide_password=True),
        )
        self.engine: AsyncEngine = create_async_engine(self.url, **engine_kwargs)

        if self.url.get_backend_name() == "sqlite":
            event.listen(self.engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    @classmethod
    def from_settings(cls, settings) -> "Database":
        return cls(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            echo=settings.database_echo,
        )

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AsyncSession]:
        """Open a session; uncommitted work is rolled back on exit."""
        async with self.session_factory() as session:
            yield session

    async def create_all(self) -> None:
        """Create tables for every imported model."""
        _register_models()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_all(self) -> None:
        _register_models()

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)

    async def dispose(self) -> None:
        """Close database engine and connections."""
        await self.engine.dispose()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _register_models() -> None:
    # Importing the model modules attaches their tables to Base.metadata
    from database.models import access_codes, applications, jobs, users  # noqa: F401
