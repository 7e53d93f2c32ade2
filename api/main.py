"""
FastAPI application initialization and configuration.
"""

from contextlib import asynccontextmanager
from typing import Optional
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import settings
from database.engine import Database
from api.routes import health
from api.routes.v1 import (
    access_codes,
    applications,
    auth,
    jobs,
    seeker,
    users,
)
from core.middleware import (
    AuthenticationMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifespan events."""
    logger.info("Starting %s in %s environment", settings.app_name, settings.app_env)

    owns_database = getattr(app.state, "database", None) is None
    if owns_database:
        app.state.database = Database.from_settings(settings)
    await app.state.database.create_all()

    yield

    logger.info("Shutting down %s", settings.app_name)
    if owns_database:
        await app.state.database.dispose()


def create_app(
    database: Optional[Database] = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the application.

    Args:
        database: Pool to serve requests from; built from settings at startup
            when omitted
        configure_logging: Install the root log handler
    """
    if configure_logging:
        setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)

    app = FastAPI(
        title=settings.app_name,
        description="Job portal with referral-gated access and application tracking",
        version="0.1.0",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    if database is not None:
        app.state.database = database

    setup_error_handlers(app, debug=settings.debug)

    # Middleware executes in reverse order of registration
    app.add_middleware(
        AuthenticationMiddleware,
        jwt_secret=settings.jwt_secret_key,
        jwt_algorithm=settings.jwt_algorithm,
    )
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(health.router, prefix=settings.api_v1_prefix, tags=["Health"])

    for router in (
        auth.router,
        access_codes.router,
        users.router,
        seeker.router,
        jobs.router,
        applications.router,
    ):
        app.include_router(router, prefix=settings.api_v1_prefix)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
