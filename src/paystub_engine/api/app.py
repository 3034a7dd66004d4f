"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from paystub_engine.api.routes import health_router, payroll_periods_router, paystubs_router
from paystub_engine.config import Settings, get_settings
from paystub_engine.database import dispose_db, init_db
from paystub_engine.errors import (
    AccessDeniedError,
    CollaboratorError,
    CollaboratorTimeoutError,
    ConfigurationError,
    ConflictError,
    InvalidInputError,
    NotFoundError,
    PayrollError,
    StoreError,
)
from paystub_engine.events import EventEmitter
from paystub_engine.services.collaborators import (
    Collaborators,
    InMemoryDirectory,
    in_memory_collaborators,
)
from paystub_engine.services.locking_service import PeriodLockRegistry
from paystub_engine.services.period_service import PayrollPeriodService

logger = logging.getLogger(__name__)

# Most specific first
ERROR_STATUS: list[tuple[type[PayrollError], int]] = [
    (InvalidInputError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (ConfigurationError, status.HTTP_400_BAD_REQUEST),
    (ConflictError, status.HTTP_409_CONFLICT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AccessDeniedError, status.HTTP_403_FORBIDDEN),
    (CollaboratorTimeoutError, status.HTTP_504_GATEWAY_TIMEOUT),
    (CollaboratorError, status.HTTP_502_BAD_GATEWAY),
    (StoreError, status.HTTP_500_INTERNAL_SERVER_ERROR),
]


def status_for(exc: PayrollError) -> int:
    for error_type, status_code in ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    collaborators: Collaborators | None = None,
    emitter: EventEmitter | None = None,
    registry: PeriodLockRegistry | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Without an explicit session factory the global engine from
    ``DATABASE_URL`` is used and disposed on shutdown.
    """
    settings = settings or get_settings()
    owns_engine = session_factory is None

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Application lifespan handler."""
        yield
        if owns_engine:
            await dispose_db()

    app = FastAPI(
        title="Payroll Period API",
        description="Payroll period processing and pay stub calculation",
        version="0.1.0",
        lifespan=lifespan,
    )

    if session_factory is None:
        _, session_factory = init_db()
    if collaborators is None:
        logger.warning("No payroll collaborators configured; using an empty directory")
        collaborators = in_memory_collaborators(InMemoryDirectory(), None)

    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.period_service = PayrollPeriodService(
        session_factory,
        collaborators,
        settings=settings,
        emitter=emitter,
        registry=registry,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(PayrollError)
    async def payroll_error_handler(request: Request, exc: PayrollError) -> JSONResponse:
        """Translate domain errors into HTTP responses."""
        status_code = status_for(exc)
        if status_code >= 500:
            logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status_code,
            content={
                "detail": exc.message,
                "code": exc.code,
                "context": exc.details or None,
            },
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(payroll_periods_router, prefix="/api/v1")
    app.include_router(paystubs_router, prefix="/api/v1")

    return app
