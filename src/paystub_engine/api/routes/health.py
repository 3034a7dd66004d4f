"""Health, readiness and liveness endpoints."""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from paystub_engine.api.dependencies import DbSession, PeriodService
from paystub_engine.errors import PayrollError
from paystub_engine.services.period_service import PayrollPeriodService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    timestamp: datetime
    database: str
    payroll_config: str
    engine_version: str


async def _database_status(db: AsyncSession) -> str:
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        return "unhealthy"
    return "healthy"


async def _config_status(service: PayrollPeriodService) -> str:
    try:
        await service.active_payroll_config()
    except PayrollError as e:
        logger.warning("Payroll configuration unavailable: %s", e.message)
        return "unavailable"
    return "configured"


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, service: PeriodService) -> HealthResponse:
    """Database and Settings Provider state."""
    db_status = await _database_status(db)
    config_status = await _config_status(service)

    return HealthResponse(
        status="healthy" if db_status == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=db_status,
        payroll_config=config_status,
        engine_version=service.engine.engine_version,
    )


@router.get("/ready")
async def readiness_check(service: PeriodService) -> JSONResponse:
    """Ready once an active payroll configuration can be resolved."""
    config_status = await _config_status(service)
    if config_status != "configured":
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"status": "not_ready", "payroll_config": config_status},
        )
    return JSONResponse(content={"status": "ready"})


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    """Liveness check for container orchestration."""
    return {"status": "alive"}
