"""API routes."""

from paystub_engine.api.routes.health import router as health_router
from paystub_engine.api.routes.payroll_periods import router as payroll_periods_router
from paystub_engine.api.routes.paystubs import router as paystubs_router

__all__ = ["health_router", "payroll_periods_router", "paystubs_router"]
