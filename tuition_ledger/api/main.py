"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from tuition_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from tuition_ledger.api.v1 import balances, calendar, charges, fee_schedule, installments, payments, reports
from tuition_ledger.infrastructure.observability.logging import setup_logging
from tuition_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Tuition Ledger",
        description="Tuition billing and ledger reconciliation service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(calendar.router, prefix="/v1", tags=["calendar"])
    app.include_router(fee_schedule.router, prefix="/v1", tags=["fee-schedule"])
    app.include_router(charges.router, prefix="/v1", tags=["charges"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(installments.router, prefix="/v1", tags=["installment-plans"])
    app.include_router(balances.router, prefix="/v1", tags=["balances"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
