"""FastAPI application factory"""

from contextlib import asynccontextmanager
from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from kyc_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from kyc_gateway.api.v1 import verification, alerts, audit, tenants
from kyc_gateway.infrastructure.database.session import create_tables
from kyc_gateway.infrastructure.observability.logging import setup_logging
from kyc_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.create_tables_on_startup:
        create_tables()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="KYC Verification Gateway",
        description="Multi-signal identity verification, risk decisioning, and audit service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(verification.router, prefix="/v1", tags=["verifications"])
    app.include_router(alerts.router, prefix="/v1", tags=["alerts"])
    app.include_router(audit.router, prefix="/v1", tags=["audit"])
    app.include_router(tenants.router, prefix="/v1", tags=["tenants"])

    return app


app = create_app()
