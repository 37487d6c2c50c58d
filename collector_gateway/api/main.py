"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from collector_gateway.api.middleware import RequestIDMiddleware, MetricsMiddleware
from collector_gateway.api.v1 import routes, payments, clients, reports
from collector_gateway.infrastructure.observability.logging import setup_logging
from collector_gateway.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Collector Gateway",
        description="Daily collection routes, payment ledger and role-scoped access",
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
    app.include_router(routes.router, prefix="/v1", tags=["routes"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(clients.router, prefix="/v1", tags=["clients"])
    app.include_router(reports.router, prefix="/v1", tags=["reports"])

    return app


app = create_app()
