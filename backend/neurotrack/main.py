"""NeuroTrack - Clinical Dashboard Backend

Main FastAPI application entry point.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram, make_asgi_app

from neurotrack.api.v1.router import api_router
from neurotrack.core.config import settings
from neurotrack.core.logging import get_logger, setup_logging

# Initialize logging
setup_logging(
    log_level="DEBUG" if settings.debug else "INFO",
    json_logs=settings.environment == "production",
)

logger = get_logger(__name__)

# Prometheus metrics
REQUEST_COUNT = Counter(
    "neurotrack_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status"],
)
REQUEST_LATENCY = Histogram(
    "neurotrack_request_latency_seconds",
    "HTTP request latency",
    ["method", "endpoint"],
)


def _safe_request_path(request: Request) -> str:
    """Return a route template path to avoid logging PHI in URLs."""
    route = request.scope.get("route")
    if route and hasattr(route, "path"):
        return route.path
    return request.url.path


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info(
        "Starting NeuroTrack",
        version=settings.app_version,
        environment=settings.environment,
    )

    from neurotrack.models.base import create_engine, create_session_maker
    from neurotrack.services.processing import build_orchestrator

    engine = create_engine(settings.database)
    session_maker = create_session_maker(engine)
    app.state.db_engine = engine
    app.state.db_session_maker = session_maker
    logger.info("Database connection pool initialized")

    http_client = httpx.AsyncClient(follow_redirects=True)
    app.state.http_client = http_client

    orchestrator = build_orchestrator(settings, session_maker, http_client)
    app.state.orchestrator = orchestrator
    app.state.store = orchestrator.store
    logger.info(
        "Scan processor ready",
        analysis_url=settings.analysis.base_url,
        batch_limit=settings.processor.batch_limit,
        transient_poll_failures=settings.processor.transient_poll_failures,
    )

    yield

    logger.info("Shutting down NeuroTrack")

    await http_client.aclose()
    await engine.dispose()
    logger.info("Database connections closed")

    logger.info("NeuroTrack shutdown complete")


def create_application() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title=settings.app_name,
        description="""
        NeuroTrack backend services for the clinical dashboard.

        ## Features

        - **MRI scan processing**: queued scans are analyzed by an external
          volumetric model and summarized into doctor records
        - **Trigger endpoint**: `/api/v1/cron/process-mri`, for schedulers or manual runs
        """,
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "X-Process-Time"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        """Log all incoming requests with timing."""
        import time
        import uuid

        request_id = str(uuid.uuid4())[:8]
        start_time = time.time()

        response = await call_next(request)
        process_time = time.time() - start_time
        safe_path = _safe_request_path(request)

        REQUEST_COUNT.labels(
            method=request.method,
            endpoint=safe_path,
            status=response.status_code,
        ).inc()
        REQUEST_LATENCY.labels(
            method=request.method,
            endpoint=safe_path,
        ).observe(process_time)

        response.headers["X-Request-ID"] = request_id
        response.headers["X-Process-Time"] = f"{process_time:.4f}"

        logger.info(
            "request_completed",
            request_id=request_id,
            method=request.method,
            path=safe_path,
            status_code=response.status_code,
            process_time=f"{process_time:.4f}s",
        )

        return response

    # Mount Prometheus metrics endpoint
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Health check endpoint for load balancers and monitoring."""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "environment": settings.environment,
        }

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle uncaught exceptions."""
        logger.error(
            "unhandled_exception",
            path=_safe_request_path(request),
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "message": str(exc) if settings.debug else "An unexpected error occurred",
            },
        )

    return app


# Create application instance
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "neurotrack.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        workers=1 if settings.debug else settings.workers,
        log_level="debug" if settings.debug else "info",
    )
