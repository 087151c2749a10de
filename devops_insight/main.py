"""Main FastAPI application."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import time

from devops_insight.api import api_router
from devops_insight.clients.ollama import close_ollama_client
from devops_insight.core.config import get_settings
from devops_insight.core.error_handling import ConfigurationError, ProjectNotFoundError
from devops_insight.core.logging import setup_logging, get_logger
from devops_insight.db.session import init_db, close_db, create_tables
from devops_insight.monitoring.metrics import get_metrics_collector, metrics_endpoint

# Setup logging
setup_logging()
logger = get_logger(__name__)

# Get settings
settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("application_starting", app_name=settings.app_name, version=settings.app_version)

    init_db()
    if settings.is_sqlite or settings.is_development:
        await create_tables()
        logger.info("database_tables_created")

    yield

    logger.info("application_shutting_down")

    await close_ollama_client()
    await close_db()

    logger.info("application_shutdown_complete")


# Create FastAPI app
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="Predictive health checks from application log signals",
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
    lifespan=lifespan,
)

# CORS middleware
if settings.cors_enabled:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=settings.cors_methods,
        allow_headers=settings.cors_headers,
    )


# Request logging middleware
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log all requests and collect metrics."""
    start_time = time.time()

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        "http_request",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration=f"{duration:.3f}s",
    )

    metrics = get_metrics_collector()
    metrics.record_api_request(request.method, request.url.path, response.status_code)

    return response


@app.exception_handler(ConfigurationError)
async def configuration_exception_handler(request: Request, exc: ConfigurationError):
    """Reject unknown or disabled projects."""
    status_code = 404 if isinstance(exc, ProjectNotFoundError) else 400

    logger.warning(
        "project_rejected",
        path=request.url.path,
        project_id=exc.project_id,
        reason=exc.reason,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "status_code": status_code,
            "message": exc.reason,
            "errors": [str(exc)],
        },
    )


# Exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Global exception handler."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        exc_info=True,
    )

    return JSONResponse(
        status_code=500,
        content={
            "status_code": 500,
            "message": "Internal server error",
            "errors": [str(exc)] if settings.debug else ["An unexpected error occurred"],
        },
    )


# Include routers
app.include_router(api_router)

# Metrics endpoint
app.get(settings.metrics_path)(metrics_endpoint)


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "service": settings.app_name,
        "version": settings.app_version,
        "status": "running",
        "environment": settings.environment,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "devops_insight.main:app",
        host=settings.host,
        port=settings.port,
        workers=settings.workers,
        log_level=settings.log_level.lower(),
        reload=settings.is_development,
    )
