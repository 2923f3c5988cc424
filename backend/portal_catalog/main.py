"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from portal_catalog.api.v1 import api_router
from portal_catalog.core.config import get_settings
from portal_catalog.core.logging import configure_logging
from portal_catalog.schemas.common import HealthResponse
from portal_catalog.services.cache import close_cache
from portal_catalog.services.exceptions import (
    JobAlreadyRunningError,
    NotFoundError,
    ServiceError,
)
from portal_catalog.services.job_runner import get_job_runner
from portal_catalog.services.jobs import JobContext
from portal_catalog.services.portal_client import PortalServiceError
from portal_catalog.services.scheduler import build_scheduler

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown events."""
    # Startup
    # Note: In production, use Alembic migrations instead of init_db
    configure_logging(settings.log_level)
    runner = get_job_runner()
    scheduler = None
    if settings.scheduler.enabled:
        scheduler = build_scheduler(settings.scheduler, runner, JobContext())
        scheduler.start()
        logger.info("Scheduler started")
    yield
    # Shutdown
    if scheduler is not None:
        scheduler.shutdown(wait=False)
    await runner.shutdown()
    await close_cache()


app = FastAPI(
    title=settings.app_name,
    description="Catalog and on-demand data access for an open-data portal",
    version=settings.app_version,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)

# CORS middleware - configurable via settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Global exception handlers for service layer exceptions
@app.exception_handler(NotFoundError)
async def not_found_exception_handler(request: Request, exc: NotFoundError):
    """Convert NotFoundError to 404 response."""
    return JSONResponse(status_code=404, content={"detail": exc.message})


@app.exception_handler(JobAlreadyRunningError)
async def job_running_exception_handler(request: Request, exc: JobAlreadyRunningError):
    """Convert JobAlreadyRunningError to 409 response."""
    return JSONResponse(status_code=409, content={"detail": exc.message})


@app.exception_handler(ServiceError)
async def service_exception_handler(request: Request, exc: ServiceError):
    """Convert generic ServiceError to 500 response."""
    return JSONResponse(status_code=500, content={"detail": exc.message})


@app.exception_handler(PortalServiceError)
async def portal_exception_handler(request: Request, exc: PortalServiceError):
    """Convert upstream portal failures to 502 response."""
    logger.error(f"Portal request failed: {exc}")
    return JSONResponse(status_code=502, content={"detail": "The data portal could not be reached"})


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint."""
    return HealthResponse(status="healthy", app=settings.app_name, version=settings.app_version)


@app.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information."""
    return {
        "app": settings.app_name,
        "version": settings.app_version,
        "docs": "/docs",
        "api": settings.api_v1_prefix,
    }


# Include API v1 router
app.include_router(api_router, prefix=settings.api_v1_prefix)
