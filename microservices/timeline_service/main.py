"""
Timeline Service Main Application

FastAPI application for project and campaign rescheduling.
Port: 8260
"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, HTTPException, Depends, Request, status
from fastapi.responses import JSONResponse

from core.config import get_settings, setup_logging

from . import __version__
from .factory import TimelineServiceFactory
from .models import (
    Actor,
    CascadeResult,
    HealthResponse,
    LivenessResponse,
    ReadinessResponse,
    RescheduleRequest,
    ShiftPreview,
    ShiftPreviewRequest,
    SyncStatus,
)
from .protocols import (
    CampaignNotFoundError,
    OrganizationScopeError,
    ProjectNotFoundError,
    TimelineStoreError,
    TimelineValidationError,
)
from .timeline_service import TimelineService

settings = get_settings()
setup_logging(settings.logging)
logger = logging.getLogger(__name__)

# Service configuration
SERVICE_NAME = settings.service.service_name
SERVICE_PORT = settings.service.service_port
SERVICE_VERSION = __version__

# Track startup time for uptime calculation
startup_time = time.time()

# Global factory instance
factory: Optional[TimelineServiceFactory] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    global factory

    logger.info(f"Starting {SERVICE_NAME} on port {SERVICE_PORT}")

    factory = TimelineServiceFactory(settings)
    await factory.initialize()

    yield

    logger.info(f"Shutting down {SERVICE_NAME}")
    await factory.close()
    factory = None


# Create FastAPI application
app = FastAPI(
    title="Timeline Service",
    description="Reschedules projects and campaigns and cascades the date change to their children",
    version=SERVICE_VERSION,
    lifespan=lifespan,
)


# ====================
# Exception Handlers
# ====================


@app.exception_handler(ProjectNotFoundError)
async def project_not_found_handler(request: Request, exc: ProjectNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(CampaignNotFoundError)
async def campaign_not_found_handler(request: Request, exc: CampaignNotFoundError):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.exception_handler(TimelineValidationError)
async def validation_error_handler(request: Request, exc: TimelineValidationError):
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": str(exc), "field": exc.field},
    )


@app.exception_handler(OrganizationScopeError)
async def scope_error_handler(request: Request, exc: OrganizationScopeError):
    return JSONResponse(
        status_code=status.HTTP_403_FORBIDDEN,
        content={"detail": str(exc)},
    )


@app.exception_handler(TimelineStoreError)
async def store_error_handler(request: Request, exc: TimelineStoreError):
    return JSONResponse(
        status_code=status.HTTP_502_BAD_GATEWAY,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler"""
    logger.exception(f"Unhandled exception: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": str(exc), "type": type(exc).__name__},
    )


# ====================
# Dependencies
# ====================


def get_service() -> TimelineService:
    """Get timeline service from factory"""
    if not factory:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service not initialized",
        )
    return factory.service


def get_actor(request: Request) -> Actor:
    """Extract the acting user and organization from gateway headers"""
    organization_id = request.headers.get("X-Organization-ID")
    if not organization_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Organization-ID header is required",
        )
    return Actor(
        user_id=request.headers.get("X-User-ID", "system"),
        organization_id=organization_id,
    )


# ====================
# Health Endpoints
# ====================


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """Health check endpoint"""
    dependencies = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            dependencies["postgres"] = "healthy" if db_healthy else "unhealthy"
        except Exception:
            dependencies["postgres"] = "unhealthy"

        if factory.nats_client:
            dependencies["nats"] = "healthy" if factory.nats_client.is_connected else "unhealthy"
        else:
            dependencies["nats"] = "not_configured"

    return HealthResponse(
        status="healthy",
        service=SERVICE_NAME,
        port=SERVICE_PORT,
        version=SERVICE_VERSION,
        dependencies=dependencies,
    )


@app.get("/health/ready", response_model=ReadinessResponse, tags=["Health"])
async def readiness_check():
    """Readiness check endpoint"""
    checks = {}
    details = {}

    if factory:
        try:
            db_healthy = await factory.repository.health_check()
            checks["database"] = db_healthy
            details["database"] = "Connected" if db_healthy else "Connection failed"
        except Exception as e:
            checks["database"] = False
            details["database"] = str(e)

        if factory.nats_client:
            checks["nats"] = factory.nats_client.is_connected
            details["nats"] = "Connected" if factory.nats_client.is_connected else "Disconnected"
        else:
            checks["nats"] = True  # Optional
            details["nats"] = "Not configured (optional)"
    else:
        checks["factory"] = False
        details["factory"] = "Factory not initialized"

    ready = all(checks.get(k, False) for k in ["database"])

    return ReadinessResponse(
        ready=ready,
        checks=checks,
        details=details,
    )


@app.get("/health/live", response_model=LivenessResponse, tags=["Health"])
async def liveness_check():
    """Liveness check endpoint"""
    return LivenessResponse(
        alive=True,
        uptime_seconds=time.time() - startup_time,
    )


# ====================
# Campaign Timeline Endpoints
# ====================


@app.post(
    "/api/v1/timeline/campaigns/{campaign_id}/preview",
    response_model=ShiftPreview,
    tags=["Campaigns"],
)
async def preview_campaign_shift(
    campaign_id: str,
    request: ShiftPreviewRequest,
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """Preview which tasks a campaign move would shift"""
    return await service.preview_campaign_shift(actor, campaign_id, request.new_start_date)


@app.post(
    "/api/v1/timeline/campaigns/{campaign_id}/reschedule",
    response_model=CascadeResult,
    tags=["Campaigns"],
)
async def reschedule_campaign(
    campaign_id: str,
    request: RescheduleRequest,
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """
    Move a campaign and cascade the shift to its tasks.

    Tasks without a due date are left untouched. A partial result lists the
    tasks whose write failed.
    """
    return await service.reschedule_campaign(
        actor,
        campaign_id,
        request.new_start_date,
        new_end=request.new_end_date,
        clamp=request.clamp,
    )


# ====================
# Project Timeline Endpoints
# ====================


@app.post(
    "/api/v1/timeline/projects/{project_id}/preview",
    response_model=ShiftPreview,
    tags=["Projects"],
)
async def preview_project_shift(
    project_id: str,
    request: ShiftPreviewRequest,
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """Preview which campaigns a project move would shift"""
    return await service.preview_project_shift(actor, project_id, request.new_start_date)


@app.post(
    "/api/v1/timeline/projects/{project_id}/reschedule",
    response_model=CascadeResult,
    tags=["Projects"],
)
async def reschedule_project(
    project_id: str,
    request: RescheduleRequest,
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """Move a project and cascade the shift to its campaigns and their tasks"""
    return await service.reschedule_project(
        actor,
        project_id,
        request.new_start_date,
        new_end=request.new_end_date,
        clamp=request.clamp,
    )


# ====================
# Change Feed Sync Endpoints
# ====================


@app.get("/api/v1/timeline/sync", response_model=SyncStatus, tags=["Sync"])
async def get_sync_status(
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """Which organization the service follows, and the size of its state"""
    current = service.sync_status()
    if current.organization_id not in (None, actor.organization_id):
        return SyncStatus(syncing=current.syncing)
    return current


@app.post("/api/v1/timeline/sync", response_model=SyncStatus, tags=["Sync"])
async def start_sync(
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """Follow the caller's organization through the store's change feed"""
    return await service.sync_organization(actor)


@app.delete("/api/v1/timeline/sync", response_model=SyncStatus, tags=["Sync"])
async def stop_sync(
    service: TimelineService = Depends(get_service),
    actor: Actor = Depends(get_actor),
):
    """Stop following the caller's organization"""
    return await service.unsync_organization(actor)


# ====================
# Main Entry Point
# ====================


def main():
    """Run the service"""
    import uvicorn

    uvicorn.run(
        "microservices.timeline_service.main:app",
        host=settings.service.service_host,
        port=SERVICE_PORT,
        log_level=settings.logging.log_level.lower(),
    )


if __name__ == "__main__":
    main()
