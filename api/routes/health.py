"""
Health Check Endpoints
======================

API health check endpoints for monitoring and Kubernetes probes.
"""

import logging
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Dict, Optional

import psutil
from fastapi import APIRouter, HTTPException, Request, status
from pydantic import BaseModel, Field


# Set up module logger
logger = logging.getLogger(__name__)

router = APIRouter()


class ServiceStatus(str, Enum):
    """Service health status enumeration."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ServiceCheckResult(BaseModel):
    """Result of an individual service health check."""
    status: ServiceStatus = Field(description="Service health status")
    message: Optional[str] = Field(None, description="Status message or error details")
    latency_ms: Optional[float] = Field(None, description="Check latency in milliseconds")


class SystemMetrics(BaseModel):
    """System resource metrics."""
    cpu_percent: float = Field(description="CPU usage percentage")
    memory_percent: float = Field(description="Memory usage percentage")
    memory_available_mb: float = Field(description="Available memory in MB")
    disk_usage_percent: float = Field(description="Disk usage percentage")


class HealthCheckResponse(BaseModel):
    """Comprehensive health check response."""
    status: ServiceStatus = Field(description="Overall health status")
    timestamp: str = Field(description="ISO 8601 timestamp of the health check")
    services: Dict[str, ServiceCheckResult] = Field(description="Individual service statuses")
    system_metrics: SystemMetrics = Field(description="System resource metrics")


class ProbeResponse(BaseModel):
    """Kubernetes readiness/liveness probe response."""
    status: str = Field(description="Probe status")
    timestamp: str = Field(description="ISO 8601 timestamp")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def check_database(request: Request) -> ServiceCheckResult:
    """Ping the user store and report latency."""
    storage = getattr(request.app.state, "storage", None)
    if storage is None:
        return ServiceCheckResult(status=ServiceStatus.UNHEALTHY, message="Storage not initialized")

    start_time = time.perf_counter()
    if not await storage.users.ping():
        return ServiceCheckResult(status=ServiceStatus.UNHEALTHY, message="Database ping failed")

    settings = request.app.state.settings
    return ServiceCheckResult(
        status=ServiceStatus.HEALTHY if settings.storage_backend == "mongo" else ServiceStatus.DEGRADED,
        message="Connected" if settings.storage_backend == "mongo" else "Using in-memory storage",
        latency_ms=round((time.perf_counter() - start_time) * 1000, 2),
    )


def get_system_metrics() -> SystemMetrics:
    """Gather CPU, memory and disk usage. Zeros are reported if psutil fails."""
    try:
        memory = psutil.virtual_memory()
        disk = psutil.disk_usage('/')
        return SystemMetrics(
            cpu_percent=round(psutil.cpu_percent(interval=None), 2),
            memory_percent=round(memory.percent, 2),
            memory_available_mb=round(memory.available / (1024 * 1024), 2),
            disk_usage_percent=round(disk.percent, 2),
        )
    except (psutil.Error, OSError) as e:
        logger.error(f"Failed to gather system metrics: {e}")
        return SystemMetrics(
            cpu_percent=0.0,
            memory_percent=0.0,
            memory_available_mb=0.0,
            disk_usage_percent=0.0,
        )


@router.get("/health", response_model=HealthCheckResponse, summary="Comprehensive health check")
async def health_check(request: Request) -> HealthCheckResponse:
    """
    Check the database and report system metrics.

    Always returns HTTP 200; use the ``status`` field to judge health.
    """
    services = {
        "api": ServiceCheckResult(status=ServiceStatus.HEALTHY, message="API is running"),
        "database": await check_database(request),
    }

    if any(s.status == ServiceStatus.UNHEALTHY for s in services.values()):
        overall = ServiceStatus.UNHEALTHY
    elif any(s.status == ServiceStatus.DEGRADED for s in services.values()):
        overall = ServiceStatus.DEGRADED
    else:
        overall = ServiceStatus.HEALTHY

    if overall != ServiceStatus.HEALTHY:
        logger.warning(f"Health check: {overall.value}")

    return HealthCheckResponse(
        status=overall,
        timestamp=_now(),
        services=services,
        system_metrics=get_system_metrics(),
    )


@router.get("/health/ready", response_model=ProbeResponse, summary="Kubernetes readiness probe")
async def readiness_probe(request: Request) -> ProbeResponse:
    """HTTP 200 when the database answers, 503 otherwise."""
    result = await check_database(request)
    if result.status == ServiceStatus.UNHEALTHY:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Not ready: {result.message}"
        )
    return ProbeResponse(status="ready", timestamp=_now())


@router.get("/health/live", response_model=ProbeResponse, summary="Kubernetes liveness probe")
async def liveness_probe() -> ProbeResponse:
    """Confirms the process can respond; does not check dependencies."""
    return ProbeResponse(status="alive", timestamp=_now())
