"""
Health Check API
System health and readiness endpoints
"""
from fastapi import APIRouter
from pydantic import BaseModel

from ..config import get_settings

router = APIRouter()

VERSION = "0.1.0"


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    app_name: str
    app_env: str
    version: str


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Check application health status."""
    settings = get_settings()

    return HealthResponse(
        status="healthy",
        app_name=settings.app_name,
        app_env=settings.app_env,
        version=VERSION,
    )


@router.get("/ready")
async def readiness_check():
    """
    Kubernetes readiness check.
    The analysis engine has no external dependencies to wait for.
    """
    return {"ready": True}


@router.get("/live")
async def liveness_check():
    """
    Kubernetes liveness check.
    Returns 200 if application is alive.
    """
    return {"alive": True}
