"""Health check and service info endpoints."""

from fastapi import APIRouter

from common.config import config
from common.logging import get_logger

logger = get_logger(__name__)
router = APIRouter(tags=["health"])


@router.get("/")
async def root():
    """Root endpoint with basic info."""
    return {
        "service": "Freight Matching Engine",
        "version": "0.1.0",
        "status": "running",
        "description": "Carrier matching, quote pricing and invitation workflow for transport requests",
        "endpoints": {
            "health": "/health",
            "docs": "/docs",
            "quote": "/api/transport-requests/{id}/quote",
            "matching": "/api/transport-requests/{id}/matching",
            "invitations": "/api/transport-requests/{id}/invitations",
        },
    }


@router.get("/health")
async def health_check():
    """Liveness check including the configured job backend."""
    return {
        "status": "healthy",
        "service": "matching-engine",
        "environment": config.ENVIRONMENT,
        "job_backend": config.job_backend,
    }
