"""
Health check endpoints.
"""

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter

from reqai.core.config import settings
from reqai.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, Any]:
    """
    Basic health check endpoint.
    Returns application status.
    """
    return {
        "status": "healthy",
        "app": settings.app_name,
        "environment": settings.app_env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def readiness_check() -> dict[str, Any]:
    """
    Readiness check endpoint.

    Reports which integrations are configured. Missing ones only degrade
    behavior (fallback extraction, local replies, no Jira), so the app is
    ready as long as it is running.
    """
    checks = {
        "app": True,
        "extraction_tool": bool(settings.extraction.command),
        "llm": bool(settings.llm.api_key),
        "jira": bool(settings.jira.client_id and settings.jira.client_secret),
    }

    return {
        "status": "ready" if checks["app"] else "not_ready",
        "checks": checks,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/live")
async def liveness_check() -> dict[str, str]:
    """
    Liveness check endpoint.
    Simple check that the application is running.
    """
    return {"status": "alive"}
