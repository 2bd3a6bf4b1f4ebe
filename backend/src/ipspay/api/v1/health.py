"""Health check endpoints for Kubernetes liveness and readiness probes."""
from datetime import datetime

import structlog
from fastapi import APIRouter, status
from fastapi.responses import JSONResponse
from redis import asyncio as aioredis
from sqlalchemy import text

from ipspay.config import settings
from ipspay.database import engine

logger = structlog.get_logger(__name__)

router = APIRouter()


@router.get("/health", status_code=status.HTTP_200_OK, tags=["Health"])
async def health_check() -> dict[str, str]:
    """
    Liveness probe for Kubernetes.

    Does not check external dependencies.

    Returns:
        dict: Health status with timestamp
    """
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "version": "0.1.0",
    }


@router.get("/health/ready", tags=["Health"])
async def readiness_check() -> JSONResponse:
    """
    Readiness probe for Kubernetes.

    Returns 200 only if the database and Redis both answer.

    Returns:
        JSONResponse: Readiness status with dependency checks
    """
    checks = {
        "database": "unknown",
        "redis": "unknown",
    }
    ready = True

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "connected"
    except Exception as exc:
        logger.error("database_health_check_failed", error=str(exc))
        checks["database"] = "disconnected"
        ready = False

    # Redis backs the settings cache and the ARQ sweep queue
    try:
        redis_client = aioredis.from_url(str(settings.redis_url), encoding="utf-8", decode_responses=True)
        await redis_client.ping()
        checks["redis"] = "connected"
        await redis_client.aclose()
    except Exception as exc:
        logger.error("redis_health_check_failed", error=str(exc))
        checks["redis"] = "disconnected"
        ready = False

    status_code = status.HTTP_200_OK if ready else status.HTTP_503_SERVICE_UNAVAILABLE

    return JSONResponse(
        status_code=status_code,
        content={
            "ready": ready,
            "checks": checks,
            "timestamp": datetime.utcnow().isoformat(),
        },
    )
