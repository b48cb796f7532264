"""
Health check endpoint.

GET /health: checks database and Redis connectivity.
Rules:
- Database failure → "unhealthy" (503); nothing works without it.
- Redis failure → "degraded" (200); OTP verification fails until it recovers.
- Redis not configured → "healthy"; in-process counting is the default.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError

from infrastructure.database import ping
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> JSONResponse:
    checks: dict[str, str] = {}
    overall = "healthy"

    try:
        await ping(request.app.state.engine)
        checks["database"] = "ok"
    except (SQLAlchemyError, OSError) as e:
        log.error("health_database_failed", error=str(e), error_type=type(e).__name__)
        checks["database"] = "error"
        overall = "unhealthy"

    redis = request.app.state.redis
    if redis is None:
        checks["redis"] = "not_configured"
    else:
        try:
            await redis.ping()
            checks["redis"] = "ok"
        except (RedisError, OSError) as e:
            log.warning("health_redis_failed", error=str(e), error_type=type(e).__name__)
            checks["redis"] = "error"
            if overall == "healthy":
                overall = "degraded"

    status_code = 503 if overall == "unhealthy" else 200
    return JSONResponse(
        status_code=status_code,
        content={"status": overall, "checks": checks},
    )
