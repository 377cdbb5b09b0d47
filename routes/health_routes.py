"""
GET /health: store reachability for load balancers and uptime probes.

MongoDB holds challenges, counters and accounts, so losing it is "unhealthy"
(503). Redis only backs the issuance limiter: unset is still "healthy", set
but unreachable is "degraded" (200).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_db, get_redis
from schemas.dto.responses.common import HealthResponse
from shared.logging import get_logger

router = APIRouter(tags=["health"])
log = get_logger(__name__)


async def _check_mongo(db) -> str:
    try:
        await db.client.admin.command("ping")
    except Exception as e:
        log.error("health_mongo_failed", error=str(e), error_type=type(e).__name__)
        return "error"
    return "ok"


async def _check_redis(redis) -> str:
    if redis is None:
        return "not_configured"
    try:
        await redis.ping()
    except Exception as e:
        log.warning("health_redis_failed", error=str(e), error_type=type(e).__name__)
        return "error"
    return "ok"


@router.get(
    "/health",
    response_model=HealthResponse,
    responses={503: {"model": HealthResponse}},
)
async def health_check(db=Depends(get_db), redis=Depends(get_redis)) -> JSONResponse:
    checks = {"mongodb": await _check_mongo(db), "redis": await _check_redis(redis)}

    if checks["mongodb"] == "error":
        status = "unhealthy"
    elif checks["redis"] == "error":
        status = "degraded"
    else:
        status = "healthy"

    body = HealthResponse(status=status, checks=checks)
    return JSONResponse(
        status_code=503 if status == "unhealthy" else 200,
        content=body.model_dump(),
    )
