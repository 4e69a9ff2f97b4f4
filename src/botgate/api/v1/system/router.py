"""System router providing health check and operational endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, Request
from redis.asyncio import Redis
from sqlalchemy import text

from botgate.api.deps import get_redis
from botgate.config import Settings, get_settings
from botgate.schemas.jsonapi import JSONAPIListResponse, JSONAPIResource, JSONAPISingleResponse
from botgate.services.dead_letters import list_dead_letters

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health", response_model=JSONAPISingleResponse)
async def health_check(request: Request) -> JSONAPISingleResponse:
    """Return system health status including database and Redis connectivity.

    Reports the overall status as ``healthy`` (all services up) or
    ``degraded`` (one or more services down).
    """
    db_ok = False
    try:
        session_factory = request.app.state.session_factory
        async with session_factory() as session:
            await session.execute(text("SELECT 1"))
        db_ok = True
    except Exception:
        logger.warning("Database health check failed", exc_info=True)

    redis_ok = False
    try:
        await request.app.state.redis.ping()
        redis_ok = True
    except Exception:
        logger.warning("Redis health check failed", exc_info=True)

    status = "healthy" if (db_ok and redis_ok) else "degraded"

    return JSONAPISingleResponse(
        data=JSONAPIResource(
            type="system-health",
            id="current",
            attributes={
                "status": status,
                "database": "connected" if db_ok else "disconnected",
                "redis": "connected" if redis_ok else "disconnected",
            },
        )
    )


@router.get("/dead-letters", response_model=JSONAPIListResponse)
async def dead_letters(
    limit: int = Query(default=50, ge=1, le=500),
    redis: Redis = Depends(get_redis),
    settings: Settings = Depends(get_settings),
) -> JSONAPIListResponse:
    """List jobs that exhausted their retries, newest first."""
    entries = await list_dead_letters(redis, settings.dead_letter_key, limit)
    return JSONAPIListResponse(
        data=[
            JSONAPIResource(
                type="dead-letters",
                id=str(entry.get("task_id") or index),
                attributes=entry,
            )
            for index, entry in enumerate(entries)
        ],
        meta={"count": len(entries)},
    )
