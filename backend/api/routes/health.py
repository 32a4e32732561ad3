"""Health check endpoint."""

import logging
from typing import Any

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text

from app.resources import Resources
from app.dependencies import get_resources

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", response_model=dict[str, Any])
async def health_check(resources: Resources = Depends(get_resources)):
    """
    Ping the database and the run queue backend.
    Returns 503 if either is unreachable.
    """
    checks: dict[str, str] = {}

    try:
        async with resources.db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception as e:
        logger.error("Database health check failed: %s", e)
        checks["database"] = "unavailable"

    if resources.redis_client is not None:
        try:
            await resources.redis_client.ping()
            checks["queue"] = "ok"
        except Exception as e:
            logger.error("Redis health check failed: %s", e)
            checks["queue"] = "unavailable"
    else:
        checks["queue"] = "ok"

    healthy = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={"status": "ok" if healthy else "degraded", "checks": checks},
    )
