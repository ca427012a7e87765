"""
Health check endpoints.

- /health: liveness, 200 while the process runs
- /ready: readiness, 503 until the snapshot store (and Redis, if used) answers
"""

import logging
from datetime import datetime, timezone

from fastapi import APIRouter
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

# Service references (set during app initialization)
_redis_client = None
_store = None


def set_health_dependencies(redis_client=None, store=None):
    """Set dependencies for health checks. Call with no arguments on shutdown."""
    global _redis_client, _store
    _redis_client = redis_client
    _store = store


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _check_store() -> dict:
    if _store is None:
        return {"status": "error", "message": "not initialized"}
    return {"status": "ok", "backend": type(_store).__name__}


async def _check_redis() -> dict:
    if _redis_client is None:
        return {"status": "not_configured"}
    try:
        await _redis_client.ping()
    except Exception as e:
        logger.warning(f"Redis health check failed: {e}")
        return {"status": "error", "message": str(e)}
    return {"status": "ok"}


@router.get("/health")
async def health_check():
    """Liveness check."""
    return {"status": "ok", "timestamp": _now()}


@router.get("/ready")
async def readiness_check():
    """Readiness check: is a snapshot store installed and reachable?"""
    checks = {
        "store": _check_store(),
        "redis": await _check_redis(),
    }
    healthy = all(check["status"] != "error" for check in checks.values())
    return JSONResponse(
        status_code=200 if healthy else 503,
        content={
            "status": "ok" if healthy else "degraded",
            "checks": checks,
            "timestamp": _now(),
        },
    )
