"""
Health check endpoints for Kubernetes probes.

- GET /health/startup  : the application has started
- GET /health/liveness : process alive, version, uptime (no network calls)
- GET /health/ready    : database binding reachable (bounded ping)
"""
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from app.container import get_gateway
from app.core.errors import MentorError
from app.core.structured_logging import APP_VERSION, SERVICE_NAME, get_uptime_s
from app.services.relational_gateway import RelationalGateway

logger = logging.getLogger(__name__)

router = APIRouter()

PING_TIMEOUT = 2.0  # seconds


@router.get("/health/startup")
async def health_startup():
    return {"status": "started"}


@router.get("/health/liveness")
async def health_liveness():
    """Cheap health check: no network calls."""
    return {
        "status": "ok",
        "version": APP_VERSION,
        "service": SERVICE_NAME,
        "uptime_s": round(get_uptime_s(), 1),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health/ready")
async def health_ready(gateway: RelationalGateway = Depends(get_gateway)):
    """Ready when the database binding answers a ping."""
    start = time.perf_counter()
    try:
        await gateway.ping(timeout=PING_TIMEOUT)
    except MentorError as e:
        logger.warning("readiness_ping_failed", extra={"error.code": e.code, "error.message": e.detail})
        return JSONResponse(
            status_code=503,
            content={"status": "not_ready", "database": "down"},
        )
    return {
        "status": "ready",
        "database": "ok",
        "latency_ms": round((time.perf_counter() - start) * 1000, 1),
    }
