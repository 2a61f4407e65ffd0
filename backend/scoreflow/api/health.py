"""Health check and metrics endpoints."""

import redis as redis_lib
from fastapi import APIRouter, Response
from prometheus_client import Counter, generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from scoreflow.config import settings
from scoreflow.database import async_session
from scoreflow.schemas.common import HealthResponse

router = APIRouter(tags=["health"])

# Prometheus metrics
LEAD_CAPTURES = Counter("lead_captures_total", "Lead capture outcomes", ["outcome"])
ENTITLEMENT_DENIALS = Counter("entitlement_denials_total", "Entitlement checks that were denied", ["resource", "tier"])
JOBS_PROCESSED = Counter("jobs_processed_total", "Background jobs processed", ["job", "status"])
WEBHOOK_DELIVERIES = Counter("webhook_deliveries_total", "Completion webhook deliveries", ["outcome"])
PORTAL_EMAILS = Counter("portal_emails_total", "Portal notification emails", ["status"])
ERRORS = Counter("errors_total", "Total errors", ["type"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    db_status = "ok"
    redis_status = "ok"

    try:
        async with async_session() as session:
            await session.execute(text("SELECT 1"))
    except (SQLAlchemyError, OSError):
        db_status = "error"

    try:
        r = redis_lib.from_url(settings.redis_url, socket_timeout=2)
        r.ping()
    except redis_lib.RedisError:
        redis_status = "error"

    overall = "healthy" if db_status == "ok" and redis_status == "ok" else "degraded"
    return HealthResponse(status=overall, db=db_status, redis=redis_status)


@router.get("/metrics")
async def metrics():
    """Prometheus metrics endpoint."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
