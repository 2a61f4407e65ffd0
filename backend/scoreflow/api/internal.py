"""Internal trigger endpoints - called by the assessment runtime with the service token."""

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException
from redis import RedisError
from sqlalchemy.orm import Session

from scoreflow.database import get_sync_db
from scoreflow.api.health import ERRORS
from scoreflow.middleware.auth import verify_service_token
from scoreflow.models import AuditLog
from scoreflow.schemas.common import JobAccepted
from scoreflow.services.queue import enqueue_scoring, enqueue_portal_notify
from scoreflow.services.scoring import validate_tier_bands
from scoreflow.store import SqlStore

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/internal", tags=["internal"])


@router.post("/leads/{lead_id}/score", response_model=JobAccepted, status_code=202)
def trigger_scoring(
    lead_id: uuid.UUID,
    caller: str = Depends(verify_service_token),
    db: Session = Depends(get_sync_db),
):
    """Queue scoring for a lead whose responses are all saved."""
    lead = SqlStore(db).get_lead(lead_id)
    if not lead:
        raise HTTPException(status_code=404, detail="Lead not found")

    try:
        job = enqueue_scoring(lead.id)
    except RedisError as e:
        ERRORS.labels(type="queue").inc()
        logger.error("failed_to_enqueue_scoring", lead_id=str(lead_id), error=str(e))
        raise HTTPException(status_code=503, detail="Scoring queue unavailable")

    logger.info("scoring_enqueued", lead_id=str(lead_id), job_id=job.id)
    return JobAccepted(job_id=job.id, message="Scoring queued")


@router.post("/assessments/{assessment_id}/publish", response_model=JobAccepted, status_code=202)
def publish_assessment(
    assessment_id: uuid.UUID,
    caller: str = Depends(verify_service_token),
    db: Session = Depends(get_sync_db),
):
    """Publish an assessment and queue the client portal announcement."""
    store = SqlStore(db)
    assessment = store.get_assessment(assessment_id)
    if not assessment:
        raise HTTPException(status_code=404, detail="Assessment not found")
    if assessment.status == "published":
        return JobAccepted(message="Already published")

    problems = validate_tier_bands(store.list_score_tiers(assessment.id))
    if problems:
        raise HTTPException(status_code=422, detail={"tier_bands": problems})

    store.publish_assessment(assessment, published_at=datetime.utcnow())
    store.add_audit_log(AuditLog(
        id=uuid.uuid4(),
        org_id=assessment.org_id,
        action="assessment_published",
        actor=caller,
        resource_type="assessment",
        resource_id=str(assessment.id),
        summary=f"Published '{assessment.title}'",
        timestamp=datetime.utcnow(),
    ))

    job_id = None
    try:
        job_id = enqueue_portal_notify(assessment.id).id
    except RedisError as e:
        # Publishing stands; only the announcement is lost
        ERRORS.labels(type="queue").inc()
        logger.error("failed_to_enqueue_portal_notify", assessment_id=str(assessment_id), error=str(e))

    logger.info("assessment_published", assessment_id=str(assessment_id), org_id=str(assessment.org_id))
    return JobAccepted(job_id=job_id, message="Published")
