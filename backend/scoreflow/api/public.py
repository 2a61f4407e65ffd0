"""Public lead capture endpoint, called by the hosted assessment form."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from scoreflow.database import get_sync_db
from scoreflow.api.health import LEAD_CAPTURES, ENTITLEMENT_DENIALS, ERRORS
from scoreflow.schemas.lead import LeadSubmission, LeadCaptureResponse
from scoreflow.services.lead_capture import (
    LeadCaptureCoordinator, LeadCaptureError, LeadDetails,
    AlreadyCompleted, Created, Resumed, QuotaExceeded,
)
from scoreflow.store import SqlStore

import structlog

logger = structlog.get_logger()
router = APIRouter(prefix="/public", tags=["public"])


def _respond(status_code: int, body: LeadCaptureResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(mode="json"))


@router.post("/assessments/{assessment_id}/leads", response_model=LeadCaptureResponse)
def capture_lead(
    assessment_id: uuid.UUID,
    payload: LeadSubmission,
    db: Session = Depends(get_sync_db),
):
    """Start (or resume) a respondent's attempt at a published assessment."""
    store = SqlStore(db)
    assessment = store.get_assessment(assessment_id)
    if not assessment or assessment.status != "published":
        raise HTTPException(status_code=404, detail="Assessment not found")

    details = LeadDetails(
        email=payload.email,
        first_name=payload.first_name,
        last_name=payload.last_name,
        company=payload.company,
        phone=payload.phone,
        consent=payload.consent,
        source=payload.source,
        utm=payload.utm(),
    )

    try:
        outcome = LeadCaptureCoordinator(store).capture(assessment, details)
    except LeadCaptureError as e:
        ERRORS.labels(type="lead_capture").inc()
        logger.error("lead_capture_unavailable", assessment_id=str(assessment_id), error=e.reason)
        raise HTTPException(status_code=503, detail="Could not save your details, please try again")

    LEAD_CAPTURES.labels(outcome=outcome.outcome).inc()

    if isinstance(outcome, Created):
        return _respond(201, LeadCaptureResponse(outcome=outcome.outcome, lead_id=outcome.lead_id))
    if isinstance(outcome, Resumed):
        return _respond(200, LeadCaptureResponse(outcome=outcome.outcome, lead_id=outcome.lead_id))
    if isinstance(outcome, AlreadyCompleted):
        return _respond(200, LeadCaptureResponse(
            outcome=outcome.outcome, lead_id=outcome.lead_id,
            message="You have already completed this assessment",
        ))
    if isinstance(outcome, QuotaExceeded):
        ENTITLEMENT_DENIALS.labels(resource="responses_per_month", tier=outcome.entitlement.tier).inc()
        return _respond(402, LeadCaptureResponse(
            outcome=outcome.outcome,
            message="This assessment is not accepting new responses right now",
        ))
    return _respond(422, LeadCaptureResponse(outcome=outcome.outcome, message=outcome.reason))
