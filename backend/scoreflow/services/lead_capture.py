"""Lead capture - turns a public form submission into a canonical lead record.

Per (assessment, email) a lead moves none -> started -> completed. A completed
lead re-enters as a new started row only when the assessment allows retakes.
Concurrent double submits are resolved by the store's unique index on the
started cohort, not by locking.
"""

import uuid
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Union

import structlog
from email_validator import validate_email, EmailNotValidError

from scoreflow.models import Assessment, Lead
from scoreflow.services.entitlements import Entitlement, EntitlementChecker
from scoreflow.store import StoreError, DuplicateLeadError

logger = structlog.get_logger()

LEAD_FIELDS = {
    "email": "Email",
    "first_name": "First name",
    "last_name": "Last name",
    "company": "Company",
    "phone": "Phone",
}


class LeadCaptureError(Exception):
    """The store failed while capturing a lead. Safe to retry."""

    def __init__(self, assessment_id: uuid.UUID, reason: str):
        self.assessment_id = assessment_id
        self.reason = reason
        super().__init__(f"Lead capture failed for assessment {assessment_id}: {reason}")


# --- Outcomes ---

@dataclass(frozen=True)
class AlreadyCompleted:
    lead_id: uuid.UUID
    outcome: str = "already_completed"


@dataclass(frozen=True)
class Created:
    lead_id: uuid.UUID
    outcome: str = "created"


@dataclass(frozen=True)
class Resumed:
    lead_id: uuid.UUID
    outcome: str = "resumed"


@dataclass(frozen=True)
class ValidationFailed:
    reason: str
    outcome: str = "validation_failed"


@dataclass(frozen=True)
class QuotaExceeded:
    entitlement: Entitlement
    outcome: str = "quota_exceeded"


CaptureOutcome = Union[AlreadyCompleted, Created, Resumed, ValidationFailed, QuotaExceeded]


@dataclass
class LeadDetails:
    """Normalised contact details from one submission."""
    email: str
    first_name: str | None = None
    last_name: str | None = None
    company: str | None = None
    phone: str | None = None
    consent: bool = False
    source: str = "direct"
    utm: dict | None = None


def normalise_email(email: str | None) -> str:
    return (email or "").strip().lower()


def _clean(value: str | None) -> str | None:
    value = (value or "").strip()
    return value or None


def validate_submission(details: LeadDetails, lead_fields: dict) -> str | None:
    """Return the first validation problem, or None.

    Email is always required. Other fields are required only when enabled
    and marked required in the assessment's lead_fields map.
    """
    for key, label in LEAD_FIELDS.items():
        value = getattr(details, key)
        if key == "email":
            required = True
        else:
            config = lead_fields.get(key) or {}
            required = bool(config.get("enabled") and config.get("required"))
        if required and not (value or "").strip():
            return f"{label} is required"

    try:
        validate_email(details.email, check_deliverability=False)
    except EmailNotValidError:
        return "Email is not a valid address"

    if not details.consent:
        return "Please accept the privacy consent to continue"
    return None


class LeadCaptureCoordinator:
    def __init__(self, store, entitlements: EntitlementChecker | None = None):
        self.store = store
        self.entitlements = entitlements or EntitlementChecker(store)

    def capture(self, assessment: Assessment, details: LeadDetails, now: datetime | None = None) -> CaptureOutcome:
        settings_ = assessment.settings
        log = logger.bind(assessment_id=str(assessment.id), org_id=str(assessment.org_id))

        details = replace(details, email=normalise_email(details.email))
        problem = validate_submission(details, settings_.get("lead_fields") or {})
        if problem:
            log.info("lead_capture_validation_failed", reason=problem)
            return ValidationFailed(problem)

        try:
            if not settings_.get("allow_retakes", False):
                existing = self.store.find_completed_lead(assessment.id, details.email)
                if existing is not None:
                    log.info("lead_capture_already_completed", lead_id=str(existing.id))
                    return AlreadyCompleted(existing.id)

            entitlement = self.entitlements.check(assessment.org_id, "responses_per_month", now=now)
            if not entitlement.allowed:
                log.info("lead_capture_quota_exceeded", current=entitlement.current,
                         grace_limit=entitlement.grace_limit, tier=entitlement.tier)
                return QuotaExceeded(entitlement)

            lead = Lead(
                id=uuid.uuid4(),
                assessment_id=assessment.id,
                org_id=assessment.org_id,
                email=details.email,
                first_name=_clean(details.first_name),
                last_name=_clean(details.last_name),
                company=_clean(details.company),
                phone=_clean(details.phone),
                source=details.source or "direct",
                utm_json=details.utm or None,
                status="started",
                created_at=now or datetime.utcnow(),
            )
            try:
                self.store.add_lead(lead)
            except DuplicateLeadError:
                # A concurrent submission won the insert; continue with its identity
                current = self.store.latest_lead(assessment.id, details.email)
                if current is None:
                    raise LeadCaptureError(assessment.id, "conflicting lead disappeared")
                log.info("lead_capture_resumed", lead_id=str(current.id))
                return Resumed(current.id)
        except StoreError as e:
            log.error("lead_capture_store_error", operation=e.operation, error=e.reason)
            raise LeadCaptureError(assessment.id, str(e)) from e

        log.info("lead_capture_created", lead_id=str(lead.id), source=lead.source)
        return Created(lead.id)
