"""Outbound completion webhooks - payload, HMAC signature, bounded retry and delivery log."""

import hashlib
import hmac
import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Sequence

import httpx
import structlog

from scoreflow.config import settings
from scoreflow.models import WebhookDeliveryLog
from scoreflow.services.crypto import decrypt_webhook_secret
from scoreflow.store import StoreError

logger = structlog.get_logger()

EVENT_ASSESSMENT_COMPLETED = "assessment.completed"
SIGNATURE_HEADER = "X-Webhook-Signature"


def default_backoff() -> tuple[float, ...]:
    """Linear schedule: backoff_ms * attempt, one entry per retry."""
    step = settings.webhook_backoff_ms / 1000
    return tuple(step * attempt for attempt in range(1, settings.webhook_max_attempts))


@dataclass
class DeliveryResult:
    skipped: bool = False
    reason: str | None = None
    success: bool = False
    attempts: int = 0
    status_code: int | None = None
    log_ids: list[uuid.UUID] = field(default_factory=list)


def _iso(value) -> str | None:
    return value.isoformat() if value is not None else None


def build_payload(lead, assessment, score, tier_label: str | None, categories: list) -> dict:
    """The assessment.completed event body."""
    category_json = (score.category_scores_json if score else None) or {}
    category_scores = []
    for cat in sorted(categories, key=lambda c: c.sort_order):
        cs = category_json.get(str(cat.id))
        if cs:
            category_scores.append({
                "category_name": cat.name,
                "points": cs.get("points"),
                "possible": cs.get("possible"),
                "percentage": cs.get("percentage"),
                "tier_label": cs.get("tier_label"),
            })

    return {
        "event": EVENT_ASSESSMENT_COMPLETED,
        "lead": {
            "id": str(lead.id),
            "first_name": lead.first_name,
            "last_name": lead.last_name,
            "email": lead.email,
            "company": lead.company,
            "phone": lead.phone,
            "utm": lead.utm_json,
        },
        "assessment": {
            "id": str(assessment.id),
            "title": assessment.title,
        },
        "score": {
            "total_points": score.total_points if score else 0,
            "total_possible": score.total_possible if score else 0,
            "percentage": score.percentage if score else None,
            "tier_label": tier_label,
            "category_scores": category_scores,
        },
        "completed_at": _iso(lead.completed_at),
    }


def serialize_payload(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":")).encode()


def sign_payload(secret: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of the exact request body."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def verify_signature(secret: str, body: bytes, signature: str) -> bool:
    return hmac.compare_digest(sign_payload(secret, body), signature)


class WebhookDispatcher:
    """Delivers one payload with up to max_attempts POSTs. Never raises on delivery failure.

    Every attempt is written to the delivery log before the next one starts.
    """

    def __init__(
        self,
        store,
        client: httpx.Client | None = None,
        backoff: Sequence[float] | None = None,
        sleep: Callable[[float], None] = time.sleep,
        max_attempts: int | None = None,
    ):
        self.store = store
        self.client = client
        self.backoff = tuple(backoff) if backoff is not None else default_backoff()
        self.sleep = sleep
        self.max_attempts = max_attempts or settings.webhook_max_attempts

    def dispatch(self, lead_id: uuid.UUID) -> DeliveryResult:
        """Build and deliver the completion webhook for a scored lead."""
        lead = self.store.get_lead(lead_id)
        if lead is None:
            logger.warning("webhook_lead_not_found", lead_id=str(lead_id))
            return DeliveryResult(skipped=True, reason="lead not found")

        assessment = self.store.get_assessment(lead.assessment_id)
        if assessment is None:
            logger.warning("webhook_assessment_not_found", lead_id=str(lead_id))
            return DeliveryResult(skipped=True, reason="assessment not found")

        if not assessment.webhook_url:
            logger.info("webhook_skipped_no_url", assessment_id=str(assessment.id), lead_id=str(lead_id))
            return DeliveryResult(skipped=True, reason="No webhook URL configured")

        score = self.store.get_score(lead.id)
        tier_label = None
        if score is not None and score.tier_id:
            tier = self.store.get_score_tier(score.tier_id)
            tier_label = tier.label if tier else None

        payload = build_payload(lead, assessment, score, tier_label, self.store.list_categories(assessment.id))
        secret = decrypt_webhook_secret(assessment.webhook_secret_encrypted)
        return self.deliver(assessment.webhook_url, payload, secret, assessment.id, lead.id)

    def deliver(self, url: str, payload: dict, secret: str | None,
                assessment_id: uuid.UUID, lead_id: uuid.UUID) -> DeliveryResult:
        body = serialize_payload(payload)
        headers = {"Content-Type": "application/json"}
        if secret:
            headers[SIGNATURE_HEADER] = sign_payload(secret, body)

        log = logger.bind(url=url, assessment_id=str(assessment_id), lead_id=str(lead_id))
        result = DeliveryResult()

        client = self.client or httpx.Client(timeout=settings.webhook_timeout_seconds)
        try:
            for attempt in range(1, self.max_attempts + 1):
                result.attempts = attempt
                entry = WebhookDeliveryLog(
                    id=uuid.uuid4(),
                    assessment_id=assessment_id,
                    lead_id=lead_id,
                    url=url,
                    attempt=attempt,
                    request_payload=payload,
                    success=False,
                )
                try:
                    resp = client.post(url, content=body, headers=headers)
                    entry.status_code = resp.status_code
                    entry.response_body = resp.text[:settings.webhook_response_body_limit]
                    entry.success = resp.is_success
                    entry.error_message = None if resp.is_success else f"HTTP {resp.status_code}"
                except (httpx.HTTPError, httpx.InvalidURL) as e:
                    # InvalidURL is not an HTTPError; a malformed tenant URL fails every attempt
                    entry.error_message = str(e) or type(e).__name__

                try:
                    self.store.add_webhook_log(entry)
                    result.log_ids.append(entry.id)
                except StoreError as e:
                    log.error("webhook_log_write_failed", attempt=attempt, error=e.reason)
                result.status_code = entry.status_code

                if entry.success:
                    result.success = True
                    log.info("webhook_delivered", attempt=attempt, status_code=entry.status_code)
                    return result

                log.warning("webhook_attempt_failed", attempt=attempt,
                            status_code=entry.status_code, error=entry.error_message)
                if attempt < self.max_attempts:
                    self.sleep(self.backoff[min(attempt, len(self.backoff)) - 1] if self.backoff else 0)
        finally:
            if self.client is None:
                client.close()

        log.error("webhook_delivery_exhausted", attempts=result.attempts, status_code=result.status_code)
        return result
