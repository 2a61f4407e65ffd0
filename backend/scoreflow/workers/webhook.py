"""Webhook worker task - delivers the assessment.completed event with retry."""

from scoreflow.api.health import JOBS_PROCESSED, WEBHOOK_DELIVERIES
from scoreflow.services.webhooks import WebhookDispatcher
from scoreflow.workers.base import open_store, parse_id

import structlog

logger = structlog.get_logger()


def deliver_completion_webhook(lead_id: str) -> dict:
    """Delivery failures are recorded in the webhook log, never raised."""
    store = open_store()
    try:
        result = WebhookDispatcher(store).dispatch(parse_id(lead_id))
        if result.skipped:
            outcome = "skipped"
        else:
            outcome = "delivered" if result.success else "exhausted"
        WEBHOOK_DELIVERIES.labels(outcome=outcome).inc()
        JOBS_PROCESSED.labels(job="webhook", status="success").inc()
        return {
            "skipped": result.skipped,
            "reason": result.reason,
            "success": result.success,
            "attempts": result.attempts,
            "status_code": result.status_code,
        }
    finally:
        store.session.close()
