"""Scoring worker task - turns a finished lead's responses into its Score."""

import time

from scoreflow.api.health import JOBS_PROCESSED
from scoreflow.services.completion import CompletionTrigger
from scoreflow.services.queue import enqueue_webhook, enqueue_narrative
from scoreflow.workers.base import open_store, parse_id

import structlog

logger = structlog.get_logger()


def process_completion(lead_id: str) -> dict:
    """Entry point for the scoring queue. Failures are re-raised so RQ's retry policy applies."""
    store = open_store()
    start_time = time.time()

    try:
        trigger = CompletionTrigger(store, enqueue_webhook=enqueue_webhook, enqueue_narrative=enqueue_narrative)
        result = trigger.score_lead(parse_id(lead_id))
        JOBS_PROCESSED.labels(job="scoring", status="success").inc()
        logger.info("scoring_job_completed", lead_id=lead_id, created=result.created,
                    duration=round(time.time() - start_time, 3))
        return {
            "score_id": str(result.score.id),
            "created": result.created,
            "percentage": result.score.percentage,
            "webhook_enqueued": result.webhook_enqueued,
            "narrative_enqueued": result.narrative_enqueued,
        }
    except Exception as e:
        JOBS_PROCESSED.labels(job="scoring", status="failed").inc()
        logger.error("scoring_job_failed", lead_id=lead_id, error=str(e))
        raise
    finally:
        store.session.close()
