"""RQ job queues on Redis - scoring, webhook delivery and portal notifications."""

import uuid

import redis as redis_lib
import structlog
from rq import Queue, Retry

from scoreflow.config import settings

logger = structlog.get_logger()

SCORING_QUEUE = "scoring"
WEBHOOK_QUEUE = "webhooks"
NOTIFICATION_QUEUE = "notifications"

_redis: redis_lib.Redis | None = None


def get_redis() -> redis_lib.Redis:
    global _redis
    if _redis is None:
        # RQ stores pickled job data, so no decode_responses here
        _redis = redis_lib.from_url(settings.redis_url)
    return _redis


def get_queue(name: str) -> Queue:
    return Queue(name, connection=get_redis())


def enqueue_scoring(lead_id: uuid.UUID):
    return get_queue(SCORING_QUEUE).enqueue(
        "scoreflow.workers.scoring.process_completion",
        str(lead_id),
        job_timeout=300,
        retry=Retry(max=3, interval=[10, 30, 60]),
    )


def enqueue_webhook(lead_id: uuid.UUID):
    # Delivery retries live inside the job; RQ must not re-run it
    return get_queue(WEBHOOK_QUEUE).enqueue(
        "scoreflow.workers.webhook.deliver_completion_webhook",
        str(lead_id),
        job_timeout=120,
    )


def enqueue_narrative(lead_id: uuid.UUID):
    return get_queue(NOTIFICATION_QUEUE).enqueue(
        "scoreflow.workers.narrative.generate_lead_narrative",
        str(lead_id),
        job_timeout=300,
        retry=Retry(max=2, interval=[30, 120]),
    )


def enqueue_portal_notify(assessment_id: uuid.UUID):
    return get_queue(NOTIFICATION_QUEUE).enqueue(
        "scoreflow.workers.portal.notify_portal_clients",
        str(assessment_id),
        job_timeout=600,
    )
