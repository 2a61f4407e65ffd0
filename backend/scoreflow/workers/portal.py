"""Portal worker task - emails past respondents about a newly published assessment."""

from scoreflow.adapters.email import send_email
from scoreflow.api.health import JOBS_PROCESSED, PORTAL_EMAILS
from scoreflow.services.portal_notify import notify_new_assessment
from scoreflow.workers.base import open_store, parse_id, run_async

import structlog

logger = structlog.get_logger()


def _send(to_email: str, subject: str, body_html: str, from_email: str) -> bool:
    return run_async(send_email(to_email, subject, body_html, from_email=from_email))


def notify_portal_clients(assessment_id: str) -> dict:
    store = open_store()
    try:
        result = notify_new_assessment(store, parse_id(assessment_id), send=_send)
        PORTAL_EMAILS.labels(status="sent").inc(result.sent)
        PORTAL_EMAILS.labels(status="failed").inc(result.failed)
        JOBS_PROCESSED.labels(job="portal_notify", status="skipped" if result.skipped else "success").inc()
        return result.as_dict()
    finally:
        store.session.close()
