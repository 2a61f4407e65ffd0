"""Narrative worker task - AI results narrative for a scored lead."""

from scoreflow.api.health import JOBS_PROCESSED
from scoreflow.config import settings
from scoreflow.services.narrative import NarrativeGenerator, call_claude
from scoreflow.workers.base import open_store, parse_id, run_async

import structlog

logger = structlog.get_logger()


def _complete(system_prompt: str, prompt: str) -> str:
    return run_async(call_claude(system_prompt, prompt))


def generate_lead_narrative(lead_id: str) -> dict:
    store = open_store()
    try:
        generator = NarrativeGenerator(store, complete=_complete if settings.anthropic_api_key else None)
        narrative = generator.generate(parse_id(lead_id))
        JOBS_PROCESSED.labels(job="narrative", status="success" if narrative else "skipped").inc()
        if narrative is None:
            return {"generated": False}
        return {"generated": True, "narrative_id": str(narrative.id), "model": narrative.model}
    except Exception as e:
        JOBS_PROCESSED.labels(job="narrative", status="failed").inc()
        logger.error("narrative_job_failed", lead_id=lead_id, error=str(e))
        raise
    finally:
        store.session.close()
