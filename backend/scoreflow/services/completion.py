"""Completion trigger - score a finished lead once, mark it completed, then fan out follow-up jobs."""

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

import structlog
from redis import RedisError

from scoreflow.api.health import ERRORS
from scoreflow.models import Score
from scoreflow.services.narrative import narrative_enabled
from scoreflow.services.scoring import compute_score

logger = structlog.get_logger()

JobFn = Callable[[uuid.UUID], None]


class ScoringError(Exception):
    def __init__(self, lead_id: uuid.UUID, reason: str):
        self.lead_id = lead_id
        self.reason = reason
        super().__init__(f"Cannot score lead {lead_id}: {reason}")


@dataclass
class CompletionResult:
    score: Score
    created: bool
    webhook_enqueued: bool = False
    narrative_enqueued: bool = False


class CompletionTrigger:
    """Writes the immutable Score for a lead.

    A lead that already has a score gets it back unchanged and no jobs are
    enqueued again.
    """

    def __init__(self, store, enqueue_webhook: Optional[JobFn] = None, enqueue_narrative: Optional[JobFn] = None):
        self.store = store
        self.enqueue_webhook = enqueue_webhook
        self.enqueue_narrative = enqueue_narrative

    def score_lead(self, lead_id: uuid.UUID, now: datetime | None = None) -> CompletionResult:
        existing = self.store.get_score(lead_id)
        if existing is not None:
            logger.info("score_exists_skipping", lead_id=str(lead_id), score_id=str(existing.id))
            return CompletionResult(score=existing, created=False)

        lead = self.store.get_lead(lead_id)
        if lead is None:
            raise ScoringError(lead_id, "lead not found")
        assessment = self.store.get_assessment(lead.assessment_id)
        if assessment is None:
            raise ScoringError(lead_id, "assessment not found")

        questions = self.store.list_questions(assessment.id)
        options = self.store.list_answer_options([q.id for q in questions])
        responses = self.store.list_responses(lead.id)
        categories = self.store.list_categories(assessment.id)
        tiers = self.store.list_score_tiers(assessment.id)

        computation = compute_score(
            questions, options, responses, categories, tiers,
            scoring_method=assessment.settings.get("scoring_method", "points"),
        )

        for response in responses:
            response.points_awarded = computation.question_points.get(str(response.question_id), 0)

        now = now or datetime.utcnow()
        score = Score(
            id=uuid.uuid4(),
            lead_id=lead.id,
            assessment_id=assessment.id,
            total_points=computation.total_points,
            total_possible=computation.total_possible,
            percentage=computation.percentage,
            weighted_percentage=computation.weighted_percentage,
            tier_id=computation.tier.id if computation.tier else None,
            category_scores_json={cid: cs.as_json() for cid, cs in computation.category_scores.items()},
            calculated_at=now,
        )
        self.store.record_score(score, lead, completed_at=now)

        logger.info(
            "lead_scored",
            lead_id=str(lead.id),
            assessment_id=str(assessment.id),
            percentage=score.percentage,
            weighted_percentage=score.weighted_percentage,
            tier=computation.tier.label if computation.tier else None,
        )

        # Score is committed; enqueue failures must not fail the job
        result = CompletionResult(score=score, created=True)
        if self.enqueue_webhook is not None:
            result.webhook_enqueued = self._enqueue(self.enqueue_webhook, "webhook", lead.id)
        if self.enqueue_narrative is not None and narrative_enabled(self.store, lead.org_id):
            result.narrative_enqueued = self._enqueue(self.enqueue_narrative, "narrative", lead.id)
        return result

    def _enqueue(self, enqueue: JobFn, job: str, lead_id: uuid.UUID) -> bool:
        try:
            enqueue(lead_id)
        except RedisError as e:
            ERRORS.labels(type="queue").inc()
            logger.error("failed_to_enqueue_follow_up", job=job, lead_id=str(lead_id), error=str(e))
            return False
        return True
