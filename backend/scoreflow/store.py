"""Record store - the get/put/count operations the pipeline performs against the database.

Services receive a store instead of a session so the pipeline logic does not
depend on SQLAlchemy query construction. ``SqlStore`` wraps a sync session
(pipeline endpoints and RQ workers).
"""

import uuid
from datetime import datetime

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from scoreflow.models import (
    Organisation, TeamMember, Assessment, Category, Question, AnswerOption, ScoreTier,
    Lead, Response, Score, FeatureFlag, FeatureFlagOverride, WebhookDeliveryLog, AuditLog, Narrative,
)

import structlog

logger = structlog.get_logger()


class StoreError(Exception):
    """A store operation failed for a reason other than a uniqueness conflict."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class DuplicateLeadError(StoreError):
    """A started lead already exists for this (assessment, email)."""

    def __init__(self, assessment_id: uuid.UUID, email: str):
        self.assessment_id = assessment_id
        self.email = email
        super().__init__("add_lead", f"duplicate started lead for {email} on {assessment_id}")


class SqlStore:
    """Store backed by a synchronous SQLAlchemy session."""

    def __init__(self, session: Session):
        self.session = session

    def _commit(self, operation: str) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.error("store_commit_failed", operation=operation, error=str(e))
            raise StoreError(operation, str(e)) from e

    def _add(self, obj, operation: str):
        self.session.add(obj)
        self._commit(operation)
        return obj

    # --- Organisations ---

    def get_organisation(self, org_id: uuid.UUID) -> Organisation | None:
        return self.session.get(Organisation, org_id)

    def count_assessments(self, org_id: uuid.UUID) -> int:
        return self.session.scalar(
            select(func.count()).select_from(Assessment).where(Assessment.org_id == org_id)
        ) or 0

    def count_team_members(self, org_id: uuid.UUID) -> int:
        return self.session.scalar(
            select(func.count()).select_from(TeamMember).where(TeamMember.org_id == org_id)
        ) or 0

    def count_completed_leads_since(self, org_id: uuid.UUID, since: datetime) -> int:
        return self.session.scalar(
            select(func.count()).select_from(Lead).where(
                Lead.org_id == org_id,
                Lead.status == "completed",
                Lead.completed_at >= since,
            )
        ) or 0

    # --- Assessment configuration ---

    def get_assessment(self, assessment_id: uuid.UUID) -> Assessment | None:
        return self.session.get(Assessment, assessment_id)

    def list_assessments(self, org_id: uuid.UUID) -> list[Assessment]:
        return list(self.session.scalars(
            select(Assessment).where(Assessment.org_id == org_id).order_by(Assessment.created_at)
        ))

    def publish_assessment(self, assessment: Assessment, published_at: datetime) -> Assessment:
        assessment.status = "published"
        assessment.published_at = published_at
        self._commit("publish_assessment")
        return assessment

    def list_categories(self, assessment_id: uuid.UUID) -> list[Category]:
        return list(self.session.scalars(
            select(Category).where(Category.assessment_id == assessment_id).order_by(Category.sort_order)
        ))

    def list_questions(self, assessment_id: uuid.UUID) -> list[Question]:
        return list(self.session.scalars(
            select(Question).where(Question.assessment_id == assessment_id).order_by(Question.sort_order)
        ))

    def list_answer_options(self, question_ids: list[uuid.UUID]) -> list[AnswerOption]:
        if not question_ids:
            return []
        return list(self.session.scalars(
            select(AnswerOption).where(AnswerOption.question_id.in_(question_ids)).order_by(AnswerOption.sort_order)
        ))

    def list_score_tiers(self, assessment_id: uuid.UUID) -> list[ScoreTier]:
        return list(self.session.scalars(
            select(ScoreTier).where(ScoreTier.assessment_id == assessment_id).order_by(ScoreTier.sort_order)
        ))

    def get_score_tier(self, tier_id: uuid.UUID) -> ScoreTier | None:
        return self.session.get(ScoreTier, tier_id)

    # --- Leads ---

    def get_lead(self, lead_id: uuid.UUID) -> Lead | None:
        return self.session.get(Lead, lead_id)

    def find_completed_lead(self, assessment_id: uuid.UUID, email: str) -> Lead | None:
        return self.session.scalars(
            select(Lead)
            .where(Lead.assessment_id == assessment_id, Lead.email == email, Lead.status == "completed")
            .order_by(Lead.created_at.desc())
            .limit(1)
        ).first()

    def latest_lead(self, assessment_id: uuid.UUID, email: str) -> Lead | None:
        return self.session.scalars(
            select(Lead)
            .where(Lead.assessment_id == assessment_id, Lead.email == email)
            .order_by(Lead.created_at.desc())
            .limit(1)
        ).first()

    def add_lead(self, lead: Lead) -> Lead:
        """Insert a started lead. Raises DuplicateLeadError on the started-cohort unique index."""
        self.session.add(lead)
        try:
            self.session.commit()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateLeadError(lead.assessment_id, lead.email) from e
        except SQLAlchemyError as e:
            self.session.rollback()
            raise StoreError("add_lead", str(e)) from e
        return lead

    def list_leads(self, org_id: uuid.UUID) -> list[Lead]:
        return list(self.session.scalars(
            select(Lead).where(Lead.org_id == org_id).order_by(Lead.created_at)
        ))

    def list_completed_lead_emails(self, org_id: uuid.UUID) -> list[str]:
        return list(self.session.scalars(
            select(Lead.email).where(Lead.org_id == org_id, Lead.status == "completed")
        ))

    def list_responses(self, lead_id: uuid.UUID) -> list[Response]:
        return list(self.session.scalars(select(Response).where(Response.lead_id == lead_id)))

    def list_responses_for_leads(self, lead_ids: list[uuid.UUID]) -> list[Response]:
        if not lead_ids:
            return []
        return list(self.session.scalars(select(Response).where(Response.lead_id.in_(lead_ids))))

    # --- Scores ---

    def get_score(self, lead_id: uuid.UUID) -> Score | None:
        return self.session.scalars(select(Score).where(Score.lead_id == lead_id)).first()

    def list_scores(self, assessment_ids: list[uuid.UUID]) -> list[Score]:
        if not assessment_ids:
            return []
        return list(self.session.scalars(select(Score).where(Score.assessment_id.in_(assessment_ids))))

    def record_score(self, score: Score, lead: Lead, completed_at: datetime) -> Score:
        """Write the score and mark the lead completed in one transaction.

        Pending changes on loaded objects (e.g. response points) are committed too.
        """
        lead.status = "completed"
        lead.completed_at = completed_at
        return self._add(score, "record_score")

    # --- Feature flags ---

    def get_flag(self, name: str) -> FeatureFlag | None:
        return self.session.scalars(select(FeatureFlag).where(FeatureFlag.name == name)).first()

    def get_flag_override(self, flag_id: uuid.UUID, org_id: uuid.UUID) -> FeatureFlagOverride | None:
        return self.session.scalars(
            select(FeatureFlagOverride).where(
                FeatureFlagOverride.flag_id == flag_id,
                FeatureFlagOverride.org_id == org_id,
            )
        ).first()

    # --- Audit trail ---

    def add_webhook_log(self, entry: WebhookDeliveryLog) -> WebhookDeliveryLog:
        return self._add(entry, "add_webhook_log")

    def add_audit_log(self, entry: AuditLog) -> AuditLog:
        return self._add(entry, "add_audit_log")

    # --- Narratives ---

    def get_narrative(self, lead_id: uuid.UUID) -> Narrative | None:
        return self.session.scalars(select(Narrative).where(Narrative.lead_id == lead_id)).first()

    def add_narrative(self, narrative: Narrative) -> Narrative:
        return self._add(narrative, "add_narrative")
