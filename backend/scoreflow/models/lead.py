"""Lead (respondent attempt), answer response and score models."""

import uuid
from datetime import datetime

from sqlalchemy import String, Float, Integer, DateTime, ForeignKey, Index, text
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column

from scoreflow.database import Base


class Lead(Base):
    __tablename__ = "leads"
    __table_args__ = (
        # One in-flight attempt per respondent per assessment
        Index(
            "uq_leads_started_assessment_email",
            "assessment_id", "email",
            unique=True,
            postgresql_where=text("status = 'started'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    assessment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("assessments.id"), nullable=False, index=True)
    org_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("organisations.id"), nullable=False, index=True)

    # Contact info
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)  # lowercase
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    company: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Attribution
    source: Mapped[str] = mapped_column(String(50), default="direct")
    utm_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="started")  # started, completed

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)


class Response(Base):
    __tablename__ = "responses"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lead_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("leads.id"), nullable=False, index=True)
    question_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("questions.id"), nullable=False)
    selected_option_ids: Mapped[list | None] = mapped_column(JSONB, nullable=True)  # list of option ids, or [value] for sliding scale
    points_awarded: Mapped[float] = mapped_column(Float, default=0.0)


class Score(Base):
    """Immutable once written."""

    __tablename__ = "scores"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    lead_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("leads.id"), unique=True, nullable=False)
    assessment_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("assessments.id"), nullable=False, index=True)

    total_points: Mapped[float] = mapped_column(Float, default=0.0)
    total_possible: Mapped[float] = mapped_column(Float, default=0.0)
    percentage: Mapped[int] = mapped_column(Integer, default=0)  # 0-100
    weighted_percentage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tier_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), ForeignKey("score_tiers.id"), nullable=True)

    # {category_id: {points, possible, percentage, tier_id, tier_label, tier_colour}}
    category_scores_json: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    calculated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
