"""Initial schema: tenants, assessment configuration, leads, scores, flags and audit trail.

Revision ID: 001
Revises: None
Create Date: 2025-01-01
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Organisations
    op.create_table(
        "organisations",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("slug", sa.String(100), unique=True, nullable=False),
        sa.Column("plan_tier", sa.String(30), nullable=True),
        sa.Column("plan_overrides", JSONB, nullable=True),
        sa.Column("portal_enabled", sa.Boolean, server_default="false"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_organisations_slug", "organisations", ["slug"])

    op.create_table(
        "team_members",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", UUID(as_uuid=True), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("role", sa.String(30), server_default="member"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_team_members_org_id", "team_members", ["org_id"])

    # Assessment configuration
    op.create_table(
        "assessments",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", UUID(as_uuid=True), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("status", sa.String(20), server_default="draft"),
        sa.Column("settings_json", JSONB, nullable=True),
        sa.Column("webhook_url", sa.Text, nullable=True),
        sa.Column("webhook_secret_encrypted", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("published_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_assessments_org_id", "assessments", ["org_id"])

    op.create_table(
        "categories",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("assessment_id", UUID(as_uuid=True), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("weight", sa.Float, server_default="0"),
        sa.Column("include_in_total", sa.Boolean, server_default="true"),
        sa.Column("sort_order", sa.Integer, server_default="0"),
    )
    op.create_index("ix_categories_assessment_id", "categories", ["assessment_id"])

    op.create_table(
        "questions",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("assessment_id", UUID(as_uuid=True), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("category_id", UUID(as_uuid=True), sa.ForeignKey("categories.id"), nullable=True),
        sa.Column("type", sa.String(30), server_default="single_select"),
        sa.Column("text", sa.Text, server_default=""),
        sa.Column("settings_json", JSONB, nullable=True),
        sa.Column("sort_order", sa.Integer, server_default="0"),
    )
    op.create_index("ix_questions_assessment_id", "questions", ["assessment_id"])

    op.create_table(
        "answer_options",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("question_id", UUID(as_uuid=True), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("label", sa.String(500), server_default=""),
        sa.Column("points", sa.Float, server_default="0"),
        sa.Column("sort_order", sa.Integer, server_default="0"),
    )
    op.create_index("ix_answer_options_question_id", "answer_options", ["question_id"])

    op.create_table(
        "score_tiers",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("assessment_id", UUID(as_uuid=True), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("label", sa.String(100), nullable=False),
        sa.Column("min_pct", sa.Integer, nullable=False),
        sa.Column("max_pct", sa.Integer, nullable=False),
        sa.Column("colour", sa.String(20), nullable=True),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("sort_order", sa.Integer, server_default="0"),
    )
    op.create_index("ix_score_tiers_assessment_id", "score_tiers", ["assessment_id"])

    # Leads
    op.create_table(
        "leads",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("assessment_id", UUID(as_uuid=True), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("org_id", UUID(as_uuid=True), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("company", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("source", sa.String(50), server_default="direct"),
        sa.Column("utm_json", JSONB, nullable=True),
        sa.Column("status", sa.String(20), server_default="started"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime, nullable=True),
    )
    op.create_index("ix_leads_assessment_id", "leads", ["assessment_id"])
    op.create_index("ix_leads_org_id", "leads", ["org_id"])
    op.create_index("ix_leads_email", "leads", ["email"])
    # One started attempt per respondent per assessment
    op.create_index(
        "uq_leads_started_assessment_email", "leads", ["assessment_id", "email"],
        unique=True, postgresql_where=sa.text("status = 'started'"),
    )

    op.create_table(
        "responses",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", UUID(as_uuid=True), sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("question_id", UUID(as_uuid=True), sa.ForeignKey("questions.id"), nullable=False),
        sa.Column("selected_option_ids", JSONB, nullable=True),
        sa.Column("points_awarded", sa.Float, server_default="0"),
    )
    op.create_index("ix_responses_lead_id", "responses", ["lead_id"])

    # Scores
    op.create_table(
        "scores",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", UUID(as_uuid=True), sa.ForeignKey("leads.id"), unique=True, nullable=False),
        sa.Column("assessment_id", UUID(as_uuid=True), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("total_points", sa.Float, server_default="0"),
        sa.Column("total_possible", sa.Float, server_default="0"),
        sa.Column("percentage", sa.Integer, server_default="0"),
        sa.Column("weighted_percentage", sa.Integer, nullable=True),
        sa.Column("tier_id", UUID(as_uuid=True), sa.ForeignKey("score_tiers.id"), nullable=True),
        sa.Column("category_scores_json", JSONB, nullable=True),
        sa.Column("calculated_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_scores_assessment_id", "scores", ["assessment_id"])

    op.create_table(
        "narratives",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("lead_id", UUID(as_uuid=True), sa.ForeignKey("leads.id"), unique=True, nullable=False),
        sa.Column("model", sa.String(100), nullable=False),
        sa.Column("content_json", JSONB, nullable=False),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    # Feature flags
    op.create_table(
        "feature_flags",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(100), unique=True, nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("global_enabled", sa.Boolean, server_default="false"),
        sa.Column("rollout_percentage", sa.Integer, server_default="0"),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        "feature_flag_overrides",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("flag_id", UUID(as_uuid=True), sa.ForeignKey("feature_flags.id"), nullable=False),
        sa.Column("org_id", UUID(as_uuid=True), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False),
        sa.UniqueConstraint("flag_id", "org_id", name="uq_flag_override_org"),
    )
    op.create_index("ix_feature_flag_overrides_org_id", "feature_flag_overrides", ["org_id"])

    # Audit trail
    op.create_table(
        "webhook_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("assessment_id", UUID(as_uuid=True), sa.ForeignKey("assessments.id"), nullable=False),
        sa.Column("lead_id", UUID(as_uuid=True), sa.ForeignKey("leads.id"), nullable=False),
        sa.Column("url", sa.Text, nullable=False),
        sa.Column("status_code", sa.Integer, nullable=True),
        sa.Column("attempt", sa.Integer, nullable=False),
        sa.Column("success", sa.Boolean, server_default="false"),
        sa.Column("request_payload", JSONB, nullable=True),
        sa.Column("response_body", sa.Text, nullable=True),
        sa.Column("error_message", sa.Text, nullable=True),
        sa.Column("created_at", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_webhook_logs_assessment_id", "webhook_logs", ["assessment_id"])
    op.create_index("ix_webhook_logs_lead_id", "webhook_logs", ["lead_id"])
    op.create_index("ix_webhook_logs_created_at", "webhook_logs", ["created_at"])

    op.create_table(
        "audit_logs",
        sa.Column("id", UUID(as_uuid=True), primary_key=True),
        sa.Column("org_id", UUID(as_uuid=True), sa.ForeignKey("organisations.id"), nullable=False),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("actor", sa.String(255), server_default="system"),
        sa.Column("resource_type", sa.String(50), nullable=True),
        sa.Column("resource_id", sa.String(100), nullable=True),
        sa.Column("summary", sa.Text, nullable=True),
        sa.Column("metadata", JSONB, nullable=True),
        sa.Column("timestamp", sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index("ix_audit_logs_org_id", "audit_logs", ["org_id"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_timestamp", "audit_logs", ["timestamp"])


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("webhook_logs")
    op.drop_table("feature_flag_overrides")
    op.drop_table("feature_flags")
    op.drop_table("narratives")
    op.drop_table("scores")
    op.drop_table("responses")
    op.drop_table("leads")
    op.drop_table("score_tiers")
    op.drop_table("answer_options")
    op.drop_table("questions")
    op.drop_table("categories")
    op.drop_table("assessments")
    op.drop_table("team_members")
    op.drop_table("organisations")
