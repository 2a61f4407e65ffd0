#!/usr/bin/env python3
"""Seed the database with a demo organisation, a published assessment and feature flags."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from scoreflow.config import settings
from scoreflow.models import (
    Organisation, TeamMember, Assessment, Category, Question, AnswerOption, ScoreTier, FeatureFlag,
)

TIERS = [
    ("Emerging", 0, 40, "#DC2626"),
    ("Developing", 41, 70, "#F59E0B"),
    ("Leading", 71, 100, "#16A34A"),
]

CATEGORIES = [
    ("Strategy", 40, ["Do you have a written three-year plan?", "Is the plan reviewed quarterly?"]),
    ("Operations", 35, ["Are core processes documented?", "Do you track delivery KPIs?"]),
    ("People", 25, ["Do staff have annual development plans?"]),
]

FLAGS = [
    ("ai_narrative", "AI-generated results narrative", False, 25),
]


def seed():
    engine = create_engine(settings.database_url_sync)
    Session = sessionmaker(bind=engine)
    session = Session()

    existing = session.query(Organisation).filter_by(slug="demo-advisory").first()
    if existing:
        print(f"Demo organisation already exists: {existing.id}")
        session.close()
        return

    org = Organisation(name="Demo Advisory", slug="demo-advisory", plan_tier="professional", portal_enabled=False)
    session.add(org)
    session.flush()
    session.add(TeamMember(org_id=org.id, email="owner@demo-advisory.example", role="admin"))

    assessment = Assessment(
        org_id=org.id,
        title="Business Readiness Scorecard",
        status="published",
        settings_json={
            "lead_fields": {
                "first_name": {"enabled": True, "required": True},
                "company": {"enabled": True, "required": False},
            },
            "allow_retakes": False,
            "scoring_method": "weighted",
            "narrative_tone": "consultative",
        },
    )
    session.add(assessment)
    session.flush()

    for order, (label, low, high, colour) in enumerate(TIERS):
        session.add(ScoreTier(assessment_id=assessment.id, label=label, min_pct=low, max_pct=high,
                              colour=colour, sort_order=order))

    q_order = 0
    for c_order, (name, weight, questions) in enumerate(CATEGORIES):
        category = Category(assessment_id=assessment.id, name=name, weight=weight, sort_order=c_order)
        session.add(category)
        session.flush()
        for text in questions:
            question = Question(assessment_id=assessment.id, category_id=category.id,
                                type="single_select", text=text, sort_order=q_order)
            session.add(question)
            session.flush()
            for o_order, (label, points) in enumerate([("No", 0), ("Partly", 5), ("Yes", 10)]):
                session.add(AnswerOption(question_id=question.id, label=label, points=points, sort_order=o_order))
            q_order += 1

    for name, description, enabled, rollout in FLAGS:
        if not session.query(FeatureFlag).filter_by(name=name).first():
            session.add(FeatureFlag(name=name, description=description,
                                    global_enabled=enabled, rollout_percentage=rollout))

    session.commit()
    print(f"Created demo organisation: {org.id} (slug: {org.slug})")
    print(f"Published assessment: {assessment.id}")
    session.close()


if __name__ == "__main__":
    seed()
