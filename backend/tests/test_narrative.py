"""Tests for results narratives: gating, parsing, benchmarks and template fallback."""

import json
import uuid
from unittest.mock import MagicMock

import anthropic
import httpx

from scoreflow.models import Score
from scoreflow.services.narrative import (
    NARRATIVE_KEYS, TEMPLATE_MODEL, NarrativeGenerator, build_system_prompt, build_user_prompt,
    compute_benchmarks, narrative_enabled, parse_narrative, template_narrative,
)

from fakes.fake_store import FakeStore


def _narrative_json(**overrides):
    content = {
        "executive_summary": "Solid overall.",
        "strengths": [{"title": "Strategy", "detail": "Clear plan."}],
        "improvements": [{"title": "People", "detail": "Few development plans."}],
        "recommendations": [{"title": "Train", "description": "Run a programme.", "priority": "high"}],
        "benchmark_context": "Above average.",
    }
    content.update(overrides)
    return json.dumps(content)


class TestParseNarrative:
    def test_plain_json(self):
        parsed = parse_narrative(_narrative_json())
        assert set(parsed) == set(NARRATIVE_KEYS)

    def test_strips_fences_and_prose(self):
        raw = "Here you go:\n```json\n" + _narrative_json() + "\n```"
        assert parse_narrative(raw)["executive_summary"] == "Solid overall."

    def test_missing_key_rejected(self):
        data = json.loads(_narrative_json())
        del data["recommendations"]
        assert parse_narrative(json.dumps(data)) is None

    def test_garbage_rejected(self):
        assert parse_narrative("no json here") is None
        assert parse_narrative("{not json}") is None
        assert parse_narrative("") is None


class TestBenchmarks:
    def test_needs_two_scores(self):
        assert compute_benchmarks([80], 80) is None

    def test_statistics(self):
        benchmarks = compute_benchmarks([40, 60, 80, 100], 80)
        assert benchmarks == {
            "average_percentage": 70,
            "median_percentage": 70,
            "percentile_rank": 50,
            "total_respondents": 4,
        }


class TestPrompts:
    def test_tone_instruction(self):
        assert "board presentations" in build_system_prompt("formal")
        assert "warm" in build_system_prompt("friendly")
        assert "consultative" in build_system_prompt("anything-else")

    def test_user_prompt_lists_categories(self):
        prompt = build_user_prompt(
            {"total_points": 15, "total_possible": 20, "percentage": 75, "tier_label": "Leading"},
            [{"name": "Strategy", "points": 15, "possible": 20, "percentage": 75, "tier_label": "Leading"}],
        )
        assert "Overall Score: 15/20 (75%)" in prompt
        assert "Overall Tier: Leading" in prompt
        assert "- Strategy: 15/20 (75%) - Leading" in prompt
        assert "Benchmark Data" not in prompt


class TestTemplateNarrative:
    def test_has_all_sections(self):
        categories = [
            {"name": "Strategy", "percentage": 90},
            {"name": "People", "percentage": 30},
            {"name": "Operations", "percentage": 60},
        ]
        content = template_narrative({"percentage": 60, "tier_label": "Developing"}, categories)
        assert set(content) == set(NARRATIVE_KEYS)
        assert content["strengths"][0]["title"] == "Strong performance in Strategy"
        assert content["improvements"][-1]["title"] == "Opportunity in People"
        assert "not available" in content["benchmark_context"]


class TestNarrativeEnabled:
    def setup_method(self):
        self.store = FakeStore()
        self.org = self.store.make_org(plan_tier="professional")

    def test_requires_flag(self):
        assert narrative_enabled(self.store, self.org.id) is False

    def test_flag_and_plan(self):
        self.store.make_flag("ai_narrative", global_enabled=True)
        assert narrative_enabled(self.store, self.org.id) is True

    def test_plan_feature_off(self):
        self.org.plan_tier = "free"
        self.store.make_flag("ai_narrative", global_enabled=True)
        assert narrative_enabled(self.store, self.org.id) is False

    def test_override_disables(self):
        flag = self.store.make_flag("ai_narrative", global_enabled=True)
        self.store.make_override(flag, self.org, enabled=False)
        assert narrative_enabled(self.store, self.org.id) is False


class TestNarrativeGenerator:
    def setup_method(self):
        self.store = FakeStore()
        self.org = self.store.make_org(plan_tier="professional")
        self.assessment = self.store.make_assessment(self.org, settings={"narrative_tone": "formal"})
        self.category = self.store.make_category(self.assessment, "Strategy", weight=100)
        self.tier = self.store.make_tier(self.assessment, "Leading", 71, 100)
        self.lead = self.store.make_lead(self.assessment, status="completed")
        self.store.scores.append(Score(
            id=uuid.uuid4(), lead_id=self.lead.id, assessment_id=self.assessment.id,
            total_points=15, total_possible=20, percentage=75, tier_id=self.tier.id,
            category_scores_json={str(self.category.id): {
                "points": 15, "possible": 20, "percentage": 75, "tier_label": "Leading",
            }},
        ))

    def test_uses_model_output(self):
        complete = MagicMock(return_value=_narrative_json())
        narrative = NarrativeGenerator(self.store, complete).generate(self.lead.id)

        assert narrative.model != TEMPLATE_MODEL
        assert narrative.content_json["executive_summary"] == "Solid overall."
        system_prompt, user_prompt = complete.call_args.args
        assert "board presentations" in system_prompt
        assert "Strategy: 15/20 (75%)" in user_prompt
        assert self.store.narratives == [narrative]

    def test_unparsable_output_falls_back_to_template(self):
        narrative = NarrativeGenerator(self.store, MagicMock(return_value="sorry")).generate(self.lead.id)
        assert narrative.model == TEMPLATE_MODEL
        assert "75%" in narrative.content_json["executive_summary"]

    def test_api_error_falls_back_to_template(self):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        complete = MagicMock(side_effect=anthropic.APIConnectionError(request=request))
        narrative = NarrativeGenerator(self.store, complete).generate(self.lead.id)
        assert narrative.model == TEMPLATE_MODEL

    def test_without_model_uses_template(self):
        narrative = NarrativeGenerator(self.store).generate(self.lead.id)
        assert narrative.model == TEMPLATE_MODEL
        assert set(narrative.content_json) == set(NARRATIVE_KEYS)

    def test_existing_narrative_returned(self):
        complete = MagicMock(return_value=_narrative_json())
        generator = NarrativeGenerator(self.store, complete)
        first = generator.generate(self.lead.id)
        second = generator.generate(self.lead.id)
        assert second is first
        complete.assert_called_once()

    def test_benchmarks_from_peer_scores(self):
        other = self.store.make_lead(self.assessment, email="bob@client.com", status="completed")
        self.store.scores.append(Score(
            id=uuid.uuid4(), lead_id=other.id, assessment_id=self.assessment.id,
            total_points=5, total_possible=20, percentage=25,
        ))
        complete = MagicMock(return_value=_narrative_json())
        NarrativeGenerator(self.store, complete).generate(self.lead.id)
        user_prompt = complete.call_args.args[1]
        assert "Total respondents in benchmark: 2" in user_prompt
        assert "percentile rank: 50th" in user_prompt

    def test_no_score(self):
        lead = self.store.make_lead(self.assessment, email="new@client.com")
        assert NarrativeGenerator(self.store).generate(lead.id) is None
        assert self.store.narratives == []
