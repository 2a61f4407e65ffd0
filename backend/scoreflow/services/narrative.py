"""AI results narrative - prompt building, Claude call, JSON parsing and template fallback."""

import json
import statistics
import uuid
from typing import Callable

import anthropic
import structlog

from scoreflow.config import settings
from scoreflow.models import Narrative
from scoreflow.services.entitlements import EntitlementChecker
from scoreflow.services.rollout import is_flag_enabled

logger = structlog.get_logger()

NARRATIVE_FLAG = "ai_narrative"
NARRATIVE_PLAN_FEATURE = "ai_narratives"
TEMPLATE_MODEL = "template"
TONES = ("formal", "friendly", "consultative")
NARRATIVE_KEYS = ("executive_summary", "strengths", "improvements", "recommendations", "benchmark_context")

# complete(system_prompt, user_prompt) -> raw model text
CompleteFn = Callable[[str, str], str]


def narrative_enabled(store, org_id: uuid.UUID, entitlements: EntitlementChecker | None = None) -> bool:
    """Both the rollout flag and the plan feature must be on."""
    if not is_flag_enabled(store, org_id, NARRATIVE_FLAG):
        return False
    entitlements = entitlements or EntitlementChecker(store)
    return entitlements.is_feature_enabled(org_id, NARRATIVE_PLAN_FEATURE)


def build_system_prompt(tone: str = "consultative") -> str:
    if tone == "formal":
        tone_instruction = "Use formal, executive-level language appropriate for board presentations."
    elif tone == "friendly":
        tone_instruction = "Use a warm, encouraging but professional tone."
    else:
        tone_instruction = "Use a professional, consultative tone suitable for advisory engagements."

    return f"""You are a senior management consultant preparing a personalised results narrative for a client who has completed a professional assessment. {tone_instruction}

Respond with valid JSON only: no markdown, no code fences, no explanations.

The JSON object must have this structure:
{{
  "executive_summary": "2-3 paragraph summary of the results, key findings and overall positioning",
  "strengths": [{{"title": "concise strength title", "detail": "2-3 sentences on the strength and its business impact"}}],
  "improvements": [{{"title": "concise improvement area", "detail": "2-3 sentences on the gap and why it matters"}}],
  "recommendations": [{{"title": "actionable title", "description": "2-3 sentences on the action and expected outcome", "priority": "high|medium|low"}}],
  "benchmark_context": "1-2 paragraphs placing the results against benchmarks"
}}

Rules:
- 2-4 strengths from the highest-scoring categories
- 2-4 improvements from the lowest-scoring categories
- 3-5 recommendations, prioritised by impact, specific and actionable
- Reference actual scores and percentages where relevant
- If benchmark data is provided, compare the respondent to peers
- Address the client directly"""


def build_user_prompt(score: dict, categories: list[dict], benchmarks: dict | None = None) -> str:
    lines = [
        "Generate a personalised results narrative for the following assessment results:",
        "",
        f"Overall Score: {score['total_points']}/{score['total_possible']} ({score['percentage']}%)",
    ]
    if score.get("tier_label"):
        lines.append(f"Overall Tier: {score['tier_label']}")

    lines += ["", "Category Breakdown:"]
    for cat in categories:
        suffix = f" - {cat['tier_label']}" if cat.get("tier_label") else ""
        lines.append(f"- {cat['name']}: {cat['points']}/{cat['possible']} ({cat['percentage']}%){suffix}")

    if benchmarks:
        lines += [
            "",
            "Benchmark Data:",
            f"- Average score: {benchmarks['average_percentage']}%",
            f"- Median score: {benchmarks['median_percentage']}%",
            f"- This respondent's percentile rank: {benchmarks['percentile_rank']}th",
            f"- Total respondents in benchmark: {benchmarks['total_respondents']}",
        ]
    return "\n".join(lines)


def compute_benchmarks(percentages: list[int], own: int) -> dict | None:
    """Peer statistics over all scores of the assessment (including this one)."""
    if len(percentages) < 2:
        return None
    below = sum(1 for p in percentages if p < own)
    return {
        "average_percentage": round(statistics.mean(percentages)),
        "median_percentage": round(statistics.median(percentages)),
        "percentile_rank": round(below / len(percentages) * 100),
        "total_respondents": len(percentages),
    }


def template_narrative(score: dict, categories: list[dict], benchmarks: dict | None = None) -> dict:
    """Deterministic narrative used when no model is available or its output is unusable."""
    pct = score["percentage"]
    tier_label = score.get("tier_label") or "N/A"
    ranked = sorted(categories, key=lambda c: c["percentage"] or 0, reverse=True)

    if benchmarks:
        position = "above" if pct > benchmarks["average_percentage"] else "below"
        benchmark_context = (
            f"Compared to {benchmarks['total_respondents']} respondents, your score of {pct}% places you "
            f"at the {benchmarks['percentile_rank']}th percentile. The average score across all respondents "
            f"is {benchmarks['average_percentage']}%, so your organisation is performing {position} the peer average."
        )
    else:
        benchmark_context = (
            "Benchmark data was not available for this assessment. As more respondents complete the "
            "assessment, comparative insights will become available."
        )

    return {
        "executive_summary": (
            f'Your organisation achieved an overall score of {pct}%, placing you in the "{tier_label}" tier. '
            f"This assessment evaluated {len(categories)} key areas, revealing notable strengths alongside "
            "clear opportunities for growth."
        ),
        "strengths": [
            {"title": f"Strong performance in {c['name']}",
             "detail": f"Scoring {c['percentage']}% in this area demonstrates solid capability and established processes."}
            for c in ranked[:2]
        ],
        "improvements": [
            {"title": f"Opportunity in {c['name']}",
             "detail": f"A score of {c['percentage']}% in this area indicates room for development."}
            for c in ranked[-2:]
        ],
        "recommendations": [
            {"title": "Develop a targeted improvement plan",
             "description": "Focus initial efforts on the lowest-scoring categories with quick-win initiatives.",
             "priority": "high"},
            {"title": "Leverage existing strengths",
             "description": "Share practices from your highest-performing areas to lift weaker categories.",
             "priority": "medium"},
            {"title": "Establish regular reassessment cadence",
             "description": "Reassess quarterly to track progress against these baseline results.",
             "priority": "medium"},
        ],
        "benchmark_context": benchmark_context,
    }


def parse_narrative(content: str) -> dict | None:
    """Extract the narrative JSON object from model output. None when unusable."""
    if not content or "{" not in content:
        return None
    try:
        data = json.loads(content[content.index("{"):content.rindex("}") + 1])
    except (json.JSONDecodeError, ValueError):
        return None
    if not isinstance(data, dict) or any(k not in data for k in NARRATIVE_KEYS):
        return None
    return {k: data[k] for k in NARRATIVE_KEYS}


async def call_claude(system_prompt: str, prompt: str, api_key: str | None = None) -> str:
    """Call the Claude Messages API and return the text of the first content block."""
    client = anthropic.AsyncAnthropic(api_key=api_key or settings.anthropic_api_key)
    response = await client.messages.create(
        model=settings.narrative_model,
        max_tokens=settings.narrative_max_tokens,
        system=system_prompt,
        messages=[{"role": "user", "content": prompt}],
    )
    logger.info("narrative_claude_call", model=settings.narrative_model,
                input_tokens=response.usage.input_tokens, output_tokens=response.usage.output_tokens)
    return response.content[0].text


class NarrativeGenerator:
    """Generates and stores at most one narrative per lead."""

    def __init__(self, store, complete: CompleteFn | None = None):
        self.store = store
        self.complete = complete

    def _score_context(self, lead, score) -> tuple[dict, list[dict]]:
        tier = self.store.get_score_tier(score.tier_id) if score.tier_id else None
        score_ctx = {
            "total_points": score.total_points,
            "total_possible": score.total_possible,
            "percentage": score.percentage,
            "tier_label": tier.label if tier else None,
        }
        category_json = score.category_scores_json or {}
        categories = []
        for cat in self.store.list_categories(lead.assessment_id):
            cs = category_json.get(str(cat.id))
            if cs and cs.get("percentage") is not None:
                categories.append({
                    "name": cat.name,
                    "points": cs["points"],
                    "possible": cs["possible"],
                    "percentage": cs["percentage"],
                    "tier_label": cs.get("tier_label"),
                })
        return score_ctx, categories

    def generate(self, lead_id: uuid.UUID) -> Narrative | None:
        existing = self.store.get_narrative(lead_id)
        if existing is not None:
            return existing

        lead = self.store.get_lead(lead_id)
        score = self.store.get_score(lead_id) if lead else None
        if lead is None or score is None:
            logger.warning("narrative_no_score", lead_id=str(lead_id))
            return None

        assessment = self.store.get_assessment(lead.assessment_id)
        tone = (assessment.settings if assessment else {}).get("narrative_tone", "consultative")
        if tone not in TONES:
            tone = "consultative"

        score_ctx, categories = self._score_context(lead, score)
        peers = [s.percentage for s in self.store.list_scores([lead.assessment_id])]
        benchmarks = compute_benchmarks(peers, score.percentage)

        content, model = None, TEMPLATE_MODEL
        if self.complete is not None:
            try:
                raw = self.complete(build_system_prompt(tone), build_user_prompt(score_ctx, categories, benchmarks))
                content = parse_narrative(raw)
                if content is None:
                    logger.warning("narrative_unparsable_output", lead_id=str(lead_id))
                else:
                    model = settings.narrative_model
            except anthropic.APIError as e:
                logger.error("narrative_generation_failed", lead_id=str(lead_id), error=str(e))

        if content is None:
            content = template_narrative(score_ctx, categories, benchmarks)

        narrative = Narrative(id=uuid.uuid4(), lead_id=lead_id, model=model, content_json=content)
        self.store.add_narrative(narrative)
        logger.info("narrative_generated", lead_id=str(lead_id), model=model, tone=tone)
        return narrative
