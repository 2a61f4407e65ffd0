"""Score computation - question points, category aggregation, weighted overall and tier matching.

Everything here is pure: callers load configuration and responses, these
functions turn them into numbers.
"""

import math
from dataclasses import dataclass, field
from typing import Iterable, NamedTuple, Optional, Sequence

import structlog

logger = structlog.get_logger()

QUESTION_TYPES = {"single_select", "checkbox_select", "sliding_scale", "open_text"}
DEFAULT_SLIDING_SCALE_MAX = 10


class CategoryResult(NamedTuple):
    percentage: float
    weight: float


@dataclass
class CategoryScore:
    points: float
    possible: float
    percentage: Optional[int]
    tier_id: Optional[str] = None
    tier_label: Optional[str] = None
    tier_colour: Optional[str] = None

    def as_json(self) -> dict:
        return {
            "points": self.points,
            "possible": self.possible,
            "percentage": self.percentage,
            "tier_id": self.tier_id,
            "tier_label": self.tier_label,
            "tier_colour": self.tier_colour,
        }


@dataclass
class ScoreComputation:
    total_points: float
    total_possible: float
    percentage: int
    weighted_percentage: Optional[int]
    tier: object | None
    category_scores: dict[str, CategoryScore] = field(default_factory=dict)
    question_points: dict[str, float] = field(default_factory=dict)


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero for non-negative input."""
    return int(math.floor(value + 0.5))


def percentage(points: float, possible: float) -> int:
    if possible <= 0:
        return 0
    return round_half_up(points / possible * 100)


def weighted_percentage(categories: Sequence[CategoryResult]) -> int:
    """Aggregate category percentages into an overall percentage.

    Zero total weight falls back to the unweighted mean. Rounding is applied
    to the final value only.
    """
    if not categories:
        raise ValueError("weighted_percentage requires at least one category")

    total_weight = sum(c.weight for c in categories)
    if total_weight == 0:
        mean = sum(c.percentage for c in categories) / len(categories)
        return round_half_up(mean)

    weighted_sum = sum(c.percentage * c.weight for c in categories)
    return round_half_up(weighted_sum / total_weight)


def match_tier(pct: float, tiers: Iterable) -> object | None:
    """Return the tier whose inclusive [min_pct, max_pct] band contains pct.

    Bands are checked in ascending sort_order; when bands overlap the first
    match wins. Bands with min_pct > max_pct are ignored.
    """
    ordered = sorted(tiers, key=lambda t: t.sort_order)
    matches = [t for t in ordered if t.min_pct <= t.max_pct and t.min_pct <= pct <= t.max_pct]
    if not matches:
        return None
    if len(matches) > 1:
        logger.warning(
            "score_tier_overlap",
            percentage=pct,
            labels=[t.label for t in matches],
            selected=matches[0].label,
        )
    return matches[0]


def validate_tier_bands(tiers: Iterable) -> list[str]:
    """Check that bands partition [0, 100]. Returns a list of problems (empty when valid)."""
    ordered = sorted(tiers, key=lambda t: t.sort_order)
    if not ordered:
        return ["no tiers defined"]

    problems = []
    for t in ordered:
        if t.min_pct > t.max_pct:
            problems.append(f"{t.label}: min_pct {t.min_pct} > max_pct {t.max_pct}")
        if t.min_pct < 0 or t.max_pct > 100:
            problems.append(f"{t.label}: band outside 0-100")

    if ordered[0].min_pct != 0:
        problems.append(f"first band {ordered[0].label} starts at {ordered[0].min_pct}, expected 0")
    if ordered[-1].max_pct != 100:
        problems.append(f"last band {ordered[-1].label} ends at {ordered[-1].max_pct}, expected 100")

    for prev, cur in zip(ordered, ordered[1:]):
        expected = prev.max_pct + 1
        if cur.min_pct > expected:
            problems.append(f"gap between {prev.label} and {cur.label}")
        elif cur.min_pct < expected:
            problems.append(f"overlap between {prev.label} and {cur.label}")
    return problems


def score_question(question, options: list, response) -> tuple[float, float]:
    """Return (points_awarded, possible) for one question."""
    selected = list(response.selected_option_ids or []) if response is not None else []

    if question.type == "open_text":
        return 0, 0

    if question.type == "sliding_scale":
        possible = (question.settings_json or {}).get("max", DEFAULT_SLIDING_SCALE_MAX)
        if selected:
            try:
                points = int(selected[0])
            except (TypeError, ValueError):
                points = 0
        elif response is not None:
            points = response.points_awarded or 0
        else:
            points = 0
        return points, possible

    if question.type == "checkbox_select":
        possible = sum(o.points for o in options if o.points > 0)
        chosen = {str(s) for s in selected}
        points = sum(o.points for o in options if str(o.id) in chosen)
        return points, possible

    # single_select (and unknown types scored the same way)
    possible = max((o.points for o in options), default=0)
    points = 0
    if selected:
        chosen = next((o for o in options if str(o.id) == str(selected[0])), None)
        points = chosen.points if chosen else 0
    return points, possible


def compute_score(
    questions: list,
    options: list,
    responses: list,
    categories: list,
    tiers: list,
    scoring_method: str = "points",
) -> ScoreComputation:
    """Compute question, category and overall scores for one lead."""
    options_by_question: dict[str, list] = {}
    for o in options:
        options_by_question.setdefault(str(o.question_id), []).append(o)
    responses_by_question = {str(r.question_id): r for r in responses}

    question_points: dict[str, float] = {}
    category_totals: dict[str, list[float]] = {}
    for q in questions:
        points, possible = score_question(
            q, options_by_question.get(str(q.id), []), responses_by_question.get(str(q.id))
        )
        question_points[str(q.id)] = points
        totals = category_totals.setdefault(str(q.category_id), [0, 0])
        totals[0] += points
        totals[1] += possible

    category_scores: dict[str, CategoryScore] = {}
    overall_points = 0
    overall_possible = 0
    weighted_inputs: list[CategoryResult] = []

    for cat in sorted(categories, key=lambda c: c.sort_order):
        points, possible = category_totals.get(str(cat.id), [0, 0])
        cat_pct = percentage(points, possible) if possible > 0 else None
        cat_tier = match_tier(cat_pct, tiers) if cat_pct is not None else None
        category_scores[str(cat.id)] = CategoryScore(
            points=points,
            possible=possible,
            percentage=cat_pct,
            tier_id=str(cat_tier.id) if cat_tier else None,
            tier_label=cat_tier.label if cat_tier else None,
            tier_colour=cat_tier.colour if cat_tier else None,
        )
        if cat.include_in_total:
            overall_points += points
            overall_possible += possible
            if cat_pct is not None:
                weighted_inputs.append(CategoryResult(cat_pct, cat.weight or 0))

    overall_pct = percentage(overall_points, overall_possible)
    overall_weighted = weighted_percentage(weighted_inputs) if weighted_inputs else None

    tier_basis = overall_weighted if scoring_method == "weighted" and overall_weighted is not None else overall_pct
    tier = match_tier(tier_basis, tiers) if overall_possible > 0 else None

    return ScoreComputation(
        total_points=overall_points,
        total_possible=overall_possible,
        percentage=overall_pct,
        weighted_percentage=overall_weighted,
        tier=tier,
        category_scores=category_scores,
        question_points=question_points,
    )
