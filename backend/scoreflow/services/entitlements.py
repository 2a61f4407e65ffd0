"""Plan entitlement checks - per-tenant usage against plan-tier limits, with grace for soft quotas."""

import math
import uuid
from dataclasses import dataclass, asdict
from datetime import datetime
from decimal import Decimal
from functools import lru_cache
from pathlib import Path

import yaml
import structlog

from scoreflow.config import settings

logger = structlog.get_logger()

PLANS_PATH = Path(__file__).parent.parent / "plans.yaml"

PLAN_TIERS = ("free", "starter", "professional", "firm")
DEFAULT_TIER = "free"
RESOURCES = ("assessments", "responses_per_month", "team_members")
GRACE_RESOURCES = {"responses_per_month"}
UNLIMITED = -1


class UnknownResourceError(ValueError):
    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Unknown limit type: {resource}")


@dataclass
class Entitlement:
    allowed: bool
    current: int
    limit: int
    percentage: int
    grace_limit: int
    tier: str

    @property
    def over_soft_limit(self) -> bool:
        """Past the raw limit but still inside the grace allowance."""
        return self.allowed and self.limit > 0 and self.current >= self.limit

    def as_dict(self) -> dict:
        return asdict(self)


@lru_cache(maxsize=4)
def load_plans(path: str = "") -> dict:
    """Load the plan catalog ({tier: {name, limits, features}}) from YAML."""
    plans_file = Path(path) if path else PLANS_PATH
    with open(plans_file) as f:
        config = yaml.safe_load(f) or {}
    tiers = config.get("tiers", {})
    missing = [t for t in PLAN_TIERS if t not in tiers]
    if missing:
        raise ValueError(f"Plan catalog {plans_file} missing tiers: {missing}")
    return tiers


def resolve_tier(plan_tier: str | None) -> str:
    """Unknown or missing tiers resolve to the free tier."""
    if plan_tier in PLAN_TIERS:
        return plan_tier
    if plan_tier:
        logger.warning("plan_tier_unknown_defaulting_to_free", plan_tier=plan_tier)
    return DEFAULT_TIER


def get_limit(tier: str, resource: str, overrides: dict | None = None) -> int:
    if resource not in RESOURCES:
        raise UnknownResourceError(resource)
    if overrides and resource in overrides:
        return int(overrides[resource])
    return int(load_plans(settings.plans_config_path)[tier]["limits"][resource])


def compute_grace_limit(resource: str, limit: int, multiplier: float) -> int:
    if limit == UNLIMITED:
        return UNLIMITED
    if resource not in GRACE_RESOURCES:
        return limit
    # Decimal so that e.g. 10 * 1.1 is exactly 11
    return math.ceil(Decimal(limit) * Decimal(str(multiplier)))


def usage_percentage(current: int, limit: int) -> int:
    if limit == UNLIMITED:
        return 0
    if limit <= 0:
        return 100 if current > 0 else 0
    return int(math.floor(current / limit * 100 + 0.5))


def evaluate(tier: str, resource: str, current: int, limit: int, multiplier: float) -> Entitlement:
    """Decide whether one more unit of resource is allowed at the given usage."""
    if limit == UNLIMITED:
        return Entitlement(allowed=True, current=current, limit=UNLIMITED,
                           percentage=0, grace_limit=UNLIMITED, tier=tier)

    effective = compute_grace_limit(resource, limit, multiplier)
    return Entitlement(
        allowed=limit > 0 and current < effective,
        current=current,
        limit=limit,
        percentage=usage_percentage(current, limit),
        grace_limit=effective,
        tier=tier,
    )


def feature_value_enabled(value) -> bool:
    """Booleans as-is, enum strings enabled unless "none", numbers enabled unless 0."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        if value in ("true", "false"):
            return value == "true"
        if value == "none":
            return False
        try:
            return int(value) != 0
        except ValueError:
            return True
    if isinstance(value, (int, float)):
        return value != 0
    return False


def month_start(now: datetime) -> datetime:
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


class EntitlementChecker:
    """Answers "is this action allowed for this tenant right now"."""

    def __init__(self, store, grace_multiplier: float | None = None):
        self.store = store
        self.grace_multiplier = grace_multiplier or settings.responses_grace_multiplier

    def _plan(self, org_id: uuid.UUID) -> tuple[str, dict]:
        org = self.store.get_organisation(org_id)
        if org is None:
            logger.warning("entitlement_org_not_found_defaulting_to_free", org_id=str(org_id))
            return DEFAULT_TIER, {}
        return resolve_tier(org.plan_tier), org.plan_overrides or {}

    def current_usage(self, org_id: uuid.UUID, resource: str, now: datetime | None = None) -> int:
        if resource == "assessments":
            return self.store.count_assessments(org_id)
        if resource == "team_members":
            return self.store.count_team_members(org_id)
        if resource == "responses_per_month":
            since = month_start(now or datetime.utcnow())
            return self.store.count_completed_leads_since(org_id, since)
        raise UnknownResourceError(resource)

    def check(self, org_id: uuid.UUID, resource: str, now: datetime | None = None) -> Entitlement:
        tier, overrides = self._plan(org_id)
        limit = get_limit(tier, resource, overrides)

        if limit == UNLIMITED:
            return evaluate(tier, resource, 0, limit, self.grace_multiplier)

        current = self.current_usage(org_id, resource, now)
        result = evaluate(tier, resource, current, limit, self.grace_multiplier)

        if not result.allowed:
            logger.info("entitlement_denied", org_id=str(org_id), resource=resource,
                        current=current, limit=limit, grace_limit=result.grace_limit, tier=tier)
        elif result.over_soft_limit:
            logger.info("entitlement_in_grace", org_id=str(org_id), resource=resource,
                        current=current, limit=limit, grace_limit=result.grace_limit)
        return result

    def usage_summary(self, org_id: uuid.UUID, now: datetime | None = None) -> dict[str, Entitlement]:
        return {resource: self.check(org_id, resource, now) for resource in RESOURCES}

    def is_feature_enabled(self, org_id: uuid.UUID, feature: str) -> bool:
        tier, overrides = self._plan(org_id)
        if feature in overrides:
            return feature_value_enabled(overrides[feature])
        features = load_plans(settings.plans_config_path)[tier].get("features", {})
        return feature_value_enabled(features.get(feature, False))
