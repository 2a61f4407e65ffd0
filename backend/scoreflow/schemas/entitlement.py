"""Entitlement response schemas."""

from pydantic import BaseModel


class EntitlementResponse(BaseModel):
    resource: str
    allowed: bool
    current: int
    limit: int  # -1 = unlimited
    percentage: int
    grace_limit: int
    tier: str


class UsageSummaryResponse(BaseModel):
    tier: str
    resources: dict[str, EntitlementResponse]
