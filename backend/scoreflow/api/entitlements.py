"""Plan entitlement endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from scoreflow.database import get_sync_db
from scoreflow.middleware.auth import verify_admin_token
from scoreflow.schemas.entitlement import EntitlementResponse, UsageSummaryResponse
from scoreflow.services.entitlements import EntitlementChecker, RESOURCES
from scoreflow.store import SqlStore

router = APIRouter(prefix="/entitlements", tags=["entitlements"])


@router.get("/{org_id}", response_model=UsageSummaryResponse)
def get_usage_summary(
    org_id: uuid.UUID,
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_sync_db),
):
    summary = EntitlementChecker(SqlStore(db)).usage_summary(org_id)
    tier = next(iter(summary.values())).tier
    return UsageSummaryResponse(
        tier=tier,
        resources={r: EntitlementResponse(resource=r, **e.as_dict()) for r, e in summary.items()},
    )


@router.get("/{org_id}/{resource}", response_model=EntitlementResponse)
def check_entitlement(
    org_id: uuid.UUID,
    resource: str,
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_sync_db),
):
    """Whether the organisation may create one more of resource right now."""
    if resource not in RESOURCES:
        raise HTTPException(status_code=404, detail=f"Unknown limit type: {resource}")
    result = EntitlementChecker(SqlStore(db)).check(org_id, resource)
    return EntitlementResponse(resource=resource, **result.as_dict())
