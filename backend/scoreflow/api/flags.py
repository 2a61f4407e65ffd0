"""Feature flag resolution endpoint."""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from scoreflow.database import get_sync_db
from scoreflow.middleware.auth import verify_admin_token
from scoreflow.schemas.common import FlagResponse
from scoreflow.services.rollout import is_flag_enabled
from scoreflow.store import SqlStore

router = APIRouter(prefix="/flags", tags=["flags"])


@router.get("/{org_id}/{flag_name}", response_model=FlagResponse)
def resolve_flag_for_org(
    org_id: uuid.UUID,
    flag_name: str,
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_sync_db),
):
    """Resolve a flag for one organisation. Unknown flags resolve to off."""
    return FlagResponse(flag=flag_name, org_id=org_id, enabled=is_flag_enabled(SqlStore(db), org_id, flag_name))
