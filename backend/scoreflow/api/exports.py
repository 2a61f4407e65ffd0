"""Administrative data export endpoint."""

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from scoreflow.database import get_sync_db
from scoreflow.middleware.auth import verify_admin_token
from scoreflow.services.export import export_organisation
from scoreflow.store import SqlStore

router = APIRouter(prefix="/exports", tags=["exports"])


@router.post("/{org_id}", response_model=dict[str, str])
def export_org_data(
    org_id: uuid.UUID,
    admin: str = Depends(verify_admin_token),
    db: Session = Depends(get_sync_db),
):
    """CSV of every record type for one organisation, keyed by type."""
    store = SqlStore(db)
    if not store.get_organisation(org_id):
        raise HTTPException(status_code=404, detail="Organisation not found")
    return export_organisation(store, org_id, actor=admin)
