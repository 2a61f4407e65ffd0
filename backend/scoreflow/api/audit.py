"""Audit log and webhook delivery log viewer endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from scoreflow.database import get_db
from scoreflow.middleware.auth import verify_admin_token
from scoreflow.models import AuditLog, WebhookDeliveryLog
from scoreflow.schemas.common import AuditLogResponse, WebhookLogResponse

router = APIRouter(tags=["audit"])


@router.get("/audit", response_model=list[AuditLogResponse])
async def list_audit_logs(
    org_id: UUID | None = None,
    action: str | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    admin: str = Depends(verify_admin_token),
    db: AsyncSession = Depends(get_db),
):
    """List audit logs with filters."""
    query = select(AuditLog).order_by(AuditLog.timestamp.desc())

    if org_id:
        query = query.where(AuditLog.org_id == org_id)
    if action:
        query = query.where(AuditLog.action == action)

    query = query.offset((page - 1) * per_page).limit(per_page)

    result = await db.execute(query)
    return [AuditLogResponse.model_validate(log) for log in result.scalars().all()]


@router.get("/webhook-logs", response_model=list[WebhookLogResponse])
async def list_webhook_logs(
    assessment_id: UUID | None = None,
    lead_id: UUID | None = None,
    success: bool | None = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(50, ge=1, le=200),
    admin: str = Depends(verify_admin_token),
    db: AsyncSession = Depends(get_db),
):
    """List webhook delivery attempts, newest first."""
    query = select(WebhookDeliveryLog).order_by(WebhookDeliveryLog.created_at.desc())

    if assessment_id:
        query = query.where(WebhookDeliveryLog.assessment_id == assessment_id)
    if lead_id:
        query = query.where(WebhookDeliveryLog.lead_id == lead_id)
    if success is not None:
        query = query.where(WebhookDeliveryLog.success == success)

    query = query.offset((page - 1) * per_page).limit(per_page)

    result = await db.execute(query)
    return [WebhookLogResponse.model_validate(log) for log in result.scalars().all()]
