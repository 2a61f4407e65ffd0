"""Common response schemas."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class AuditLogResponse(BaseModel):
    id: uuid.UUID
    org_id: uuid.UUID
    action: str
    actor: str
    resource_type: Optional[str]
    resource_id: Optional[str]
    summary: Optional[str]
    extra_data: Optional[dict]
    timestamp: datetime

    model_config = {"from_attributes": True}


class WebhookLogResponse(BaseModel):
    id: uuid.UUID
    assessment_id: uuid.UUID
    lead_id: uuid.UUID
    url: str
    status_code: Optional[int]
    attempt: int
    success: bool
    response_body: Optional[str]
    error_message: Optional[str]
    created_at: datetime

    model_config = {"from_attributes": True}


class FlagResponse(BaseModel):
    flag: str
    org_id: uuid.UUID
    enabled: bool


class JobAccepted(BaseModel):
    ok: bool = True
    job_id: Optional[str] = None
    message: str = ""


class HealthResponse(BaseModel):
    status: str
    version: str = "1.0.0"
    db: str
    redis: str
