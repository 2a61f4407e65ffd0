"""Public lead capture request/response schemas."""

import uuid
from typing import Optional, Literal

from pydantic import BaseModel, Field


class LeadSubmission(BaseModel):
    """Lead capture form body. Requiredness is checked against the assessment's lead_fields."""
    email: str = ""  # validated by the coordinator so failures become a ValidationFailed outcome
    first_name: Optional[str] = Field(None, max_length=255)
    last_name: Optional[str] = Field(None, max_length=255)
    company: Optional[str] = Field(None, max_length=255)
    phone: Optional[str] = Field(None, max_length=50)
    consent: bool = False
    source: str = Field("direct", max_length=50)
    utm_source: Optional[str] = None
    utm_medium: Optional[str] = None
    utm_campaign: Optional[str] = None
    utm_term: Optional[str] = None
    utm_content: Optional[str] = None

    def utm(self) -> dict | None:
        values = {
            "utm_source": self.utm_source,
            "utm_medium": self.utm_medium,
            "utm_campaign": self.utm_campaign,
            "utm_term": self.utm_term,
            "utm_content": self.utm_content,
        }
        present = {k: v for k, v in values.items() if v}
        return present or None


class LeadCaptureResponse(BaseModel):
    outcome: Literal["created", "resumed", "already_completed", "validation_failed", "quota_exceeded"]
    lead_id: Optional[uuid.UUID] = None
    message: str = ""
