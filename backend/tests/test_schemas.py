"""Tests for request/response schemas."""

import pytest
from pydantic import ValidationError

from scoreflow.schemas.lead import LeadCaptureResponse, LeadSubmission


class TestLeadSubmission:
    def test_utm_collected(self):
        body = LeadSubmission(email="jane@client.com", utm_source="linkedin", utm_campaign="spring")
        assert body.utm() == {"utm_source": "linkedin", "utm_campaign": "spring"}

    def test_no_utm(self):
        assert LeadSubmission(email="jane@client.com").utm() is None

    def test_defaults(self):
        body = LeadSubmission()
        assert body.email == ""
        assert body.consent is False
        assert body.source == "direct"

    def test_overlong_phone_rejected(self):
        with pytest.raises(ValidationError):
            LeadSubmission(email="jane@client.com", phone="1" * 51)


class TestLeadCaptureResponse:
    def test_unknown_outcome_rejected(self):
        with pytest.raises(ValidationError):
            LeadCaptureResponse(outcome="maybe")
