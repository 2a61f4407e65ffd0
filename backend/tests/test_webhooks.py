"""Tests for completion webhook delivery."""

import json
import uuid
from datetime import datetime

import httpx

from scoreflow.models import Score
from scoreflow.services.crypto import encrypt_value
from scoreflow.services.webhooks import (
    SIGNATURE_HEADER, WebhookDispatcher, build_payload, default_backoff,
    serialize_payload, sign_payload, verify_signature,
)

from fakes.fake_store import FakeStore

SECRET = "whsec_test"
URL = "https://hooks.client.com/scoreflow"


class Target:
    """Scripted webhook receiver: returns the listed status codes in order."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0)
        if isinstance(status, Exception):
            raise status
        return httpx.Response(status, text="ok" if status < 300 else "x" * 5000)


class TestSignature:
    def test_sign_and_verify(self):
        body = b'{"event":"assessment.completed"}'
        signature = sign_payload(SECRET, body)
        assert len(signature) == 64
        assert verify_signature(SECRET, body, signature)
        assert not verify_signature("other", body, signature)

    def test_serialization_is_compact(self):
        assert serialize_payload({"a": 1, "b": [1, 2]}) == b'{"a":1,"b":[1,2]}'

    def test_default_backoff(self):
        assert default_backoff() == (2.0, 4.0)


class TestWebhookDispatcher:
    def setup_method(self):
        self.store = FakeStore()
        self.org = self.store.make_org(plan_tier="professional")
        self.assessment = self.store.make_assessment(
            self.org, webhook_url=URL, webhook_secret_encrypted=encrypt_value(SECRET),
        )
        self.category = self.store.make_category(self.assessment, "Strategy", weight=100)
        self.tier = self.store.make_tier(self.assessment, "Leading", 71, 100)
        self.lead = self.store.make_lead(
            self.assessment, status="completed", completed_at=datetime(2025, 3, 15, 12, 0),
            utm_json={"utm_source": "linkedin"},
        )
        self.store.scores.append(Score(
            id=uuid.uuid4(), lead_id=self.lead.id, assessment_id=self.assessment.id,
            total_points=8, total_possible=10, percentage=80, weighted_percentage=80, tier_id=self.tier.id,
            category_scores_json={str(self.category.id): {
                "points": 8, "possible": 10, "percentage": 80, "tier_id": str(self.tier.id),
                "tier_label": "Leading", "tier_colour": "#000000",
            }},
        ))
        self.sleeps: list[float] = []

    def _dispatcher(self, target):
        client = httpx.Client(transport=httpx.MockTransport(target))
        return WebhookDispatcher(self.store, client=client, backoff=(2.0, 4.0), sleep=self.sleeps.append)

    def test_succeeds_on_third_attempt(self):
        target = Target([500, 502, 200])
        result = self._dispatcher(target).dispatch(self.lead.id)

        assert result.success is True
        assert result.attempts == 3
        assert len(self.store.webhook_logs) == 3
        assert [log.attempt for log in self.store.webhook_logs] == [1, 2, 3]
        assert [log.success for log in self.store.webhook_logs] == [False, False, True]
        assert self.store.webhook_logs[0].error_message == "HTTP 500"
        assert self.sleeps == [2.0, 4.0]

    def test_always_failing_target_does_not_raise(self):
        target = Target([500, 500, 500])
        result = self._dispatcher(target).dispatch(self.lead.id)

        assert result.success is False
        assert len(self.store.webhook_logs) == 3
        assert not any(log.success for log in self.store.webhook_logs)
        assert len(target.requests) == 3

    def test_network_error_logged_without_status(self):
        target = Target([httpx.ConnectError("connection refused"), 200])
        result = self._dispatcher(target).dispatch(self.lead.id)

        assert result.success is True
        first = self.store.webhook_logs[0]
        assert first.status_code is None
        assert "connection refused" in first.error_message

    def test_stops_on_first_success(self):
        target = Target([204])
        self._dispatcher(target).dispatch(self.lead.id)
        assert len(self.store.webhook_logs) == 1
        assert self.sleeps == []

    def test_response_body_truncated(self):
        self._dispatcher(Target([500, 500, 500])).dispatch(self.lead.id)
        assert len(self.store.webhook_logs[0].response_body) == 2000

    def test_signature_covers_sent_bytes(self):
        target = Target([200])
        self._dispatcher(target).dispatch(self.lead.id)

        request = target.requests[0]
        assert verify_signature(SECRET, request.content, request.headers[SIGNATURE_HEADER])
        assert request.headers["Content-Type"] == "application/json"

    def test_unsigned_without_secret(self):
        self.assessment.webhook_secret_encrypted = None
        target = Target([200])
        self._dispatcher(target).dispatch(self.lead.id)
        assert SIGNATURE_HEADER not in target.requests[0].headers

    def test_payload_shape(self):
        target = Target([200])
        self._dispatcher(target).dispatch(self.lead.id)

        payload = json.loads(target.requests[0].content)
        assert payload["event"] == "assessment.completed"
        assert payload["lead"]["id"] == str(self.lead.id)
        assert payload["lead"]["utm"] == {"utm_source": "linkedin"}
        assert payload["assessment"] == {"id": str(self.assessment.id), "title": self.assessment.title}
        assert payload["score"]["percentage"] == 80
        assert payload["score"]["tier_label"] == "Leading"
        assert payload["score"]["category_scores"] == [{
            "category_name": "Strategy", "points": 8, "possible": 10, "percentage": 80, "tier_label": "Leading",
        }]
        assert payload["completed_at"] == "2025-03-15T12:00:00"
        assert self.store.webhook_logs[0].request_payload == payload

    def test_no_url_skipped(self):
        self.assessment.webhook_url = None
        target = Target([])
        result = self._dispatcher(target).dispatch(self.lead.id)

        assert result.skipped is True
        assert self.store.webhook_logs == []
        assert target.requests == []

    def test_unknown_lead_skipped(self):
        result = self._dispatcher(Target([])).dispatch(uuid.uuid4())
        assert result.skipped is True


class TestBuildPayload:
    def test_missing_score_defaults(self):
        store = FakeStore()
        assessment = store.make_assessment(store.make_org())
        lead = store.make_lead(assessment)
        payload = build_payload(lead, assessment, None, None, [])
        assert payload["score"] == {
            "total_points": 0, "total_possible": 0, "percentage": None,
            "tier_label": None, "category_scores": [],
        }
        assert payload["completed_at"] is None


class TestDeliveryFaults:
    def setup_method(self):
        self.store = FakeStore()
        org = self.store.make_org()
        self.assessment = self.store.make_assessment(org, webhook_url=URL)
        self.lead = self.store.make_lead(self.assessment, status="completed")
        self.sleeps: list[float] = []

    def _dispatcher(self, target):
        client = httpx.Client(transport=httpx.MockTransport(target))
        return WebhookDispatcher(self.store, client=client, backoff=(2.0, 4.0), sleep=self.sleeps.append)

    def test_malformed_url_logged_as_failed_attempts(self):
        for url in ("https://exaémple..com/x", "http://[::1/x"):
            self.store.webhook_logs.clear()
            self.assessment.webhook_url = url
            target = Target([])

            result = self._dispatcher(target).dispatch(self.lead.id)

            assert result.success is False
            assert target.requests == []
            assert len(self.store.webhook_logs) == 3
            assert all(log.status_code is None and log.error_message for log in self.store.webhook_logs)

    def test_log_write_failure_does_not_stop_retries(self):
        self.store.fail_on.add("add_webhook_log")
        target = Target([500, 500, 200])

        result = self._dispatcher(target).dispatch(self.lead.id)

        assert result.success is True
        assert result.attempts == 3
        assert len(target.requests) == 3
        assert result.log_ids == []

    def test_log_write_failure_after_success_reports_success(self):
        self.store.fail_on.add("add_webhook_log")
        result = self._dispatcher(Target([200])).dispatch(self.lead.id)
        assert result.success is True
        assert result.attempts == 1
