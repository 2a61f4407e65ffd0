"""Tests for the client portal new-assessment fan-out."""

import uuid
from unittest.mock import MagicMock

from scoreflow.services.portal_notify import (
    notify_new_assessment, render_new_assessment_email, resolve_recipients,
)

from fakes.fake_store import FakeStore


class TestResolveRecipients:
    def test_distinct_lowercased_in_order(self):
        emails = ["B@client.com", "a@client.com", "b@client.com", " A@Client.com ", ""]
        assert resolve_recipients(emails) == ["b@client.com", "a@client.com"]

    def test_empty(self):
        assert resolve_recipients([]) == []


class TestRenderEmail:
    def test_escapes_tenant_text(self):
        store = FakeStore()
        org = store.make_org(name="Smith & <Co>", slug="smith-co")
        assessment = store.make_assessment(org, title="Risk <Review>")
        subject, body = render_new_assessment_email(org, assessment)
        assert subject == "New assessment available: Risk <Review>"
        assert "Smith &amp; &lt;Co&gt;" in body
        assert "Risk &lt;Review&gt;" in body
        assert "/smith-co" in body


class TestNotifyNewAssessment:
    def setup_method(self):
        self.store = FakeStore()
        self.org = self.store.make_org(plan_tier="firm", portal_enabled=True)
        self.previous = self.store.make_assessment(self.org, title="Previous")
        self.assessment = self.store.make_assessment(self.org, title="New Scorecard")
        self.send = MagicMock(return_value=True)

    def _complete(self, email):
        return self.store.make_lead(self.previous, email=email, status="completed")

    def test_emails_each_distinct_respondent_once(self):
        self._complete("jane@client.com")
        self._complete("JANE@client.com")
        self._complete("bob@client.com")
        self.store.make_lead(self.previous, email="started@client.com", status="started")

        result = notify_new_assessment(self.store, self.assessment.id, self.send)

        assert result.sent == 2
        assert result.failed == 0
        recipients = [c.args[0] for c in self.send.call_args_list]
        assert recipients == ["jane@client.com", "bob@client.com"]
        subject = self.send.call_args_list[0].args[1]
        assert subject == "New assessment available: New Scorecard"

    def test_portal_disabled_skips(self):
        self.org.portal_enabled = False
        self._complete("jane@client.com")
        result = notify_new_assessment(self.store, self.assessment.id, self.send)
        assert result.skipped is True
        assert result.reason == "Portal not enabled"
        self.send.assert_not_called()

    def test_plan_without_portal_skips(self):
        self.org.plan_tier = "professional"
        self._complete("jane@client.com")
        result = notify_new_assessment(self.store, self.assessment.id, self.send)
        assert result.skipped is True
        assert result.reason == "Client portal not included in plan"
        self.send.assert_not_called()

    def test_plan_override_enables_portal(self):
        self.org.plan_tier = "professional"
        self.org.plan_overrides = {"client_portal": True}
        self._complete("jane@client.com")
        result = notify_new_assessment(self.store, self.assessment.id, self.send)
        assert result.sent == 1

    def test_failures_counted_and_do_not_stop_fanout(self):
        self._complete("a@client.com")
        self._complete("b@client.com")
        self._complete("c@client.com")
        self.send.side_effect = [False, RuntimeError("smtp down"), True]

        result = notify_new_assessment(self.store, self.assessment.id, self.send)

        assert self.send.call_count == 3
        assert result.sent == 1
        assert result.failed == 2

    def test_unknown_assessment(self):
        result = notify_new_assessment(self.store, uuid.uuid4(), self.send)
        assert result.as_dict() == {"skipped": True, "reason": "Assessment not found", "sent": 0, "failed": 0}

    def test_no_respondents(self):
        result = notify_new_assessment(self.store, self.assessment.id, self.send)
        assert result.skipped is False
        assert result.sent == 0
        self.send.assert_not_called()
