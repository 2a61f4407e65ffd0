"""Client portal fan-out - tell a tenant's past respondents about a newly published assessment."""

import html
import uuid
from dataclasses import dataclass
from typing import Callable

import structlog

from scoreflow.config import settings
from scoreflow.services.entitlements import EntitlementChecker

logger = structlog.get_logger()

DEFAULT_BRAND_COLOUR = "#1B3A5C"

# send(to_email, subject, body_html, from_email) -> accepted
SendFn = Callable[[str, str, str, str], bool]


@dataclass
class FanoutResult:
    skipped: bool = False
    reason: str | None = None
    sent: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return {"skipped": self.skipped, "reason": self.reason, "sent": self.sent, "failed": self.failed}


def render_new_assessment_email(org, assessment) -> tuple[str, str]:
    """Return (subject, html body)."""
    org_name = html.escape(org.name)
    title = html.escape(assessment.title)
    portal_url = html.escape(f"{settings.portal_base_url.rstrip('/')}/{org.slug}")
    colour = DEFAULT_BRAND_COLOUR

    subject = f"New assessment available: {assessment.title}"
    body = f"""<!DOCTYPE html>
<html><head><meta charset="utf-8"></head>
<body style="margin:0;padding:0;background:#f4f4f7;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',sans-serif;">
<table width="100%" cellpadding="0" cellspacing="0" style="background:#f4f4f7;padding:32px 16px;">
<tr><td align="center">
<table width="600" cellpadding="0" cellspacing="0" style="background:#fff;border-radius:12px;overflow:hidden;">
  <tr><td style="padding:32px 40px;text-align:center;">
    <h2 style="color:{colour};margin:0 0 16px;">{org_name}</h2>
    <h1 style="font-size:20px;margin:0 0 12px;">New Assessment Available</h1>
    <p style="font-size:15px;color:#555;line-height:1.6;">
      <strong>{title}</strong> is now available in your portal. Log in to take it.
    </p>
    <a href="{portal_url}" style="display:inline-block;background:{colour};color:#fff;padding:14px 32px;border-radius:8px;text-decoration:none;font-size:15px;font-weight:600;margin-top:16px;">
      Go to Portal
    </a>
  </td></tr>
</table>
</td></tr></table>
</body></html>"""
    return subject, body


def resolve_recipients(emails: list[str]) -> list[str]:
    """Distinct, lowercased, in first-seen order."""
    seen: dict[str, None] = {}
    for email in emails:
        normalised = (email or "").strip().lower()
        if normalised:
            seen.setdefault(normalised, None)
    return list(seen)


def notify_new_assessment(store, assessment_id: uuid.UUID, send: SendFn,
                          entitlements: EntitlementChecker | None = None) -> FanoutResult:
    """Email every distinct completed respondent of the tenant. One failed send does not stop the rest."""
    assessment = store.get_assessment(assessment_id)
    if assessment is None:
        logger.warning("portal_notify_assessment_not_found", assessment_id=str(assessment_id))
        return FanoutResult(skipped=True, reason="Assessment not found")

    org = store.get_organisation(assessment.org_id)
    if org is None:
        logger.warning("portal_notify_org_not_found", org_id=str(assessment.org_id))
        return FanoutResult(skipped=True, reason="Organisation not found")

    log = logger.bind(org_id=str(org.id), assessment_id=str(assessment.id))

    if not org.portal_enabled:
        log.info("portal_notify_skipped", reason="portal_disabled")
        return FanoutResult(skipped=True, reason="Portal not enabled")

    entitlements = entitlements or EntitlementChecker(store)
    if not entitlements.is_feature_enabled(org.id, "client_portal"):
        log.info("portal_notify_skipped", reason="plan_feature_disabled")
        return FanoutResult(skipped=True, reason="Client portal not included in plan")

    recipients = resolve_recipients(store.list_completed_lead_emails(org.id))
    subject, body = render_new_assessment_email(org, assessment)
    sender = f"{org.name} <{settings.email_from}>"

    result = FanoutResult()
    for email in recipients:
        try:
            accepted = send(email, subject, body, sender)
        except Exception as e:
            # One recipient must not abort the others
            log.error("portal_notify_send_error", to=email, error=str(e))
            accepted = False
        if accepted:
            result.sent += 1
        else:
            result.failed += 1

    log.info("portal_notify_complete", recipients=len(recipients), sent=result.sent, failed=result.failed)
    return result
