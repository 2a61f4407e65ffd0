"""Email adapter - SMTP delivery for portal notifications."""

from dataclasses import dataclass, replace
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import aiosmtplib
import structlog

from scoreflow.config import settings

logger = structlog.get_logger()


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int
    user: str
    password: str
    use_tls: bool

    @property
    def configured(self) -> bool:
        return bool(self.host) and self.host != "localhost"

    @classmethod
    def resolve(cls, overrides: dict | None = None) -> "SmtpConfig":
        """Settings defaults, with any known keys from overrides applied."""
        base = cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            user=settings.smtp_user,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
        known = {k: v for k, v in (overrides or {}).items() if k in cls.__dataclass_fields__}
        return replace(base, **known)


def build_message(to_email: str, subject: str, body_html: str, sender: str) -> MIMEMultipart:
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = to_email
    msg.attach(MIMEText(body_html, "html"))
    return msg


async def send_email(
    to_email: str,
    subject: str,
    body_html: str,
    from_email: str | None = None,
    smtp_config: dict | None = None,
) -> bool:
    """Send one HTML email. True only when the SMTP server accepted it.

    Without a real SMTP host the message is not sent (draft mode) and the
    call reports False, so fan-out counts it as not delivered.
    """
    smtp = SmtpConfig.resolve(smtp_config)
    if not smtp.configured:
        logger.info("email_draft_mode_smtp_not_configured", to=to_email, subject=subject)
        return False

    message = build_message(to_email, subject, body_html, from_email or settings.email_from)
    try:
        await aiosmtplib.send(
            message,
            hostname=smtp.host,
            port=smtp.port,
            username=smtp.user or None,
            password=smtp.password or None,
            use_tls=smtp.use_tls,
        )
    except (aiosmtplib.SMTPException, OSError) as e:
        logger.error("email_send_failed", error=str(e), to=to_email)
        return False

    logger.info("email_sent", to=to_email, subject=subject)
    return True
