"""Tests for the SMTP email adapter."""

import asyncio
from unittest.mock import AsyncMock, patch

import aiosmtplib

from scoreflow.adapters.email import SmtpConfig, build_message, send_email

SMTP = {"host": "smtp.client.com", "port": 587, "user": "u", "password": "p", "use_tls": False}


class TestEmailAdapter:
    def test_build_message_headers(self):
        msg = build_message("jane@client.com", "Hello", "<p>Hi</p>", "Acme <noreply@example.com>")
        assert msg["To"] == "jane@client.com"
        assert msg["Subject"] == "Hello"
        assert msg["From"] == "Acme <noreply@example.com>"

    def test_draft_mode_without_smtp_host(self):
        with patch("scoreflow.adapters.email.aiosmtplib.send", new_callable=AsyncMock) as send:
            assert asyncio.run(send_email("jane@client.com", "Hello", "<p>Hi</p>")) is False
            send.assert_not_called()

    def test_sent(self):
        with patch("scoreflow.adapters.email.aiosmtplib.send", new_callable=AsyncMock) as send:
            accepted = asyncio.run(send_email("jane@client.com", "Hello", "<p>Hi</p>", smtp_config=SMTP))
        assert accepted is True
        assert send.call_args.kwargs["hostname"] == "smtp.client.com"

    def test_smtp_failure_returns_false(self):
        error = aiosmtplib.SMTPConnectError("refused")
        with patch("scoreflow.adapters.email.aiosmtplib.send", new_callable=AsyncMock, side_effect=error):
            assert asyncio.run(send_email("jane@client.com", "Hello", "<p>Hi</p>", smtp_config=SMTP)) is False


class TestSmtpConfig:
    def test_overrides_applied_over_settings(self):
        smtp = SmtpConfig.resolve({"host": "smtp.client.com", "port": 2525, "unknown": "ignored"})
        assert smtp.host == "smtp.client.com"
        assert smtp.port == 2525
        assert smtp.configured is True

    def test_localhost_is_not_configured(self):
        assert SmtpConfig.resolve({"host": "localhost"}).configured is False
        assert SmtpConfig.resolve({"host": ""}).configured is False
