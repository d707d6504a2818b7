"""Tests for notification rendering, quiet hours and channel tests."""
import json
from datetime import datetime

import httpx
import pytest

from statusflow.exceptions import NotificationError
from statusflow.models import AlertRule, CheckResult, NotificationChannel
from statusflow.services.notifier import (
    NotificationDispatcher,
    build_alert_email,
    build_webhook_payload,
    in_quiet_hours,
)

from conftest import FakeEmailSender, WebhookRecorder, make_monitor

# Monday
NIGHT = datetime(2024, 1, 1, 23, 0)
NOON = datetime(2024, 1, 1, 12, 0)


def channel(type_, configuration, **overrides) -> NotificationChannel:
    values = dict(
        user_id="user-1",
        name=f"{type_} channel",
        type=type_,
        enabled=True,
        configuration=configuration,
        quiet_hours=None,
    )
    values.update(overrides)
    return NotificationChannel(**values)


class TestQuietHours:
    window = {"enabled": True, "startTime": "22:00", "endTime": "08:00", "timezone": "UTC"}

    def test_disabled_or_missing(self):
        assert not in_quiet_hours(None, NIGHT)
        assert not in_quiet_hours({**self.window, "enabled": False}, NIGHT)

    def test_window_wrapping_midnight(self):
        assert in_quiet_hours(self.window, NIGHT)
        assert in_quiet_hours(self.window, datetime(2024, 1, 2, 7, 59))
        assert not in_quiet_hours(self.window, NOON)

    def test_same_day_window(self):
        lunch = {"enabled": True, "startTime": "12:00", "endTime": "13:00", "timezone": "UTC"}
        assert in_quiet_hours(lunch, NOON)
        assert not in_quiet_hours(lunch, datetime(2024, 1, 1, 13, 0))

    def test_days_of_week(self):
        weekends = {**self.window, "daysOfWeek": [0, 6]}
        assert not in_quiet_hours(weekends, NIGHT)
        # Saturday
        assert in_quiet_hours(weekends, datetime(2024, 1, 6, 23, 0))

    def test_timezone(self):
        new_york = {**self.window, "timezone": "America/New_York"}
        # 03:00 UTC is 22:00 in New York
        assert in_quiet_hours(new_york, datetime(2024, 1, 2, 3, 0))
        assert not in_quiet_hours(new_york, NIGHT)


class TestRendering:
    def test_email_escapes_user_content(self):
        monitor = make_monitor(name="<script>alert(1)</script>", url="https://example.com/?a=1&b=2")
        result = CheckResult(
            status_code=0,
            response_time_ms=0,
            is_up=False,
            error_message="<b>refused</b>",
            created_at=NOON,
        )

        body = build_alert_email(monitor, result, "Site is DOWN <now>")

        assert "<script>" not in body
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in body
        assert "https://example.com/?a=1&amp;b=2" in body
        assert "&lt;b&gt;refused&lt;/b&gt;" in body
        assert "Site is DOWN &lt;now&gt;" in body
        assert "&#10060; DOWN" in body

    def test_webhook_payload(self):
        rule = AlertRule(name="Slow API")
        result = CheckResult(status_code=200, response_time_ms=4100, is_up=True, created_at=NOON)

        payload = build_webhook_payload(rule, make_monitor(), result)

        assert payload == {
            "alert": "Slow API",
            "monitor": "API",
            "url": "https://api.example.com/health",
            "status": "UP",
            "responseTime": 4100,
            "statusCode": 200,
            "timestamp": "2024-01-01T12:00:00Z",
        }


class TestRecipients:
    def test_skips_disabled_and_quiet_channels(self):
        dispatcher = NotificationDispatcher(email_sender=FakeEmailSender())
        channels = [
            channel("email", {"emailAddresses": ["a@example.com"]}),
            channel("email", {"emailAddresses": ["b@example.com"]}, enabled=False),
            channel(
                "email",
                {"emailAddresses": ["c@example.com"]},
                quiet_hours={"enabled": True, "startTime": "22:00", "endTime": "08:00", "timezone": "UTC"},
            ),
            channel("email", {"emailAddresses": ["a@example.com", "d@example.com"]}),
        ]

        assert dispatcher.resolve_recipients(channels, NIGHT) == ["a@example.com", "d@example.com"]

    def test_skips_misconfigured_channels(self):
        dispatcher = NotificationDispatcher(email_sender=FakeEmailSender())
        channels = [
            channel("email", {"emailAddresses": ["a@example.com"]}, quiet_hours={"enabled": True, "startTime": "25:00"}),
            channel("email", {"emailAddresses": "b@example.com"}),
            channel("email", {"emailAddresses": ["c@example.com"]}),
        ]

        assert dispatcher.resolve_recipients(channels, NOON) == ["c@example.com"]

    def test_falls_back_to_configured_address(self, monkeypatch):
        from statusflow.services import notifier

        monkeypatch.setattr(notifier.settings, "alert_email_to", "ops@example.com, noc@example.com")
        dispatcher = NotificationDispatcher(email_sender=FakeEmailSender())

        assert dispatcher.resolve_recipients([], NOON) == ["ops@example.com", "noc@example.com"]


class TestChannelTest:
    @pytest.mark.asyncio
    async def test_webhook_channel_success(self):
        recorder = WebhookRecorder()
        dispatcher = NotificationDispatcher(transport=httpx.MockTransport(recorder))
        target = channel("webhook", {"webhookUrl": "https://hooks.example.com/t", "webhookMethod": "PUT"})

        assert await dispatcher.test_channel(target) is True

        assert target.last_test_success is True
        assert target.last_test_at is not None
        assert recorder.requests[0].method == "PUT"
        assert json.loads(recorder.requests[0].content)["alert"] == "Test notification"

    @pytest.mark.asyncio
    async def test_webhook_channel_failure_reraised(self):
        dispatcher = NotificationDispatcher(transport=httpx.MockTransport(WebhookRecorder(502)))
        target = channel("webhook", {"webhookUrl": "https://hooks.example.com/t"})

        with pytest.raises(NotificationError):
            await dispatcher.test_channel(target)

        assert target.last_test_success is False
        assert target.last_test_at is not None

    @pytest.mark.asyncio
    async def test_email_channel(self):
        sender = FakeEmailSender()
        dispatcher = NotificationDispatcher(email_sender=sender)
        target = channel("email", {"emailAddresses": ["ops@example.com"]})

        await dispatcher.test_channel(target)

        assert sender.sent[0]["recipients"] == ["ops@example.com"]
        assert target.last_test_success is True

    @pytest.mark.asyncio
    async def test_slack_channel(self):
        recorder = WebhookRecorder()
        dispatcher = NotificationDispatcher(transport=httpx.MockTransport(recorder))
        target = channel("slack", {"slackWebhookUrl": "https://hooks.slack.com/x", "slackChannel": "#ops"})

        await dispatcher.test_channel(target)

        assert json.loads(recorder.requests[0].content)["channel"] == "#ops"

    @pytest.mark.asyncio
    async def test_unsupported_channel_type(self):
        dispatcher = NotificationDispatcher(email_sender=FakeEmailSender())
        target = channel("sms", {"phoneNumbers": ["+15550100"]})

        with pytest.raises(NotificationError):
            await dispatcher.test_channel(target)
        assert target.last_test_success is False


class TestEmailSender:
    @pytest.mark.asyncio
    async def test_missing_host_rejected(self):
        from statusflow.services.email_sender import EmailConfig, EmailSenderService

        sender = EmailSenderService(EmailConfig(host="", port=587, username="", password=""))

        with pytest.raises(NotificationError):
            await sender.send_email(["ops@example.com"], "subject", "<p>hi</p>")

    @pytest.mark.asyncio
    async def test_delivery_error_wrapped(self, monkeypatch):
        import smtplib
        from statusflow.services.email_sender import EmailConfig, EmailSenderService

        sender = EmailSenderService(EmailConfig(host="smtp.example.com", port=587, username="u", password="p"))

        def refuse(config, recipients, msg):
            raise smtplib.SMTPServerDisconnected("gone")

        monkeypatch.setattr(sender, "_deliver", refuse)

        with pytest.raises(NotificationError):
            await sender.send_email(["ops@example.com"], "subject", "<p>hi</p>")
