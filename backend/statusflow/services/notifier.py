"""Notification dispatcher - delivers triggered alerts through each channel."""
import html
import logging
from datetime import datetime, time, timezone
from typing import Dict, Iterable, List, Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import ValidationError

from ..config import settings
from ..exceptions import NotificationError
from ..models import AlertRule, CheckResult, Monitor, NotificationChannel, ChannelType
from ..schemas.alert import AlertChannels, ChannelConfiguration, QuietHours
from .email_sender import EmailSenderService, email_sender_service, parse_recipients

logger = logging.getLogger(__name__)

TEST_MESSAGE = "This is a test notification. If you received this, the channel is configured correctly."


def _parse_time(value: str) -> time:
    hours, minutes = value.split(":")[:2]
    return time(int(hours), int(minutes))


def in_quiet_hours(
    quiet_hours: Union[QuietHours, dict, None],
    now: Optional[datetime] = None,
) -> bool:
    """Check whether `now` (naive UTC) falls inside a quiet-hours window.

    Times are local to the window's timezone and the window may wrap
    midnight (22:00-08:00). days_of_week uses 0 = Sunday.
    """
    if not quiet_hours:
        return False
    if isinstance(quiet_hours, dict):
        quiet_hours = QuietHours.model_validate(quiet_hours)
    if not quiet_hours.enabled:
        return False

    try:
        tz = ZoneInfo(quiet_hours.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown quiet hours timezone {quiet_hours.timezone!r}, using UTC")
        tz = ZoneInfo("UTC")

    now = now or datetime.utcnow()
    local = now.replace(tzinfo=timezone.utc).astimezone(tz)

    if quiet_hours.days_of_week:
        if local.isoweekday() % 7 not in quiet_hours.days_of_week:
            return False

    start = _parse_time(quiet_hours.start_time)
    end = _parse_time(quiet_hours.end_time)
    current = local.time().replace(tzinfo=None)
    if start <= end:
        return start <= current < end
    return current >= start or current < end


def build_alert_email(
    monitor: Monitor,
    check_result: CheckResult,
    message: str,
    app_name: str = "StatusFlow",
) -> str:
    """Render the alert email. User-controlled strings are HTML-escaped."""
    timestamp = (check_result.created_at or datetime.utcnow()).isoformat() + "Z"
    status_glyph = "&#9989; UP" if check_result.is_up else "&#10060; DOWN"
    error_line = ""
    if check_result.error_message:
        error_line = f"<li><strong>Error:</strong> {html.escape(check_result.error_message)}</li>"

    return f"""
<h1>{html.escape(app_name)} Alert</h1>
<p><strong>Monitor:</strong> {html.escape(monitor.name)}</p>
<p><strong>URL:</strong> {html.escape(monitor.url)}</p>
<p><strong>Time:</strong> {timestamp}</p>

<h3>Issues Detected:</h3>
<ul>
    <li>{html.escape(message)}</li>
</ul>

<h3>Latest Check Result:</h3>
<ul>
    <li><strong>Status Code:</strong> {check_result.status_code}</li>
    <li><strong>Response Time:</strong> {check_result.response_time_ms}ms</li>
    <li><strong>Status:</strong> {status_glyph}</li>
    {error_line}
</ul>

<p><em>This is an automated alert from {html.escape(app_name)}.</em></p>
"""


def build_webhook_payload(rule: AlertRule, monitor: Monitor, check_result: CheckResult) -> dict:
    return {
        "alert": rule.name,
        "monitor": monitor.name,
        "url": monitor.url,
        "status": "UP" if check_result.is_up else "DOWN",
        "responseTime": check_result.response_time_ms,
        "statusCode": check_result.status_code,
        "timestamp": (check_result.created_at or datetime.utcnow()).isoformat() + "Z",
    }


class NotificationDispatcher:
    """Sends alerts through email and webhook channels independently.

    A failing channel is logged and recorded as False; it never stops the
    other channels or the audit record.
    """

    def __init__(
        self,
        email_sender: Optional[EmailSenderService] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.email_sender = email_sender or email_sender_service
        self.transport = transport
        self.logger = logger or logging.getLogger(__name__)

    def resolve_recipients(
        self,
        email_channels: Iterable[NotificationChannel],
        now: Optional[datetime] = None,
    ) -> List[str]:
        """Addresses of enabled email channels outside their quiet hours.

        A channel with unparseable configuration or quiet hours is skipped.
        """
        recipients: List[str] = []
        for channel in email_channels:
            if not channel.enabled:
                continue
            try:
                if in_quiet_hours(channel.quiet_hours, now):
                    self.logger.info(f"Channel {channel.name} is in quiet hours, skipping")
                    continue
                config = ChannelConfiguration.model_validate(channel.configuration or {})
            except ValueError as e:
                self.logger.error(f"Skipping misconfigured channel {channel.name}: {e}")
                continue
            for address in config.email_addresses:
                if address not in recipients:
                    recipients.append(address)
        if not recipients:
            recipients = parse_recipients(settings.alert_email_to)
        return recipients

    async def dispatch(
        self,
        rule: AlertRule,
        monitor: Monitor,
        check_result: CheckResult,
        message: str,
        email_channels: Iterable[NotificationChannel] = (),
        title: Optional[str] = None,
    ) -> Dict[str, bool]:
        """Deliver one alert. Returns {channel: delivered} for attempted channels."""
        notified: Dict[str, bool] = {}
        try:
            channels = AlertChannels.model_validate(rule.channels or {})
        except ValidationError as e:
            self.logger.error(f"Rule {rule.name} has invalid channels, nothing sent: {e}")
            return notified

        if channels.email:
            try:
                recipients = self.resolve_recipients(email_channels)
                if recipients:
                    subject = title or f"{settings.app_name} Alert: {monitor.name}"
                    body = build_alert_email(monitor, check_result, message, settings.app_name)
                    await self.email_sender.send_email(recipients, subject, body)
                    notified["email"] = True
                    self.logger.info(f"Alert email sent for monitor {monitor.name}")
                else:
                    self.logger.warning(f"No email recipients for rule {rule.name}, skipping email")
            except Exception as e:
                notified["email"] = False
                self.logger.error(f"Failed to send alert email for monitor {monitor.name}: {e}")

        webhook = channels.webhook
        if webhook and webhook.enabled:
            if webhook.url:
                try:
                    payload = build_webhook_payload(rule, monitor, check_result)
                    await self.send_webhook(webhook.url, payload, webhook.headers)
                    notified["webhook"] = True
                except Exception as e:
                    notified["webhook"] = False
                    self.logger.error(f"Failed to send webhook for monitor {monitor.name}: {e}")
            else:
                self.logger.warning(f"Webhook enabled without URL on rule {rule.name}, skipping")

        return notified

    async def send_webhook(
        self,
        url: str,
        payload: dict,
        headers: Optional[Dict[str, str]] = None,
        method: str = "POST",
    ):
        """Send a JSON webhook. Raises NotificationError on HTTP >= 400."""
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        async with httpx.AsyncClient(
            timeout=settings.webhook_timeout_seconds,
            transport=self.transport,
        ) as client:
            response = await client.request(method.upper(), url, json=payload, headers=request_headers)
        if response.status_code >= 400:
            raise NotificationError(f"Webhook returned {response.status_code}")
        self.logger.info(f"Webhook sent to {url}")

    async def test_channel(self, channel: NotificationChannel) -> bool:
        """Send a fixed test message through the channel's delivery path.

        last_test_at and last_test_success are updated whatever happens;
        the original error is re-raised on failure.
        """
        config = ChannelConfiguration.model_validate(channel.configuration or {})
        channel.last_test_at = datetime.utcnow()
        try:
            if channel.type == ChannelType.EMAIL.value:
                await self.email_sender.send_email(
                    config.email_addresses,
                    f"{settings.app_name} test notification",
                    f"<p>{html.escape(TEST_MESSAGE)}</p>",
                )
            elif channel.type == ChannelType.WEBHOOK.value:
                if not config.webhook_url:
                    raise NotificationError("Webhook URL is not configured")
                await self.send_webhook(
                    config.webhook_url,
                    {
                        "alert": "Test notification",
                        "message": TEST_MESSAGE,
                        "timestamp": channel.last_test_at.isoformat() + "Z",
                    },
                    config.webhook_headers,
                    method=config.webhook_method,
                )
            elif channel.type == ChannelType.SLACK.value:
                if not config.slack_webhook_url:
                    raise NotificationError("Slack webhook URL is not configured")
                payload = {"text": TEST_MESSAGE}
                if config.slack_channel:
                    payload["channel"] = config.slack_channel
                await self.send_webhook(config.slack_webhook_url, payload)
            else:
                raise NotificationError(f"Channel type {channel.type} does not support delivery")
        except Exception as e:
            channel.last_test_success = False
            self.logger.error(f"Test notification failed for channel {channel.name}: {e}")
            raise

        channel.last_test_success = True
        self.logger.info(f"Test notification sent for channel {channel.name}")
        return True


# Global instance
notification_dispatcher = NotificationDispatcher()
