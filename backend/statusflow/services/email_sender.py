"""Email sender service - sends HTML alerts via SMTP."""
import asyncio
import logging
import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import List, Optional, Sequence
from dataclasses import dataclass

from ..config import settings
from ..exceptions import NotificationError

logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """SMTP configuration for sending emails."""
    host: str
    port: int
    username: str
    password: str
    use_tls: bool = True
    from_address: str = ""

    @classmethod
    def from_settings(cls) -> "EmailConfig":
        return cls(
            host=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
            from_address=settings.smtp_from,
        )


def parse_recipients(to_address: Optional[str]) -> List[str]:
    """Parse comma-separated email addresses into a list."""
    if not to_address:
        return []
    return [addr.strip() for addr in to_address.split(",") if addr.strip()]


class EmailSenderService:
    """Service for sending email via SMTP.

    smtplib is blocking, so delivery runs in the default executor.
    """

    def __init__(self, config: Optional[EmailConfig] = None):
        self.config = config

    async def send_email(
        self,
        recipients: Sequence[str],
        subject: str,
        html: str,
        config: Optional[EmailConfig] = None,
    ):
        """Send an HTML email to every recipient.

        Raises NotificationError when SMTP is not configured or delivery
        fails; the caller decides whether that is fatal.
        """
        config = config or self.config or EmailConfig.from_settings()
        recipients = [r for r in recipients if r]

        if not config.host:
            raise NotificationError("Email not configured - missing SMTP host")
        if not recipients:
            raise NotificationError("No email recipients configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = config.from_address or config.username
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(html, "html"))

        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(None, self._deliver, config, recipients, msg)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed for user '{config.username}': {e}")
            raise NotificationError(f"SMTP authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email via {config.host}:{config.port}: {type(e).__name__}: {e}")
            raise NotificationError(f"Failed to send email: {e}") from e

        logger.info(f"Email sent successfully to {len(recipients)} recipient(s): {subject}")

    def _deliver(self, config: EmailConfig, recipients: List[str], msg: MIMEMultipart):
        from_addr = config.from_address or config.username
        with smtplib.SMTP(config.host, config.port, timeout=30) as server:
            if config.use_tls:
                server.starttls(context=ssl.create_default_context())
            if config.username and config.password:
                server.login(config.username, config.password)
            server.sendmail(from_addr, recipients, msg.as_string())


# Global instance
email_sender_service = EmailSenderService()
