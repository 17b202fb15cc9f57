import logging
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

import aiosmtplib

from pinauth.config import Settings, get_settings
from pinauth.models.user import User
from pinauth.utils.redaction import mask_email

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    """Email message."""

    to: str
    subject: str
    text_body: str
    html_body: str = ""


@dataclass
class DeliveryResult:
    success: bool
    error: Optional[str] = None


class Mailer(Protocol):
    async def send(self, message: EmailMessage) -> DeliveryResult: ...


class SmtpMailer:
    """Transactional mail over SMTP."""

    def __init__(self, settings: Settings):
        self.smtp_host = settings.smtp_host
        self.smtp_port = settings.smtp_port
        self.smtp_user = settings.smtp_user
        self.smtp_password = settings.smtp_password
        self.smtp_use_tls = settings.smtp_use_tls
        self.from_name = settings.smtp_from_name
        self.from_email = settings.smtp_from_email or settings.smtp_user

    def is_configured(self) -> bool:
        """Check if SMTP is configured."""
        return bool(self.smtp_host and self.from_email)

    async def send(self, message: EmailMessage) -> DeliveryResult:
        if not self.is_configured():
            return DeliveryResult(success=False, error="SMTP not configured")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = message.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = message.to

        msg.attach(MIMEText(message.text_body, "plain"))
        if message.html_body:
            msg.attach(MIMEText(message.html_body, "html"))

        try:
            await aiosmtplib.send(
                msg,
                hostname=self.smtp_host,
                port=self.smtp_port,
                username=self.smtp_user,
                password=self.smtp_password,
                start_tls=self.smtp_use_tls,
                timeout=10,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.exception("Email send to %s failed", mask_email(message.to))
            return DeliveryResult(success=False, error=str(e))
        return DeliveryResult(success=True)


def build_pin_code_email(user: User, pin_code: str, subject: str) -> EmailMessage:
    return EmailMessage(
        to=user.email,
        subject=subject,
        text_body=f"PIN CODE: {pin_code}",
        html_body=f"<p>Your sign-in code is <strong>{pin_code}</strong>.</p>",
    )


async def send_pin_code_email(
    mailer: Mailer, user: User, pin_code: str, subject: str
) -> DeliveryResult:
    """Deliver a sign-in code. Failures are logged and returned, never raised."""
    try:
        result = await mailer.send(build_pin_code_email(user, pin_code, subject))
    except Exception as e:
        logger.exception("Mailer raised while sending to %s", mask_email(user.email))
        return DeliveryResult(success=False, error=str(e))
    if not result.success:
        logger.warning(
            "Sign-in code for %s was not delivered: %s", mask_email(user.email), result.error
        )
    return result


def get_mailer() -> Mailer:
    return SmtpMailer(get_settings())
