import logging
from email.message import EmailMessage

import aiosmtplib

from society.config import Settings

logger = logging.getLogger(__name__)

# What a failed delivery can raise: SMTP refusals and connection problems
MAIL_ERRORS = (aiosmtplib.SMTPException, OSError)


class Mailer:
    """Plain-text mail over SMTP; logs instead of sending when no server is configured."""

    def __init__(self, settings: Settings):
        self.settings = settings

    async def send(self, subject: str, email_to: str, body: str) -> None:
        if not self.settings.MAIL_SERVER:
            logger.info(f"Mail server not configured, not sending '{subject}' to {email_to}")
            return

        message = EmailMessage()
        message["From"] = self.settings.MAIL_FROM
        message["To"] = email_to
        message["Subject"] = subject
        message.set_content(body)

        await aiosmtplib.send(
            message,
            hostname=self.settings.MAIL_SERVER,
            port=self.settings.MAIL_PORT,
            username=self.settings.MAIL_USERNAME,
            password=self.settings.MAIL_PASSWORD,
            start_tls=True,
        )


def verification_email(app_url: str, display_name: str, token: str) -> tuple:
    link = f"{app_url}/verify-email?token={token}"
    body = (
        f"Hi {display_name},\n\n"
        f"Confirm your email address by opening this link:\n{link}\n\n"
        "If you did not create an account you can ignore this message.\n"
    )
    return "Verify your email address", body


def password_reset_email(app_url: str, display_name: str, token: str) -> tuple:
    link = f"{app_url}/reset-password?token={token}"
    body = (
        f"Hi {display_name},\n\n"
        f"Someone asked to reset your password. Choose a new one here:\n{link}\n\n"
        "The link expires in one hour. If it wasn't you, ignore this message.\n"
    )
    return "Reset your password", body
