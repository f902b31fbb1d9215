"""Email service: delivers OTP codes via async SMTP."""

from __future__ import annotations

import logging
from email.message import EmailMessage
from typing import Protocol

import aiosmtplib

from ceg_connect.config import settings

logger = logging.getLogger(__name__)

_OTP_HTML = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: #36B3A1; padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">CEG Connect</h1>
    <p style="color: white; margin: 5px 0 0 0;">Your College Community</p>
  </div>
  <div style="padding: 30px; background: #f9f9f9;">
    <h2 style="color: #333;">Your Verification Code</h2>
    <p style="color: #666;">Use the following code to verify your email address:</p>
    <div style="background: white; padding: 20px; text-align: center; border: 2px solid #36B3A1;">
      <h1 style="color: #36B3A1; font-size: 32px; margin: 0; letter-spacing: 5px;">{code}</h1>
    </div>
    <p style="color: #666; font-size: 14px;">
      This code will expire in {minutes} minutes. If you didn't request this code,
      please ignore this email.
    </p>
  </div>
</div>
"""


class Notifier(Protocol):
    """Outbound channel that delivers an issued code to its owner."""

    async def send_otp(self, to_email: str, code: str, expires_in: int) -> None:
        ...


class EmailService:
    """Sends transactional emails using the configured SMTP server."""

    async def send_otp(self, to_email: str, code: str, expires_in: int) -> None:
        """Send the verification code to *to_email*.

        Parameters
        ----------
        to_email:
            Recipient email address (the OTP identity).
        code:
            The 6-digit code.
        expires_in:
            Validity window in seconds, shown to the user in minutes.
        """
        minutes = max(expires_in // 60, 1)

        msg = EmailMessage()
        msg["Subject"] = f"{settings.app_name} - Your OTP Code"
        msg["From"] = settings.email_from
        msg["To"] = to_email
        msg.set_content(
            f"Your CEG Connect verification code is {code}.\n\n"
            f"It expires in {minutes} minutes. If you didn't request this code, "
            "please ignore this email."
        )
        msg.add_alternative(_OTP_HTML.format(code=code, minutes=minutes), subtype="html")

        logger.info("Sending OTP email to %s", to_email)

        await aiosmtplib.send(
            msg,
            hostname=settings.smtp_host,
            port=settings.smtp_port,
            username=settings.smtp_username or None,
            password=settings.smtp_password or None,
            start_tls=True,
        )

        logger.info("OTP email sent to %s", to_email)


class LogOnlyNotifier:
    """Notifier used when SMTP is not configured: records the send, delivers nothing."""

    async def send_otp(self, to_email: str, code: str, expires_in: int) -> None:
        logger.warning("SMTP not configured, OTP email to %s not delivered", to_email)
