"""
Reminder email composition and delivery.

Providers are selected by EMAIL_PROVIDER. A provider with incomplete
configuration resolves to the disabled sender, so callers check
``is_configured`` instead of handling missing settings themselves.
"""
from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from html import escape
from typing import Optional, Protocol

import httpx

from ibdaily.core.config import Settings, settings

logger = logging.getLogger("ibdaily.email")

RESEND_API_URL = "https://api.resend.com/emails"


@dataclass(frozen=True)
class EmailContent:
    subject: str
    html: str
    text: str


class EmailDeliveryError(Exception):
    """Raised when a provider rejects or fails to deliver a message."""
    pass


class EmailSender(Protocol):
    """
    Protocol for email providers.

    ``send`` returns normally on success and raises EmailDeliveryError otherwise.
    """

    provider: str

    @property
    def is_configured(self) -> bool:
        ...

    def send(self, *, to: str, content: EmailContent) -> None:
        ...


def generate_reminder_email(
    *,
    user_name: Optional[str],
    cohort_name: str,
    minutes_left: int,
    is_last_call: bool,
    app_url: Optional[str] = None,
) -> EmailContent:
    base_url = (app_url or settings.APP_URL).rstrip("/")
    greeting_name = user_name or "there"

    if is_last_call:
        subject = f"Last call! {minutes_left} minutes to submit - IBDaily"
        urgency = "This is your last call reminder!"
        accent, background = "#DC2626", "#FEF2F2"
    else:
        subject = f"Reminder: {minutes_left} minutes until deadline - IBDaily"
        urgency = "Friendly reminder:"
        accent, background = "#2563EB", "#EFF6FF"

    html = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
  <div style="background: {background}; border-radius: 8px; padding: 20px; margin-bottom: 20px;">
    <h2 style="margin: 0 0 10px 0; color: {accent};">{urgency}</h2>
    <p style="margin: 0;">You have <strong>{minutes_left} minutes</strong> left to submit today's learning bullets.</p>
  </div>
  <p>Hi {escape(greeting_name)},</p>
  <p>Your cohort <strong>{escape(cohort_name)}</strong> is waiting for your submission!
  Don't break your streak - take 2 minutes to log what you learned today.</p>
  <p style="text-align: center; margin: 30px 0;"><a href="{base_url}/submit">Submit Now</a></p>
  <p style="font-size: 14px; color: #666;">Deadline: 9:00 PM IST</p>
  <hr>
  <p style="font-size: 12px; color: #9CA3AF;">You're receiving this because you enabled reminders in IBDaily.
  <a href="{base_url}/settings">Manage preferences</a></p>
</body>
</html>"""

    text = (
        f"{urgency}\n\n"
        f"You have {minutes_left} minutes left to submit today's learning bullets.\n\n"
        f"Hi {greeting_name},\n\n"
        f'Your cohort "{cohort_name}" is waiting for your submission! '
        "Don't break your streak - take 2 minutes to log what you learned today.\n\n"
        f"Submit now: {base_url}/submit\n\n"
        "Deadline: 9:00 PM IST\n\n"
        "---\n"
        "You're receiving this because you enabled reminders in IBDaily.\n"
        f"Manage preferences: {base_url}/settings"
    )
    return EmailContent(subject=subject, html=html, text=text)


class ResendEmailSender:
    provider = "resend"

    def __init__(self, api_key: str, from_address: str, *, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        self.api_key = api_key
        self.from_address = from_address
        self.timeout = timeout
        self._client = client

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def send(self, *, to: str, content: EmailContent) -> None:
        payload = {
            "from": self.from_address,
            "to": to,
            "subject": content.subject,
            "html": content.html,
            "text": content.text,
        }
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            if self._client is not None:
                response = self._client.post(RESEND_API_URL, headers=headers, json=payload)
            else:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(RESEND_API_URL, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(f"Resend request failed: {exc}") from exc

        if response.status_code >= 300:
            logger.warning("email.resend_rejected", extra={"status": response.status_code})
            raise EmailDeliveryError(f"Resend API error: {response.status_code}")


class SmtpEmailSender:
    provider = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        *,
        use_ssl: bool = False,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.use_ssl = use_ssl
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.port and self.user and self.password)

    def send(self, *, to: str, content: EmailContent) -> None:
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = to
        message["Subject"] = content.subject
        message.set_content(content.text)
        message.add_alternative(content.html, subtype="html")

        smtp_cls = smtplib.SMTP_SSL if self.use_ssl else smtplib.SMTP
        try:
            with smtp_cls(self.host, self.port, timeout=self.timeout) as server:
                if not self.use_ssl:
                    server.starttls()
                server.login(self.user, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(f"SMTP send failed: {exc}") from exc


class DisabledEmailSender:
    provider = "none"

    @property
    def is_configured(self) -> bool:
        return False

    def send(self, *, to: str, content: EmailContent) -> None:
        raise EmailDeliveryError("Email not configured")


def get_email_sender(cfg: Optional[Settings] = None) -> EmailSender:
    """Build the sender named by EMAIL_PROVIDER, or the disabled sender."""
    cfg = cfg or settings
    provider = (cfg.EMAIL_PROVIDER or "").strip().lower()

    if provider == "resend" and cfg.RESEND_API_KEY:
        return ResendEmailSender(cfg.RESEND_API_KEY, cfg.EMAIL_FROM)

    if provider == "smtp" and cfg.SMTP_HOST and cfg.SMTP_PORT and cfg.SMTP_USER and cfg.SMTP_PASS:
        return SmtpEmailSender(
            cfg.SMTP_HOST,
            cfg.SMTP_PORT,
            cfg.SMTP_USER,
            cfg.SMTP_PASS,
            cfg.EMAIL_FROM,
            use_ssl=cfg.SMTP_SECURE,
        )

    if provider:
        logger.warning("email.provider_incomplete", extra={"provider": provider})
    return DisabledEmailSender()
