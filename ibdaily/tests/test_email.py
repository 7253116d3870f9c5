import json

import httpx
import pytest

from ibdaily.core.config import Settings
from ibdaily.features.reminders.email import (
    RESEND_API_URL,
    DisabledEmailSender,
    EmailContent,
    EmailDeliveryError,
    ResendEmailSender,
    SmtpEmailSender,
    generate_reminder_email,
    get_email_sender,
)


def _settings(**overrides):
    return Settings(_env_file=None, **overrides)


def test_reminder_email_copy():
    content = generate_reminder_email(
        user_name="Asha", cohort_name="Bio HL", minutes_left=90, is_last_call=False, app_url="https://ib.example/"
    )
    assert content.subject == "Reminder: 90 minutes until deadline - IBDaily"
    assert "Hi Asha," in content.text
    assert "https://ib.example/submit" in content.text
    assert "Bio HL" in content.html


def test_last_call_email_copy():
    content = generate_reminder_email(user_name=None, cohort_name="Bio HL", minutes_left=15, is_last_call=True, app_url="http://x")
    assert content.subject == "Last call! 15 minutes to submit - IBDaily"
    assert content.text.startswith("This is your last call reminder!")
    assert "Hi there," in content.text


def test_html_body_escapes_names():
    content = generate_reminder_email(
        user_name="<b>Ann</b>", cohort_name="A & B", minutes_left=30, is_last_call=False, app_url="http://x"
    )
    assert "Hi &lt;b&gt;Ann&lt;/b&gt;," in content.html
    assert "<strong>A &amp; B</strong>" in content.html
    assert "<b>Ann</b>" not in content.html
    assert "Hi <b>Ann</b>," in content.text
    assert "A & B" in content.text


def test_sender_selection():
    assert isinstance(get_email_sender(_settings(EMAIL_PROVIDER="resend", RESEND_API_KEY="re_123")), ResendEmailSender)
    smtp = get_email_sender(
        _settings(EMAIL_PROVIDER="smtp", SMTP_HOST="smtp.example", SMTP_PORT=587, SMTP_USER="u", SMTP_PASS="p")
    )
    assert isinstance(smtp, SmtpEmailSender)
    assert smtp.is_configured


def test_incomplete_provider_config_disables_email():
    assert isinstance(get_email_sender(_settings(EMAIL_PROVIDER="resend")), DisabledEmailSender)
    assert isinstance(get_email_sender(_settings(EMAIL_PROVIDER="smtp", SMTP_HOST="smtp.example")), DisabledEmailSender)
    assert get_email_sender(_settings(EMAIL_PROVIDER=None)).is_configured is False


def test_resend_posts_message():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "email_1"})

    client = httpx.Client(transport=httpx.MockTransport(handler))
    sender = ResendEmailSender("re_123", "IBDaily <noreply@ibdaily.app>", client=client)
    sender.send(to="u1@example.com", content=EmailContent(subject="s", html="<p>h</p>", text="t"))

    assert seen["url"] == RESEND_API_URL
    assert seen["auth"] == "Bearer re_123"
    assert seen["body"]["to"] == "u1@example.com"
    assert seen["body"]["from"] == "IBDaily <noreply@ibdaily.app>"


def test_resend_rejection_raises():
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(422, text="bad")))
    sender = ResendEmailSender("re_123", "from@example.com", client=client)
    with pytest.raises(EmailDeliveryError):
        sender.send(to="u1@example.com", content=EmailContent(subject="s", html="h", text="t"))


def test_disabled_sender_refuses():
    with pytest.raises(EmailDeliveryError):
        DisabledEmailSender().send(to="u1@example.com", content=EmailContent(subject="s", html="h", text="t"))
