"""
Outbound email service.

Plain SMTP through smtplib, run in a worker thread so the event loop is never
blocked, behind a circuit breaker so a dead relay fails fast. Every send is
best-effort: callers invoke it after their commit and a failure is only
logged.
"""

import asyncio
import html
import logging
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Optional, Dict, Any

from backend.app.core.config import settings
from backend.app.core.reliability import mail_circuit_breaker, CircuitOpenError

logger = logging.getLogger(__name__)


TEMPLATES: Dict[str, Dict[str, str]] = {
    "verification": {
        "subject": "Verify your email address",
        "text": "Hello {name},\n\nPlease verify your email address by opening:\n{link}\n\nThis link expires in 24 hours.",
        "html": "<p>Hello {name},</p><p>Please verify your email address:</p><p><a href=\"{link}\">Verify email</a></p><p>This link expires in 24 hours.</p>",
    },
    "password_reset": {
        "subject": "Reset your password",
        "text": "Hello {name},\n\nReset your password by opening:\n{link}\n\nThis link expires in 10 minutes. Ignore this email if you did not ask for it.",
        "html": "<p>Hello {name},</p><p><a href=\"{link}\">Reset your password</a></p><p>This link expires in 10 minutes. Ignore this email if you did not ask for it.</p>",
    },
    "trip_assigned": {
        "subject": "Trip {trip_number} assigned to you",
        "text": "Hello {name},\n\nTrip {trip_number} has been assigned to vehicle {vehicle}.\nScheduled: {scheduled_date}\nRoute: {route}",
        "html": "<p>Hello {name},</p><p>Trip <b>{trip_number}</b> has been assigned to vehicle {vehicle}.</p><p>Scheduled: {scheduled_date}<br>Route: {route}</p>",
    },
    "trip_created": {
        "subject": "Your trip {trip_number} is booked",
        "text": "Hello {name},\n\nYour load has been booked on trip {trip_number}.\nScheduled: {scheduled_date}\nRoute: {route}\nRate: {rate}",
        "html": "<p>Hello {name},</p><p>Your load has been booked on trip <b>{trip_number}</b>.</p><p>Scheduled: {scheduled_date}<br>Route: {route}<br>Rate: {rate}</p>",
    },
    "trip_completed": {
        "subject": "Trip {trip_number} delivered",
        "text": "Hello {name},\n\nTrip {trip_number} has been delivered and the proof of delivery verified.\nAmount due: {due_amount}",
        "html": "<p>Hello {name},</p><p>Trip <b>{trip_number}</b> has been delivered and the proof of delivery verified.</p><p>Amount due: {due_amount}</p>",
    },
}


def render(template: str, context: Dict[str, Any]) -> Dict[str, str]:
    """Fill a named template. Raises KeyError for unknown templates.

    Values going into the html part are escaped; names and addresses are user input.
    """
    parts = TEMPLATES[template]
    escaped = {key: html.escape(str(value)) for key, value in context.items()}
    return {
        key: value.format(**(escaped if key == "html" else context))
        for key, value in parts.items()
    }


def _deliver(to_email: str, subject: str, text_content: str, html_content: str) -> None:
    msg = MIMEMultipart('alternative')
    msg['Subject'] = subject
    msg['From'] = settings.smtp_from_email
    msg['To'] = to_email
    msg.attach(MIMEText(text_content, 'plain'))
    msg.attach(MIMEText(html_content, 'html'))

    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
        if settings.smtp_use_tls:
            server.starttls()
        if settings.smtp_username and settings.smtp_password:
            server.login(settings.smtp_username, settings.smtp_password)
        server.send_message(msg)


async def _deliver_async(to_email: str, subject: str, text_content: str, html_content: str) -> None:
    await asyncio.to_thread(_deliver, to_email, subject, text_content, html_content)


async def send_email(to_email: Optional[str], template: str, context: Dict[str, Any]) -> bool:
    """
    Render and send one email.

    Returns:
        True when the relay accepted the message. False when email is
        disabled, the recipient is missing, the circuit is open or SMTP failed.
    """
    if not to_email:
        return False
    content = render(template, context)
    if not settings.email_enabled:
        logger.info("Email disabled; skipping '%s' to %s", template, to_email)
        return False

    try:
        await mail_circuit_breaker.call(
            _deliver_async, to_email, content["subject"], content["text"], content["html"]
        )
        logger.info("Sent '%s' email to %s", template, to_email)
        return True
    except CircuitOpenError:
        logger.warning("SMTP circuit open; dropped '%s' email to %s", template, to_email)
        return False
    except Exception as e:
        logger.error("Failed to send '%s' email to %s: %s", template, to_email, e)
        return False


def frontend_link(path: str) -> str:
    return f"{settings.frontend_url.rstrip('/')}/{path.lstrip('/')}"
