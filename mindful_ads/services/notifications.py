"""Approval workflow emails.

Messages are handed to FastAPI ``BackgroundTasks`` by the callers, so the
request never waits on SMTP. Delivery failures are logged and dropped.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from fastapi import BackgroundTasks

from mindful_ads.config import settings

logger = logging.getLogger("notifications.email")


@dataclass
class EmailMessage:
    to: str
    subject: str
    text_body: str
    html_body: Optional[str] = None


def send_email(message: EmailMessage) -> bool:
    if not settings.SMTP_HOST:
        logger.info("SMTP not configured; skipping email", extra={"to": message.to, "subject": message.subject})
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = message.subject
    msg["From"] = settings.EMAIL_FROM
    msg["To"] = message.to
    msg.attach(MIMEText(message.text_body, "plain"))
    if message.html_body:
        msg.attach(MIMEText(message.html_body, "html"))

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as server:
            server.starttls()
            if settings.SMTP_USER:
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
            server.sendmail(settings.EMAIL_FROM, [message.to], msg.as_string())
    except (smtplib.SMTPException, OSError):
        logger.exception("Failed to send email", extra={"to": message.to, "subject": message.subject})
        return False
    logger.info("Email sent", extra={"to": message.to, "subject": message.subject})
    return True


def _campaign_url(campaign_id: str) -> str:
    return f"{settings.FRONTEND_URL.rstrip('/')}/campaigns/{campaign_id}"


def campaign_submitted_email(*, to: str, user_name: str, campaign_name: str, campaign_id: str) -> EmailMessage:
    return EmailMessage(
        to=to,
        subject=f"Campaign submitted for review: {campaign_name}",
        text_body=(
            f"Hi {user_name},\n\n"
            f"Your campaign \"{campaign_name}\" has been submitted for review. "
            "Reviews usually take 2-4 business hours.\n\n"
            f"Track its status at {_campaign_url(campaign_id)}\n"
        ),
    )


def campaign_approved_email(
    *,
    to: str,
    user_name: str,
    campaign_name: str,
    campaign_id: str,
    activated: bool,
    notes: Optional[str] = None,
) -> EmailMessage:
    if activated:
        status_line = "It has been approved and is now live on the selected ad platforms."
    else:
        status_line = (
            "It has been approved. Launching on the ad platforms did not fully complete yet; "
            "our team will retry shortly."
        )
    notes_line = f"\nReviewer notes: {notes}\n" if notes else ""
    return EmailMessage(
        to=to,
        subject=f"Campaign approved: {campaign_name}",
        text_body=(
            f"Hi {user_name},\n\n"
            f"Good news! Your campaign \"{campaign_name}\" was reviewed. {status_line}\n"
            f"{notes_line}\n"
            f"View it at {_campaign_url(campaign_id)}\n"
        ),
    )


def campaign_rejected_email(
    *,
    to: str,
    user_name: str,
    campaign_name: str,
    campaign_id: str,
    feedback: str,
    needs_changes: bool,
    suggested_changes: Optional[list[str]] = None,
) -> EmailMessage:
    if needs_changes:
        subject = f"Changes requested: {campaign_name}"
        intro = "needs a few changes before it can go live. You can edit and resubmit it."
    else:
        subject = f"Campaign not approved: {campaign_name}"
        intro = "was not approved and has been cancelled."
    suggestions = ""
    if suggested_changes:
        suggestions = "\nSuggested changes:\n" + "\n".join(f"- {item}" for item in suggested_changes) + "\n"
    return EmailMessage(
        to=to,
        subject=subject,
        text_body=(
            f"Hi {user_name},\n\n"
            f"Your campaign \"{campaign_name}\" {intro}\n\n"
            f"Reviewer feedback: {feedback}\n"
            f"{suggestions}\n"
            f"View it at {_campaign_url(campaign_id)}\n"
        ),
    )


def background_notifier(background_tasks: BackgroundTasks):
    """Return a callable that queues each message on the response's background tasks."""

    def notify(message: EmailMessage) -> None:
        background_tasks.add_task(send_email, message)

    return notify
