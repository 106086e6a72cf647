"""Transactional email: welcome, parent joined, new message, points milestone.

Each template renders to a ``(subject, html, text)`` triple from
``templates/emails/<name>_{subject,body}.{txt,html}``.
"""

import logging

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string

from core.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

PREVIEW_LENGTH = 100


def _public_url(path=""):
    return f"{settings.HALLPASS_PUBLIC_URL.rstrip('/')}{path}"


def render_email(name: str, context: dict) -> tuple[str, str, str]:
    """Render the subject, HTML body and plain-text body of template *name*."""
    ctx = {"site_url": _public_url(), **context}
    subject = render_to_string(f"emails/{name}_subject.txt", ctx).strip()
    html = render_to_string(f"emails/{name}_body.html", ctx)
    text = render_to_string(f"emails/{name}_body.txt", ctx)
    return subject, html, text


def send_email(to, subject: str, html: str, text: str = "") -> int:
    """Send one message to one or many recipients.

    Raises:
        EmailDeliveryError: the backend failed; the cause is chained.
    """
    recipients = [to] if isinstance(to, str) else list(to)
    message = EmailMultiAlternatives(
        subject=subject,
        body=text or html,
        from_email=settings.DEFAULT_FROM_EMAIL,
        to=recipients,
    )
    message.attach_alternative(html, "text/html")
    try:
        sent = message.send(fail_silently=False)
    except Exception as exc:
        logger.error("Email service error to=%s subject=%r: %s", recipients, subject, exc)
        raise EmailDeliveryError(f"Could not send email: {exc}") from exc
    logger.info("Email sent to=%s subject=%r", recipients, subject)
    return sent


def send_welcome_email(user):
    subject, html, text = render_email("welcome", {
        "name": user.name or user.email,
        "is_teacher": user.role == "teacher",
        "dashboard_url": _public_url("/dashboard/"),
    })
    return send_email(user.email, subject, html, text)


def send_parent_joined_email(teacher, parent, classroom, student_name=""):
    subject, html, text = render_email("parent_joined", {
        "teacher_name": teacher.name or teacher.email,
        "parent_name": parent.name or parent.email,
        "class_name": classroom.name,
        "student_name": student_name,
        "messages_url": _public_url("/messages/"),
    })
    return send_email(teacher.email, subject, html, text)


def send_new_message_email(recipient, sender_name, content):
    subject, html, text = render_email("new_message", {
        "recipient_name": recipient.name or recipient.email,
        "sender_name": sender_name,
        "preview": content[:PREVIEW_LENGTH],
        "messages_url": _public_url("/messages/"),
    })
    return send_email(recipient.email, subject, html, text)


def send_points_milestone_email(parent, student_name, points, milestone):
    subject, html, text = render_email("points_milestone", {
        "parent_name": parent.name or parent.email,
        "student_name": student_name,
        "points": points,
        "milestone": milestone,
        "points_url": _public_url("/points/"),
    })
    return send_email(parent.email, subject, html, text)
