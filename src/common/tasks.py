"""Common tasks."""

import structlog
from celery import shared_task
from django.conf import settings
from django.core.mail import EmailMultiAlternatives

from common.models import EmailLog

logger = structlog.get_logger(__name__)


@shared_task
def send_email(*, to: str | list[str], subject: str, body: str, html_body: str | None = None) -> None:
    """Send an email and keep a compressed copy in the EmailLog.

    Args:
        to (str): The email address.
        subject (str): The email subject.
        body (str): The email body.
        html_body (str | None): The HTML email body.
    """
    recipients = [to] if isinstance(to, str) else to
    email_msg = EmailMultiAlternatives(
        subject=subject,
        body=body,
        from_email=settings.DEFAULT_FROM_EMAIL,
        bcc=recipients,
    )
    if html_body:
        email_msg.attach_alternative(html_body, "text/html")
    email_msg.send(fail_silently=False)
    email_logs: list[EmailLog] = []
    for recipient in recipients:
        el = EmailLog(to=recipient, subject=subject)
        el.set_body(body=body)
        email_logs.append(el)
    EmailLog.objects.bulk_create(email_logs)
    logger.info("email_sent", recipient_count=len(recipients), subject=subject)
