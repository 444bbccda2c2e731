import typing as t

import structlog
from celery import shared_task
from django.utils import timezone

from common.tasks import send_email
from notifications.enums import DeliveryStatus
from notifications.models import Notification
from notifications.service.templates import get_template

logger = structlog.get_logger(__name__)


@shared_task(name="notifications.dispatch_notification")
def dispatch_notification(notification_id: str) -> dict[str, t.Any]:
    """Render a notification and email it to its recipient.

    Delivery failures are recorded on the notification and never raised: the engine transaction
    that requested the notification has already committed.

    Args:
        notification_id: UUID of notification to dispatch

    Returns:
        Dict with the delivery outcome
    """
    notification = Notification.objects.select_related("user").get(pk=notification_id)

    template = get_template(notification.notification_type)
    notification.title, notification.body = template.render(notification.context)

    if not notification.user.email:
        notification.delivery_status = DeliveryStatus.FAILED
        notification.error_message = "Recipient has no email address."
        notification.save(update_fields=["title", "body", "delivery_status", "error_message", "updated_at"])
        logger.warning("notification_recipient_without_email", notification_id=notification_id)
        return {"notification_id": notification_id, "status": notification.delivery_status}

    try:
        send_email(to=notification.user.email, subject=notification.title, body=notification.body)
    except Exception as e:
        notification.delivery_status = DeliveryStatus.FAILED
        notification.error_message = str(e)
        logger.exception(
            "notification_delivery_failed",
            notification_id=notification_id,
            notification_type=notification.notification_type,
            error_type=type(e).__name__,
        )
    else:
        notification.delivery_status = DeliveryStatus.SENT
        notification.delivered_at = timezone.now()
        logger.info(
            "notification_delivered",
            notification_id=notification_id,
            notification_type=notification.notification_type,
        )

    notification.save(
        update_fields=["title", "body", "delivery_status", "delivered_at", "error_message", "updated_at"]
    )
    return {"notification_id": notification_id, "status": notification.delivery_status}
