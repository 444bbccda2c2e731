"""Notification records.

Only the context is stored at request time; title and body are rendered by the delivery task.
"""

import typing as t

import structlog

from accounts.models import TurnstileUser
from notifications.enums import NotificationType
from notifications.models import Notification

logger = structlog.get_logger(__name__)


def create_notification(
    notification_type: NotificationType | str,
    user: TurnstileUser,
    context: dict[str, t.Any],
) -> Notification:
    """Store a PENDING notification for the user.

    Raises:
        ValueError: The notification type is unknown.
    """
    notification = Notification.objects.create(
        notification_type=NotificationType(notification_type),
        user=user,
        context=context,
    )
    logger.info(
        "notification_created",
        notification_id=str(notification.id),
        notification_type=notification.notification_type,
        user_id=str(user.id),
    )
    return notification
