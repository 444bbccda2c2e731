"""Receivers turning ``notification_requested`` into stored, dispatched notifications."""

import typing as t

import structlog
from django.dispatch import receiver

from notifications.service.dispatcher import create_notification
from notifications.signals import notification_requested

logger = structlog.get_logger(__name__)


def _sender_name(sender: t.Any) -> str:
    return getattr(sender, "__name__", str(sender))


@receiver(notification_requested)
def handle_notification_request(sender: t.Any, **kwargs: t.Any) -> None:
    """Persist the notification and queue its delivery.

    Senders fire this from ``transaction.on_commit``; an exception here would surface in the
    request that already committed, so every failure is logged and dropped.
    """
    notification_type = kwargs.get("notification_type")
    user = kwargs.get("user")
    if not notification_type or user is None:
        logger.error(
            "notification_request_incomplete",
            notification_type=notification_type,
            has_user=user is not None,
            sender=_sender_name(sender),
        )
        return

    try:
        notification = create_notification(notification_type, user, kwargs.get("context") or {})

        from notifications.tasks import dispatch_notification

        dispatch_notification.delay(str(notification.id))
    except Exception:
        logger.exception(
            "notification_request_failed",
            notification_type=notification_type,
            user_id=str(user.id),
            sender=_sender_name(sender),
        )
