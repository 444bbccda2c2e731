"""Plain-text templates for each notification type."""

import typing as t
from dataclasses import dataclass

from notifications.enums import NotificationType


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    body: str

    def render(self, context: dict[str, t.Any]) -> tuple[str, str]:
        """Render title and body, leaving unknown placeholders empty."""
        safe = _SafeContext(context)
        return self.title.format_map(safe), self.body.format_map(safe)


class _SafeContext(dict[str, t.Any]):
    def __missing__(self, key: str) -> str:
        return ""


TEMPLATES: dict[str, NotificationTemplate] = {
    NotificationType.TICKET_ISSUED: NotificationTemplate(
        title="Your ticket for {event_name}",
        body="Your ticket for {event_name} is confirmed. Show this code at the door: {ticket_url}",
    ),
    NotificationType.TICKET_CANCELLED: NotificationTemplate(
        title="Ticket cancelled: {event_name}",
        body="Your ticket for {event_name} has been cancelled.",
    ),
    NotificationType.TICKET_TRANSFERRED: NotificationTemplate(
        title="You received a ticket for {event_name}",
        body="{sender_name} transferred their ticket for {event_name} to you: {ticket_url}",
    ),
    NotificationType.PAYMENT_FAILED: NotificationTemplate(
        title="Payment failed for {event_name}",
        body="We could not complete your payment for {event_name}. Your reservation has been released.",
    ),
    NotificationType.WAITLIST_SPOT_OPENED: NotificationTemplate(
        title="A spot opened up for {event_name}",
        body=(
            "A ticket for {event_name} is available. You have priority until {hold_expires_at}. "
            "Get it here: {event_url}"
        ),
    ),
    NotificationType.WAITLIST_HOLD_EXPIRED: NotificationTemplate(
        title="Your waitlist hold for {event_name} expired",
        body="Your priority window for {event_name} has passed and the spot was offered to the next person.",
    ),
}


def get_template(notification_type: NotificationType | str) -> NotificationTemplate:
    """Look up the template for a notification type.

    Raises:
        KeyError: If the notification type has no template.
    """
    return TEMPLATES[NotificationType(notification_type)]
