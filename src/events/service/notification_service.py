"""Requests to the notification gateway.

Every request is sent after the surrounding transaction commits; the gateway swallows its own
failures, so nothing here can roll back a ticketing change.
"""

import typing as t

import structlog
from django.conf import settings
from django.db import transaction

from events.models import Event, Payment, Ticket, WaitlistEntry
from notifications.enums import NotificationType
from notifications.signals import notification_requested

if t.TYPE_CHECKING:
    from accounts.models import TurnstileUser

logger = structlog.get_logger(__name__)


def _event_context(event: Event) -> dict[str, t.Any]:
    return {
        "event_id": str(event.id),
        "event_name": event.name,
        "event_start": event.starts_at.isoformat() if event.starts_at else "",
        "event_url": f"{settings.FRONTEND_BASE_URL}/events/{event.id}",
    }


def _send_on_commit(
    notification_type: NotificationType, user: "TurnstileUser", context: dict[str, t.Any]
) -> None:
    def _send() -> None:
        notification_requested.send(
            sender=__name__,
            notification_type=notification_type,
            user=user,
            context=context,
        )

    transaction.on_commit(_send)
    logger.debug("notification_scheduled", notification_type=notification_type, user_id=str(user.id))


def notify_ticket_issued(ticket: Ticket) -> None:
    context = _event_context(ticket.event) | {
        "ticket_id": str(ticket.id),
        "ticket_url": f"{settings.FRONTEND_BASE_URL}/tickets/{ticket.id}",
        "price_paid": str(ticket.price_paid),
    }
    _send_on_commit(NotificationType.TICKET_ISSUED, ticket.user, context)


def notify_ticket_cancelled(ticket: Ticket) -> None:
    context = _event_context(ticket.event) | {"ticket_id": str(ticket.id)}
    _send_on_commit(NotificationType.TICKET_CANCELLED, ticket.user, context)


def notify_ticket_transferred(ticket: Ticket, sender: "TurnstileUser") -> None:
    context = _event_context(ticket.event) | {
        "ticket_id": str(ticket.id),
        "ticket_url": f"{settings.FRONTEND_BASE_URL}/tickets/{ticket.id}",
        "sender_name": sender.get_display_name(),
    }
    _send_on_commit(NotificationType.TICKET_TRANSFERRED, ticket.user, context)


def notify_payment_failed(payment: Payment) -> None:
    context = _event_context(payment.event) | {"payment_id": str(payment.id)}
    _send_on_commit(NotificationType.PAYMENT_FAILED, payment.user, context)


def notify_waitlist_spot_opened(entry: WaitlistEntry) -> None:
    context = _event_context(entry.event) | {
        "waitlist_entry_id": str(entry.id),
        "hold_expires_at": entry.hold_expires_at.isoformat() if entry.hold_expires_at else "",
    }
    _send_on_commit(NotificationType.WAITLIST_SPOT_OPENED, entry.user, context)


def notify_waitlist_hold_expired(entry: WaitlistEntry) -> None:
    context = _event_context(entry.event) | {"waitlist_entry_id": str(entry.id)}
    _send_on_commit(NotificationType.WAITLIST_HOLD_EXPIRED, entry.user, context)
