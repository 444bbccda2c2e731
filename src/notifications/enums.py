"""Enums for the notification system."""

from django.db.models import TextChoices


class NotificationType(TextChoices):
    """Notifications the ticketing engine asks the gateway to deliver."""

    # Ticket notifications
    TICKET_ISSUED = "ticket_issued"
    TICKET_CANCELLED = "ticket_cancelled"
    TICKET_TRANSFERRED = "ticket_transferred"
    PAYMENT_FAILED = "payment_failed"

    # Waitlist notifications
    WAITLIST_SPOT_OPENED = "waitlist_spot_opened"
    WAITLIST_HOLD_EXPIRED = "waitlist_hold_expired"


class DeliveryStatus(TextChoices):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
