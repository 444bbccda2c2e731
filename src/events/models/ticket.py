import secrets
import typing as t

from django.conf import settings
from django.db import models
from django.db.models import Q

from common.models import TimeStampedModel

if t.TYPE_CHECKING:
    from accounts.models import TurnstileUser


def generate_qr_token() -> str:
    """An opaque, unguessable bearer credential printed in the ticket QR code."""
    return secrets.token_urlsafe(settings.QR_TOKEN_BYTES)


class TicketQuerySet(models.QuerySet["Ticket"]):
    def live(self) -> t.Self:
        """Tickets that occupy a capacity unit."""
        return self.filter(status__in=Ticket.LIVE_STATUSES)

    def for_user(self, user: "TurnstileUser") -> t.Self:
        """Tickets the user holds or can manage as event creator."""
        return self.filter(Q(user=user) | Q(event__creator=user))

    def full(self) -> t.Self:
        return self.select_related("event", "user", "promo_code")


class TicketManager(models.Manager["Ticket"]):
    def get_queryset(self) -> TicketQuerySet:
        """Get the base queryset."""
        return TicketQuerySet(self.model, using=self._db)

    def live(self) -> TicketQuerySet:
        """Tickets that occupy a capacity unit."""
        return self.get_queryset().live()

    def for_user(self, user: "TurnstileUser") -> TicketQuerySet:
        """Tickets the user holds or can manage as event creator."""
        return self.get_queryset().for_user(user)

    def full(self) -> TicketQuerySet:
        return self.get_queryset().full()


class Ticket(TimeStampedModel):
    """A ticket for a specific user to a specific event."""

    class TicketStatus(models.TextChoices):
        ACTIVE = "active", "Active"
        USED = "used", "Used"
        CANCELLED = "cancelled", "Cancelled"

    LIVE_STATUSES = (TicketStatus.ACTIVE, TicketStatus.USED)

    event = models.ForeignKey("events.Event", on_delete=models.CASCADE, related_name="tickets")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="tickets")
    status = models.CharField(max_length=20, choices=TicketStatus.choices, default=TicketStatus.ACTIVE, db_index=True)
    qr_token = models.CharField(max_length=128, unique=True, default=generate_qr_token, editable=False)
    scanned_at = models.DateTimeField(null=True, blank=True, editable=False)
    scanned_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="scanned_tickets",
        editable=False,
    )
    price_paid = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    promo_code = models.ForeignKey(
        "events.PromoCode", on_delete=models.SET_NULL, null=True, blank=True, related_name="tickets"
    )
    reservation = models.OneToOneField(
        "events.Reservation", on_delete=models.SET_NULL, null=True, blank=True, related_name="ticket"
    )
    transferred_from = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="transferred_to"
    )
    cancelled_at = models.DateTimeField(null=True, blank=True)

    objects = TicketManager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["event", "user"],
                condition=Q(status__in=["active", "used"]),
                name="unique_live_ticket_per_event_user",
            ),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"Ticket for {self.event.name} for {self.user.username}"


class Payment(TimeStampedModel):
    class PaymentStatus(models.TextChoices):
        PENDING = "pending"
        SUCCESS = "success"
        FAILED = "failed"

    TERMINAL_STATUSES = (PaymentStatus.SUCCESS, PaymentStatus.FAILED)

    reservation = models.ForeignKey("events.Reservation", on_delete=models.CASCADE, related_name="payments")
    event = models.ForeignKey("events.Event", on_delete=models.CASCADE, related_name="payments")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="payments")
    ticket = models.OneToOneField(Ticket, on_delete=models.SET_NULL, null=True, blank=True, related_name="payment")
    status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    # Assigned by the payment provider once the checkout exists.
    external_reference = models.CharField(max_length=255, unique=True, null=True, blank=True)
    checkout_url = models.URLField(max_length=2048, blank=True, default="")
    raw_response = models.JSONField(blank=True, default=dict)  # To store provider reports for auditing

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Payment {self.id} ({self.status}) for Reservation {self.reservation_id}"

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES
