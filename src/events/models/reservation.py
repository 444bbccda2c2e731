from datetime import datetime, timedelta

from django.conf import settings
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel


def _get_reservation_default_expiry() -> datetime:
    return timezone.now() + timedelta(minutes=settings.RESERVATION_TIMEOUT_MINUTES)


class ReservationQuerySet(models.QuerySet["Reservation"]):
    def held(self) -> "ReservationQuerySet":
        return self.filter(status=Reservation.ReservationStatus.HELD)

    def expired(self) -> "ReservationQuerySet":
        """HELD reservations whose checkout window has closed."""
        return self.held().filter(expires_at__lt=timezone.now())


class Reservation(TimeStampedModel):
    """A capacity unit held for a user while a purchase completes.

    Every HELD reservation is counted in ``Event.reserved_count``. It ends either CONFIRMED
    (the unit moves to the issued ticket) or RELEASED/EXPIRED (the unit goes back to the pool).
    """

    class ReservationStatus(models.TextChoices):
        HELD = "held"
        CONFIRMED = "confirmed"
        RELEASED = "released"
        EXPIRED = "expired"

    event = models.ForeignKey("events.Event", on_delete=models.CASCADE, related_name="reservations")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="reservations")
    status = models.CharField(
        max_length=20, choices=ReservationStatus.choices, default=ReservationStatus.HELD, db_index=True
    )
    original_price = models.DecimalField(max_digits=10, decimal_places=2)
    quoted_price = models.DecimalField(max_digits=10, decimal_places=2)
    promo_code = models.ForeignKey(
        "events.PromoCode", on_delete=models.SET_NULL, null=True, blank=True, related_name="reservations"
    )
    expires_at = models.DateTimeField(default=_get_reservation_default_expiry, db_index=True)

    objects = ReservationQuerySet.as_manager()

    class Meta:
        indexes = [
            models.Index(fields=["status", "expires_at"], name="idx_reservation_status_expiry"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Reservation {self.id} ({self.status}) for {self.event_id}"
