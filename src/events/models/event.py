import typing as t

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Count, F, Q

from common.models import TimeStampedModel

if t.TYPE_CHECKING:
    from accounts.models import TurnstileUser


class EventQuerySet(models.QuerySet["Event"]):
    def published(self) -> t.Self:
        """Events that are on sale."""
        return self.filter(status=Event.EventStatus.PUBLISHED)

    def created_by(self, user: "TurnstileUser") -> t.Self:
        """Events owned by a creator."""
        return self.filter(creator=user)

    def with_sold_count(self) -> t.Self:
        """Annotate each event with the number of ACTIVE or USED tickets."""
        from .ticket import Ticket

        return self.annotate(
            sold_count=Count(
                "tickets",
                filter=Q(tickets__status__in=Ticket.LIVE_STATUSES),
                distinct=True,
            )
        )


class EventManager(models.Manager["Event"]):
    def get_queryset(self) -> EventQuerySet:
        """Get the base queryset."""
        return EventQuerySet(self.model, using=self._db)

    def published(self) -> EventQuerySet:
        """Events that are on sale."""
        return self.get_queryset().published()

    def created_by(self, user: "TurnstileUser") -> EventQuerySet:
        """Events owned by a creator."""
        return self.get_queryset().created_by(user)

    def with_sold_count(self) -> EventQuerySet:
        """Annotate each event with the number of ACTIVE or USED tickets."""
        return self.get_queryset().with_sold_count()


class Event(TimeStampedModel):
    class EventStatus(models.TextChoices):
        DRAFT = "draft"
        PUBLISHED = "published"

    creator = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="created_events")
    name = models.CharField(max_length=255, db_index=True)
    description = models.TextField(blank=True, default="")
    starts_at = models.DateTimeField(null=True, blank=True, db_index=True)
    capacity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    price = models.DecimalField(max_digits=10, decimal_places=2, default=0, validators=[MinValueValidator(0)])
    currency = models.CharField(max_length=3, default=settings.DEFAULT_CURRENCY)
    status = models.CharField(max_length=20, choices=EventStatus.choices, default=EventStatus.DRAFT, db_index=True)
    # Units held by HELD reservations plus ACTIVE/USED tickets. Written only by the capacity guard.
    reserved_count = models.PositiveIntegerField(default=0, editable=False)

    objects = EventManager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(reserved_count__lte=F("capacity")),
                name="event_reserved_within_capacity",
            ),
            models.CheckConstraint(condition=Q(capacity__gt=0), name="event_capacity_positive"),
            models.CheckConstraint(condition=Q(price__gte=0), name="event_price_not_negative"),
        ]
        indexes = [
            models.Index(fields=["status", "starts_at"], name="idx_event_status_starts_at"),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.name

    @property
    def available(self) -> int:
        """Capacity units not held by a reservation or a live ticket."""
        return max(0, self.capacity - self.reserved_count)

    @property
    def is_sold_out(self) -> bool:
        return self.reserved_count >= self.capacity
