import typing as t

from django.conf import settings
from django.db import models
from django.db.models import Q
from django.utils import timezone

from common.models import TimeStampedModel


class WaitlistEntryQuerySet(models.QuerySet["WaitlistEntry"]):
    def pending(self) -> t.Self:
        """Entries still in the queue (WAITING or NOTIFIED)."""
        return self.filter(state__in=WaitlistEntry.PENDING_STATES)

    def waiting(self) -> t.Self:
        return self.filter(state=WaitlistEntry.WaitlistState.WAITING)

    def expired_holds(self) -> t.Self:
        """NOTIFIED entries whose hold window has passed."""
        return self.filter(state=WaitlistEntry.WaitlistState.NOTIFIED, hold_expires_at__lt=timezone.now())


class WaitlistEntry(TimeStampedModel):
    """A user's place in the queue of a sold-out event.

    ``position`` is assigned once on join and never renumbered. The position shown to users is
    their rank among the event's pending entries.
    """

    class WaitlistState(models.TextChoices):
        WAITING = "waiting"
        NOTIFIED = "notified"
        CONVERTED = "converted"
        EXPIRED = "expired"
        LEFT = "left"

    PENDING_STATES = (WaitlistState.WAITING, WaitlistState.NOTIFIED)

    event = models.ForeignKey("events.Event", on_delete=models.CASCADE, related_name="waitlist_entries")
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="waitlist_entries")
    position = models.PositiveIntegerField()
    state = models.CharField(max_length=20, choices=WaitlistState.choices, default=WaitlistState.WAITING)
    joined_at = models.DateTimeField(default=timezone.now)
    notified_at = models.DateTimeField(null=True, blank=True)
    hold_expires_at = models.DateTimeField(null=True, blank=True, db_index=True)

    objects = WaitlistEntryQuerySet.as_manager()

    class Meta:
        constraints = [
            models.UniqueConstraint(
                fields=["event", "user"],
                condition=Q(state__in=["waiting", "notified"]),
                name="unique_pending_waitlist_entry",
            ),
            models.UniqueConstraint(
                fields=["event", "position"],
                condition=Q(state__in=["waiting", "notified"]),
                name="unique_pending_waitlist_position",
            ),
        ]
        indexes = [
            models.Index(fields=["event", "state", "position"], name="idx_waitlist_event_state_pos"),
        ]
        ordering = ["position"]

    def __str__(self) -> str:
        return f"Waitlist #{self.position} ({self.state}) for {self.event_id}"
