import typing as t
from datetime import datetime
from decimal import Decimal

import structlog
from django.conf import settings
from django.db import transaction
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import ForbiddenError, InvalidCapacityError
from events.models import Event, WaitlistEntry

from .capacity_guard import schedule_promotion

logger = structlog.get_logger(__name__)

EDITABLE_FIELDS = ("name", "description", "starts_at", "price", "currency")


def assert_creator(event: Event, user: TurnstileUser) -> None:
    """Raise ForbiddenError unless the user created the event."""
    if event.creator_id != user.id:
        raise ForbiddenError("Only the event creator can do this.")


def create_event(
    creator: TurnstileUser,
    *,
    name: str,
    capacity: int,
    price: Decimal = Decimal("0"),
    currency: str | None = None,
    description: str = "",
    starts_at: datetime | None = None,
) -> Event:
    """Create a DRAFT event."""
    event = Event.objects.create(
        creator=creator,
        name=name,
        capacity=capacity,
        price=price,
        currency=currency or settings.DEFAULT_CURRENCY,
        description=description,
        starts_at=starts_at,
    )
    logger.info("event_created", event_id=str(event.id), creator_id=str(creator.id), capacity=capacity)
    return event


@transaction.atomic
def update_event(event: Event, **fields: t.Any) -> Event:
    """Update an event's details and capacity.

    Capacity can be lowered only down to the units already reserved. Raising the capacity of a
    sold-out event promotes one waitlist entry per new unit. Price changes never affect existing
    reservations, which carry their own quoted price.

    Raises:
        InvalidCapacityError: The new capacity is below the reserved units.
    """
    capacity = fields.pop("capacity", None)
    if capacity is not None and capacity != event.capacity:
        _change_capacity(event, capacity)
        event.refresh_from_db()

    changed = [name for name in EDITABLE_FIELDS if name in fields]
    for name in changed:
        setattr(event, name, fields[name])
    if changed:
        event.save(update_fields=[*changed, "updated_at"])
        logger.info("event_updated", event_id=str(event.id), fields=changed)
    return event


def _change_capacity(event: Event, capacity: int) -> None:
    if capacity < 1:
        raise InvalidCapacityError("Capacity must be at least 1.")
    locked = Event.objects.select_for_update().get(pk=event.pk)
    updated = Event.objects.filter(pk=event.pk, reserved_count__lte=capacity).update(
        capacity=capacity, updated_at=timezone.now()
    )
    if not updated:
        raise InvalidCapacityError(reserved_count=locked.reserved_count)

    logger.info(
        "event_capacity_changed",
        event_id=str(event.id),
        old_capacity=locked.capacity,
        new_capacity=capacity,
    )
    if locked.is_sold_out and capacity > locked.capacity:
        waiting = WaitlistEntry.objects.waiting().filter(event=locked).count()
        for _ in range(min(capacity - locked.capacity, waiting)):
            schedule_promotion(event.pk)


def publish_event(event: Event) -> Event:
    """Put a DRAFT event on sale."""
    if event.status != Event.EventStatus.PUBLISHED:
        event.status = Event.EventStatus.PUBLISHED
        event.save(update_fields=["status", "updated_at"])
        logger.info("event_published", event_id=str(event.id))
    return event
