"""FIFO waitlist for sold-out events.

Positions are assigned once and never renumbered. What users see is their rank among the
event's pending (WAITING or NOTIFIED) entries, so departures never rewrite other rows.
"""

import typing as t
from datetime import datetime, timedelta
from uuid import UUID

import structlog
from django.conf import settings
from django.db import transaction
from django.db.models import F, Max
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import (
    AlreadyHasTicketError,
    AlreadyWaitingError,
    EventNotOnSaleError,
    NotSoldOutError,
    NotWaitingError,
)
from events.models import Event, Ticket, WaitlistEntry

from . import notification_service
from .ledger import retry_on_transient

logger = structlog.get_logger(__name__)


class WaitlistStatus(t.NamedTuple):
    on_waitlist: bool
    position: int | None = None
    total_ahead: int | None = None
    state: str | None = None
    hold_expires_at: datetime | None = None


def get_rank(entry: WaitlistEntry) -> int:
    """1-based rank of a pending entry among the event's pending entries."""
    ahead = WaitlistEntry.objects.pending().filter(event_id=entry.event_id, position__lt=entry.position).count()
    return ahead + 1


def _open_spots(event: Event) -> int:
    """Free capacity not already promised to a NOTIFIED entry with a running hold."""
    active_holds = WaitlistEntry.objects.filter(
        event=event,
        state=WaitlistEntry.WaitlistState.NOTIFIED,
        hold_expires_at__gt=timezone.now(),
    ).count()
    return event.available - active_holds


@retry_on_transient
@transaction.atomic
def join_waitlist(event: Event, user: TurnstileUser) -> WaitlistEntry:
    """Append the user to the event's queue.

    The event row is locked so that concurrent joins get distinct, increasing positions.

    Raises:
        EventNotOnSaleError: The event is not published.
        AlreadyHasTicketError: The user already holds a ticket or reservation.
        AlreadyWaitingError: The user already has a pending entry.
        NotSoldOutError: Tickets can still be bought directly.
    """
    locked_event = Event.objects.select_for_update().get(pk=event.pk)
    if locked_event.status != Event.EventStatus.PUBLISHED:
        raise EventNotOnSaleError()
    if Ticket.objects.live().filter(event=locked_event, user=user).exists():
        raise AlreadyHasTicketError()
    if WaitlistEntry.objects.pending().filter(event=locked_event, user=user).exists():
        raise AlreadyWaitingError()
    if not locked_event.is_sold_out:
        raise NotSoldOutError()

    last_position = WaitlistEntry.objects.pending().filter(event=locked_event).aggregate(last=Max("position"))["last"]
    entry = WaitlistEntry.objects.create(
        event=locked_event,
        user=user,
        position=(last_position or 0) + 1,
    )
    logger.info(
        "waitlist_joined",
        event_id=str(locked_event.id),
        user_id=str(user.id),
        waitlist_entry_id=str(entry.id),
        position=entry.position,
    )
    return entry


@retry_on_transient
@transaction.atomic
def leave_waitlist(event: Event, user: TurnstileUser) -> None:
    """Move the user's pending entry to LEFT.

    A NOTIFIED user leaving gives up their hold, so the next entry is promoted when a spot is open.

    Raises:
        NotWaitingError: The user has no pending entry.
    """
    entry = WaitlistEntry.objects.pending().select_for_update().filter(event=event, user=user).first()
    if entry is None:
        raise NotWaitingError()

    was_notified = entry.state == WaitlistEntry.WaitlistState.NOTIFIED
    entry.state = WaitlistEntry.WaitlistState.LEFT
    entry.save(update_fields=["state", "updated_at"])
    logger.info("waitlist_left", event_id=str(event.id), user_id=str(user.id), was_notified=was_notified)

    if was_notified:
        locked_event = Event.objects.select_for_update().get(pk=event.pk)
        if _open_spots(locked_event) > 0:
            promote(locked_event.pk)


def get_waitlist_status(event: Event, user: TurnstileUser) -> WaitlistStatus:
    entry = WaitlistEntry.objects.pending().filter(event=event, user=user).first()
    if entry is None:
        return WaitlistStatus(on_waitlist=False)
    rank = get_rank(entry)
    return WaitlistStatus(
        on_waitlist=True,
        position=rank,
        total_ahead=rank - 1,
        state=entry.state,
        hold_expires_at=entry.hold_expires_at,
    )


def list_waitlist(event: Event) -> list[tuple[WaitlistEntry, int]]:
    """Pending entries of an event in queue order, each with its displayed rank."""
    entries = WaitlistEntry.objects.pending().filter(event=event).select_related("user").order_by("position")
    return [(entry, rank) for rank, entry in enumerate(entries, start=1)]


@retry_on_transient
@transaction.atomic
def promote(event_id: UUID | str) -> WaitlistEntry | None:
    """Notify the lowest-position WAITING entry that a spot opened up.

    The entry becomes NOTIFIED with a hold window of ``WAITLIST_HOLD_HOURS``. The freed unit is not
    set aside: the user still has to purchase, they are simply first in line.

    Returns:
        The promoted entry, or None when nobody is waiting.
    """
    # Lock the event so promotions of the same event run one at a time.
    event = Event.objects.select_for_update().get(pk=event_id)
    entry = WaitlistEntry.objects.waiting().select_for_update().filter(event=event).order_by("position").first()
    if entry is None:
        logger.debug("waitlist_promotion_noop", event_id=str(event.id))
        return None

    now = timezone.now()
    entry.state = WaitlistEntry.WaitlistState.NOTIFIED
    entry.notified_at = now
    entry.hold_expires_at = now + timedelta(hours=settings.WAITLIST_HOLD_HOURS)
    entry.save(update_fields=["state", "notified_at", "hold_expires_at", "updated_at"])
    logger.info(
        "waitlist_entry_promoted",
        event_id=str(event.id),
        user_id=str(entry.user_id),
        waitlist_entry_id=str(entry.id),
        position=entry.position,
        hold_expires_at=entry.hold_expires_at.isoformat(),
    )
    notification_service.notify_waitlist_spot_opened(entry)
    return entry


@retry_on_transient
@transaction.atomic
def expire_hold(entry_id: UUID | str) -> bool:
    """Expire one NOTIFIED entry whose hold has passed and cascade to the next in line.

    The next entry is promoted only while a spot is still open; if someone else bought the freed
    unit in the meantime the queue simply waits for the next release.

    Returns:
        Whether the entry was expired by this call.
    """
    entry = WaitlistEntry.objects.expired_holds().select_for_update().filter(pk=entry_id).first()
    if entry is None:
        return False

    entry.state = WaitlistEntry.WaitlistState.EXPIRED
    entry.save(update_fields=["state", "updated_at"])
    logger.info(
        "waitlist_hold_expired",
        event_id=str(entry.event_id),
        user_id=str(entry.user_id),
        waitlist_entry_id=str(entry.id),
    )
    notification_service.notify_waitlist_hold_expired(entry)

    event = Event.objects.select_for_update().get(pk=entry.event_id)
    if _open_spots(event) > 0:
        promote(event.pk)
    return True


def expire_waitlist_holds() -> int:
    """Sweep every NOTIFIED entry whose hold window has passed, then fill spots left open.

    Returns:
        Number of expired holds.
    """
    expired = 0
    entry_ids = WaitlistEntry.objects.expired_holds().order_by("event_id", "position").values_list("id", flat=True)
    for entry_id in list(entry_ids):
        if expire_hold(entry_id):
            expired += 1
    if expired:
        logger.info("waitlist_holds_expired", count=expired)
    promote_into_open_spots()
    return expired



@retry_on_transient
@transaction.atomic
def fill_open_spots(event_id: UUID | str) -> int:
    """Promote WAITING entries of one event until every open spot has a running hold.

    Returns:
        Number of promoted entries.
    """
    event = Event.objects.select_for_update().get(pk=event_id)
    promoted = 0
    for _ in range(_open_spots(event)):
        if promote(event.pk) is None:
            break
        promoted += 1
    return promoted


def promote_into_open_spots() -> int:
    """Catch up on promotions that never ran, e.g. when enqueueing ``promote_waitlist`` failed.

    Returns:
        Number of promoted entries across all events.
    """
    waiting_event_ids = WaitlistEntry.objects.waiting().order_by("event_id").values_list("event_id", flat=True)
    event_ids = Event.objects.filter(
        pk__in=waiting_event_ids.distinct(),
        reserved_count__lt=F("capacity"),
    ).values_list("id", flat=True)

    promoted = 0
    for event_id in list(event_ids):
        count = fill_open_spots(event_id)
        if count:
            logger.warning("waitlist_stalled_promotion_recovered", event_id=str(event_id), promoted=count)
            promoted += count
    return promoted
