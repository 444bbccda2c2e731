"""Capacity guard: the only code that takes or gives back capacity units.

``Event.reserved_count`` counts HELD reservations plus ACTIVE/USED tickets. Taking a unit is a
single conditional ``UPDATE ... WHERE reserved_count < capacity``, so any number of concurrent
reservations can never push the count past capacity; the losers fail fast with ``SoldOutError``.
"""

from decimal import Decimal

import structlog
from django.db import transaction
from django.db.models import Count, F, Q
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import (
    AlreadyUsedError,
    EventNotOnSaleError,
    ReservationExpiredError,
    SoldOutError,
    TicketCancelledError,
)
from events.models import Event, PromoCode, Reservation, Ticket, WaitlistEntry

from . import notification_service
from .ledger import retry_on_transient
from .promo_service import DiscountQuote, full_price_quote

logger = structlog.get_logger(__name__)


def schedule_promotion(event_id: object) -> None:
    """Promote the next waitlist entry once the current transaction commits.

    A failed enqueue is logged only: the release has already committed, and the periodic waitlist
    sweep promotes into any open spot it finds.
    """
    from events.tasks import promote_waitlist

    def enqueue() -> None:
        try:
            promote_waitlist.delay(str(event_id))
        except Exception:
            logger.exception("waitlist_promotion_enqueue_failed", event_id=str(event_id))

    transaction.on_commit(enqueue)


def convert_waitlist_entry(event: Event, user: TurnstileUser) -> None:
    """Mark the user's pending waitlist entry, if any, as CONVERTED."""
    converted = (
        WaitlistEntry.objects.pending()
        .filter(event=event, user=user)
        .update(state=WaitlistEntry.WaitlistState.CONVERTED, updated_at=timezone.now())
    )
    if converted:
        logger.info("waitlist_entry_converted", event_id=str(event.id), user_id=str(user.id))


@retry_on_transient
@transaction.atomic
def reserve(event: Event, user: TurnstileUser, *, quote: DiscountQuote | None = None) -> Reservation:
    """Take one capacity unit for the user.

    Raises:
        SoldOutError: No capacity left.
        EventNotOnSaleError: The event is not published.
    """
    quote = quote or full_price_quote(event)
    updated = Event.objects.filter(
        pk=event.pk,
        status=Event.EventStatus.PUBLISHED,
        reserved_count__lt=F("capacity"),
    ).update(reserved_count=F("reserved_count") + 1)

    if not updated:
        if not Event.objects.filter(pk=event.pk, status=Event.EventStatus.PUBLISHED).exists():
            raise EventNotOnSaleError()
        logger.info("reserve_sold_out", event_id=str(event.id), user_id=str(user.id))
        raise SoldOutError()

    reservation = Reservation.objects.create(
        event=event,
        user=user,
        original_price=quote.original_price,
        quoted_price=quote.final_price,
        promo_code=quote.promo_code,
    )
    logger.info(
        "capacity_reserved",
        event_id=str(event.id),
        user_id=str(user.id),
        reservation_id=str(reservation.id),
        expires_at=reservation.expires_at.isoformat(),
    )
    return reservation


@transaction.atomic
def confirm(reservation: Reservation, *, price_paid: Decimal, promo_code: PromoCode | None = None) -> Ticket:
    """Turn a HELD reservation into an ACTIVE ticket with a fresh QR token.

    The capacity unit moves from the reservation to the ticket, so ``reserved_count`` is untouched.
    A pending waitlist entry of the buyer is converted only here, once the ticket exists.

    Raises:
        ReservationExpiredError: The reservation was released or swept before confirmation.
    """
    locked = Reservation.objects.select_for_update().select_related("event", "user").get(pk=reservation.pk)
    if locked.status != Reservation.ReservationStatus.HELD:
        logger.warning(
            "confirm_on_inactive_reservation",
            reservation_id=str(locked.id),
            status=locked.status,
        )
        raise ReservationExpiredError()

    locked.status = Reservation.ReservationStatus.CONFIRMED
    locked.save(update_fields=["status", "updated_at"])

    ticket = Ticket.objects.create(
        event=locked.event,
        user=locked.user,
        status=Ticket.TicketStatus.ACTIVE,
        price_paid=price_paid,
        promo_code=promo_code,
        reservation=locked,
    )
    convert_waitlist_entry(locked.event, locked.user)
    logger.info(
        "ticket_issued",
        event_id=str(locked.event_id),
        user_id=str(locked.user_id),
        ticket_id=str(ticket.id),
        reservation_id=str(locked.id),
    )
    notification_service.notify_ticket_issued(ticket)
    return ticket


def _give_back_unit(event_id: object) -> bool:
    """Decrement ``reserved_count`` on a locked event row.

    Returns whether the event was at capacity before the decrement.
    """
    event = Event.objects.select_for_update().get(pk=event_id)
    was_full = event.reserved_count >= event.capacity
    updated = Event.objects.filter(pk=event_id, reserved_count__gt=0).update(reserved_count=F("reserved_count") - 1)
    if not updated:
        logger.critical("reserved_count_underflow", event_id=str(event_id), capacity=event.capacity)
    return was_full


@retry_on_transient
@transaction.atomic
def release_reservation(reservation: Reservation, *, expired: bool = False) -> bool:
    """Give the unit of a HELD reservation back to the pool.

    Safe to call more than once: only the call that moves the reservation out of HELD frees the
    unit. When the event was sold out, the next waitlist entry is promoted after commit.

    Returns:
        Whether this call released the reservation.
    """
    new_status = Reservation.ReservationStatus.EXPIRED if expired else Reservation.ReservationStatus.RELEASED
    updated = Reservation.objects.filter(pk=reservation.pk, status=Reservation.ReservationStatus.HELD).update(
        status=new_status, updated_at=timezone.now()
    )
    if not updated:
        return False

    was_full = _give_back_unit(reservation.event_id)
    logger.info(
        "reservation_released",
        event_id=str(reservation.event_id),
        reservation_id=str(reservation.id),
        status=new_status,
    )
    if was_full:
        schedule_promotion(reservation.event_id)
    return True


@retry_on_transient
@transaction.atomic
def release_ticket(ticket: Ticket) -> Ticket:
    """Cancel an ACTIVE ticket and give its unit back.

    Every successful cancellation schedules exactly one waitlist promotion.

    Raises:
        TicketCancelledError: The ticket is already cancelled.
        AlreadyUsedError: The ticket was checked in and cannot be cancelled.
    """
    now = timezone.now()
    updated = Ticket.objects.filter(pk=ticket.pk, status=Ticket.TicketStatus.ACTIVE).update(
        status=Ticket.TicketStatus.CANCELLED, cancelled_at=now, updated_at=now
    )
    if not updated:
        current = Ticket.objects.get(pk=ticket.pk)
        if current.status == Ticket.TicketStatus.CANCELLED:
            raise TicketCancelledError()
        raise AlreadyUsedError(current.scanned_at, "A checked-in ticket cannot be cancelled.")

    _give_back_unit(ticket.event_id)
    ticket.status = Ticket.TicketStatus.CANCELLED
    ticket.cancelled_at = now
    logger.info("ticket_cancelled", event_id=str(ticket.event_id), ticket_id=str(ticket.id))
    notification_service.notify_ticket_cancelled(ticket)
    schedule_promotion(ticket.event_id)
    return ticket


def release_expired_reservations() -> int:
    """Sweep HELD reservations past their expiry back into the pool."""
    released = 0
    for reservation in Reservation.objects.expired().only("id", "event_id"):
        if release_reservation(reservation, expired=True):
            released += 1
    if released:
        logger.info("expired_reservations_released", count=released)
    return released


def audit_capacity() -> int:
    """Compare every event's counter with the rows it stands for.

    Violations are logged as critical and left untouched for investigation.

    Returns:
        Number of events with a violation.
    """
    violations = 0
    events = Event.objects.with_sold_count().annotate(
        held_count=Count(
            "reservations",
            filter=Q(reservations__status=Reservation.ReservationStatus.HELD),
            distinct=True,
        )
    )
    for event in events:
        context = {
            "event_id": str(event.id),
            "capacity": event.capacity,
            "reserved_count": event.reserved_count,
            "sold_count": event.sold_count,
            "held_count": event.held_count,
        }
        if event.sold_count > event.capacity:
            violations += 1
            logger.critical("capacity_oversold", **context)
        elif event.sold_count + event.held_count != event.reserved_count:
            violations += 1
            logger.critical("reserved_count_drift", **context)
    return violations
