"""Ticket lifecycle after issuance: cancellation and transfer."""

import structlog
from django.db import IntegrityError, transaction
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import (
    AlreadyHasTicketError,
    AlreadyUsedError,
    ForbiddenError,
    NotFoundError,
    TicketCancelledError,
)
from events.models import Ticket

from . import capacity_guard, notification_service

logger = structlog.get_logger(__name__)


def cancel_ticket(ticket: Ticket, user: TurnstileUser) -> Ticket:
    """Cancel a ticket on behalf of its holder or the event creator.

    Raises:
        ForbiddenError: The user neither holds the ticket nor created the event.
    """
    if user.id not in (ticket.user_id, ticket.event.creator_id):
        raise ForbiddenError("You cannot cancel this ticket.")
    return capacity_guard.release_ticket(ticket)


@transaction.atomic
def transfer_ticket(ticket: Ticket, sender: TurnstileUser, recipient_email: str) -> Ticket:
    """Hand an ACTIVE ticket over to another user.

    The sender's ticket is cancelled and a new ticket with a fresh QR token is issued to the
    recipient in the same transaction. The capacity unit never becomes available, so no waitlist
    promotion happens.

    Raises:
        ForbiddenError: The sender does not hold the ticket.
        NotFoundError: No user has the recipient email.
        AlreadyHasTicketError: The recipient already holds a ticket for the event.
        TicketCancelledError: The ticket was cancelled.
        AlreadyUsedError: The ticket was checked in.
    """
    locked = Ticket.objects.select_for_update().get(pk=ticket.pk)
    if locked.user_id != sender.id:
        raise ForbiddenError("You can only transfer your own tickets.")
    if locked.status == Ticket.TicketStatus.CANCELLED:
        raise TicketCancelledError()
    if locked.status == Ticket.TicketStatus.USED:
        raise AlreadyUsedError(locked.scanned_at, "A checked-in ticket cannot be transferred.")

    recipient = TurnstileUser.objects.filter(email__iexact=recipient_email.strip()).first()
    if recipient is None:
        raise NotFoundError("No user with this email address.")
    if recipient.id == sender.id:
        raise AlreadyHasTicketError("You already hold this ticket.")
    if Ticket.objects.live().filter(event_id=locked.event_id, user=recipient).exists():
        raise AlreadyHasTicketError("The recipient already has a ticket for this event.")

    now = timezone.now()
    locked.status = Ticket.TicketStatus.CANCELLED
    locked.cancelled_at = now
    locked.save(update_fields=["status", "cancelled_at", "updated_at"])

    try:
        with transaction.atomic():
            new_ticket = Ticket.objects.create(
                event_id=locked.event_id,
                user=recipient,
                status=Ticket.TicketStatus.ACTIVE,
                price_paid=locked.price_paid,
                promo_code=locked.promo_code,
                transferred_from=locked,
            )
    except IntegrityError as e:
        raise AlreadyHasTicketError("The recipient already has a ticket for this event.") from e

    capacity_guard.convert_waitlist_entry(new_ticket.event, recipient)
    logger.info(
        "ticket_transferred",
        event_id=str(locked.event_id),
        from_ticket_id=str(locked.id),
        to_ticket_id=str(new_ticket.id),
        sender_id=str(sender.id),
        recipient_id=str(recipient.id),
    )
    notification_service.notify_ticket_transferred(new_ticket, sender)
    return new_ticket
