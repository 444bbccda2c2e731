"""Door check-in: each ticket is admitted exactly once."""

import structlog
from django.db import transaction
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import AlreadyUsedError, ForbiddenError, NotFoundError, TicketCancelledError
from events.models import Ticket

from .ledger import retry_on_transient

logger = structlog.get_logger(__name__)


@retry_on_transient
@transaction.atomic
def verify_and_check_in(qr_token: str, verifier: TurnstileUser) -> Ticket:
    """Verify a scanned QR token and mark the ticket USED.

    The ACTIVE to USED transition is a single conditional update: of two simultaneous scans
    exactly one succeeds and the other gets ``AlreadyUsedError`` with the first scan time.
    A retried scan after a timeout therefore either succeeds or reports the committed scan.

    Raises:
        NotFoundError: No ticket carries this token.
        ForbiddenError: The verifier did not create the event.
        TicketCancelledError: The ticket was cancelled.
        AlreadyUsedError: The ticket was already scanned.
    """
    ticket = Ticket.objects.select_related("event", "user").filter(qr_token=qr_token).first()
    if ticket is None:
        logger.info("check_in_unknown_token", verifier_id=str(verifier.id))
        raise NotFoundError("Ticket not found.")
    if ticket.event.creator_id != verifier.id:
        logger.warning(
            "check_in_forbidden",
            event_id=str(ticket.event_id),
            ticket_id=str(ticket.id),
            verifier_id=str(verifier.id),
        )
        raise ForbiddenError("Only the event creator can check in tickets.")
    if ticket.status == Ticket.TicketStatus.CANCELLED:
        raise TicketCancelledError()
    if ticket.status == Ticket.TicketStatus.USED:
        raise AlreadyUsedError(ticket.scanned_at)

    now = timezone.now()
    updated = Ticket.objects.filter(pk=ticket.pk, status=Ticket.TicketStatus.ACTIVE).update(
        status=Ticket.TicketStatus.USED,
        scanned_at=now,
        scanned_by=verifier,
        updated_at=now,
    )
    if not updated:
        # Lost the race against a concurrent scan or cancellation.
        current = Ticket.objects.only("status", "scanned_at").get(pk=ticket.pk)
        if current.status == Ticket.TicketStatus.CANCELLED:
            raise TicketCancelledError()
        raise AlreadyUsedError(current.scanned_at)

    ticket.status = Ticket.TicketStatus.USED
    ticket.scanned_at = now
    ticket.scanned_by = verifier
    logger.info(
        "ticket_checked_in",
        event_id=str(ticket.event_id),
        ticket_id=str(ticket.id),
        verifier_id=str(verifier.id),
    )
    return ticket
