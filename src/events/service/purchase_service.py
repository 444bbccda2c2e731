"""Purchase flow: quote, reserve, charge, then redeem-or-fallback.

Nothing here holds a database lock while talking to the payment provider. The reservation taken
before checkout keeps the capacity unit until the provider reports back or the sweep releases it.
"""

import typing as t
from dataclasses import dataclass
from enum import StrEnum

import structlog
from django.db import transaction

from accounts.models import TurnstileUser
from events.exceptions import (
    AlreadyHasTicketError,
    EventNotOnSaleError,
    NotFoundError,
    PaymentFailedError,
    PromoExhaustedError,
    PromoInvalidError,
    ReservationExpiredError,
    SoldOutError,
)
from events.models import Event, Payment, Reservation, Ticket

from . import capacity_guard, notification_service, promo_service
from .payment_provider import PaymentProviderError, get_payment_provider
from .promo_service import DiscountQuote

logger = structlog.get_logger(__name__)


class PaymentOutcome(StrEnum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class PurchaseResult:
    reservation: Reservation
    quote: DiscountQuote
    ticket: Ticket | None = None
    payment: Payment | None = None
    checkout_url: str | None = None

    @property
    def requires_payment(self) -> bool:
        return self.ticket is None


def has_pending_claim(event: Event, user: TurnstileUser) -> bool:
    """Whether the user already holds a live ticket or a HELD reservation for the event."""
    return (
        Ticket.objects.live().filter(event=event, user=user).exists()
        or Reservation.objects.held().filter(event=event, user=user).exists()
    )


def purchase_or_reserve(event: Event, user: TurnstileUser, promo_code: str | None = None) -> PurchaseResult:
    """Buy a ticket, or reserve one and start a checkout for priced events.

    Free purchases (including ones discounted to zero) are issued immediately.

    Raises:
        EventNotOnSaleError: The event is not published.
        AlreadyHasTicketError: The user already has a ticket or a reservation in progress.
        PromoInvalidError, PromoExhaustedError: The promo code cannot be used.
        SoldOutError: No capacity left; the caller may offer the waitlist.
        PaymentFailedError: The provider could not start a checkout.
    """
    if event.status != Event.EventStatus.PUBLISHED:
        raise EventNotOnSaleError()
    for stale in Reservation.objects.expired().filter(event=event, user=user):
        capacity_guard.release_reservation(stale, expired=True)
    if has_pending_claim(event, user):
        raise AlreadyHasTicketError()

    quote = promo_service.validate_promo(promo_code, event) if promo_code else promo_service.full_price_quote(event)
    reservation = capacity_guard.reserve(event, user, quote=quote)

    if quote.final_price == 0:
        ticket = _issue_free_ticket(reservation, quote)
        return PurchaseResult(reservation=reservation, quote=quote, ticket=ticket)

    payment = Payment.objects.create(
        reservation=reservation,
        event=event,
        user=user,
        amount=quote.final_price,
        currency=event.currency,
    )
    try:
        checkout = get_payment_provider().create_checkout(payment)
    except PaymentProviderError as e:
        payment.status = Payment.PaymentStatus.FAILED
        payment.raw_response = {"error": str(e)}
        payment.save(update_fields=["status", "raw_response", "updated_at"])
        capacity_guard.release_reservation(reservation)
        raise PaymentFailedError("The payment could not be started. Please try again.") from e

    payment.external_reference = checkout.reference
    payment.checkout_url = checkout.redirect_url
    payment.save(update_fields=["external_reference", "checkout_url", "updated_at"])
    logger.info(
        "purchase_checkout_started",
        event_id=str(event.id),
        user_id=str(user.id),
        payment_id=str(payment.id),
        reservation_id=str(reservation.id),
    )
    return PurchaseResult(
        reservation=reservation,
        quote=quote,
        payment=payment,
        checkout_url=checkout.redirect_url,
    )


def _issue_free_ticket(reservation: Reservation, quote: DiscountQuote) -> Ticket:
    """Redeem the promo (if any) and confirm, releasing the reservation when the code ran out."""
    try:
        with transaction.atomic():
            if quote.promo_code is not None:
                promo_service.redeem_promo(quote.promo_code.code, reservation.event)
            return capacity_guard.confirm(
                reservation,
                price_paid=quote.final_price,
                promo_code=quote.promo_code,
            )
    except (PromoExhaustedError, PromoInvalidError):
        capacity_guard.release_reservation(reservation)
        raise


def confirm_purchase(
    reference: str,
    outcome: PaymentOutcome | str,
    *,
    raw_response: dict[str, t.Any] | None = None,
) -> Ticket:
    """Apply the provider's report for a checkout.

    Reports are idempotent: a repeated SUCCESS returns the already issued ticket and a repeated
    FAILED raises ``PaymentFailedError`` again without touching anything.

    Raises:
        NotFoundError: No payment has this reference.
        PaymentFailedError: The payment failed.
        ReservationExpiredError: The payment succeeded but the capacity unit was lost.
    """
    outcome = PaymentOutcome(outcome)
    with transaction.atomic():
        payment = (
            Payment.objects.select_for_update()
            .select_related("reservation", "event", "user", "ticket")
            .filter(external_reference=reference)
            .first()
        )
        if payment is None:
            raise NotFoundError("Payment not found.")
        if payment.is_terminal:
            logger.info("payment_report_duplicate", payment_id=str(payment.id), status=payment.status)
            if payment.status == Payment.PaymentStatus.FAILED:
                raise PaymentFailedError()
            if payment.ticket is None:
                raise ReservationExpiredError()
            return payment.ticket

        payment.raw_response = raw_response or {}
        if outcome == PaymentOutcome.FAILED:
            payment.status = Payment.PaymentStatus.FAILED
            payment.save(update_fields=["status", "raw_response", "updated_at"])
            capacity_guard.release_reservation(payment.reservation)
            notification_service.notify_payment_failed(payment)
            logger.info("payment_failed", payment_id=str(payment.id), event_id=str(payment.event_id))
            ticket = None
        else:
            ticket = _issue_paid_ticket(payment)
            payment.status = Payment.PaymentStatus.SUCCESS
            payment.ticket = ticket
            payment.save(update_fields=["status", "ticket", "reservation", "raw_response", "updated_at"])

    if outcome == PaymentOutcome.FAILED:
        raise PaymentFailedError()
    if ticket is None:
        raise ReservationExpiredError()
    return ticket


def _issue_paid_ticket(payment: Payment) -> Ticket | None:
    """Issue the ticket for a successful payment.

    A reservation swept before the report arrived is re-taken if capacity allows. When no seat is
    left, or the buyer already got a ticket through another checkout, the payment is recorded as
    paid without a ticket and flagged for a refund.
    """
    reservation = payment.reservation
    if Ticket.objects.live().filter(event_id=payment.event_id, user_id=payment.user_id).exists():
        if reservation.status == Reservation.ReservationStatus.HELD:
            capacity_guard.release_reservation(reservation)
        _flag_refund(payment, reason="already_has_ticket")
        return None

    if reservation.status != Reservation.ReservationStatus.HELD:
        quote = DiscountQuote(
            original_price=reservation.original_price,
            discount_amount=reservation.original_price - reservation.quoted_price,
            final_price=reservation.quoted_price,
            promo_code=reservation.promo_code,
        )
        try:
            reservation = capacity_guard.reserve(payment.event, payment.user, quote=quote)
        except (SoldOutError, EventNotOnSaleError) as e:
            _flag_refund(payment, reason=e.code)
            return None
        payment.reservation = reservation
        logger.warning(
            "paid_reservation_retaken",
            payment_id=str(payment.id),
            reservation_id=str(reservation.id),
        )

    promo_code = reservation.promo_code
    price_paid = reservation.quoted_price
    if promo_code is not None:
        try:
            promo_service.redeem_promo(promo_code.code, payment.event)
        except (PromoExhaustedError, PromoInvalidError) as e:
            # The buyer already paid: complete at full price instead of leaving them ticketless.
            logger.warning(
                "promo_redeem_failed_after_payment",
                payment_id=str(payment.id),
                promo_code=promo_code.code,
                error_code=e.code,
                amount_charged=str(payment.amount),
                full_price=str(reservation.original_price),
            )
            promo_code = None
            price_paid = reservation.original_price

    return capacity_guard.confirm(reservation, price_paid=price_paid, promo_code=promo_code)


def _flag_refund(payment: Payment, *, reason: str) -> None:
    logger.error(
        "paid_reservation_lost",
        payment_id=str(payment.id),
        event_id=str(payment.event_id),
        user_id=str(payment.user_id),
        amount=str(payment.amount),
        reason=reason,
        refund_required=True,
    )
