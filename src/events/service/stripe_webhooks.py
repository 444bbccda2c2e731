"""Stripe webhook event handlers."""

import typing as t

import stripe
import structlog

from events.exceptions import TicketingError

from . import purchase_service
from .purchase_service import PaymentOutcome

logger = structlog.get_logger(__name__)


class StripeEventHandler:
    """Translates Stripe checkout events into payment outcomes."""

    def __init__(self, event: stripe.Event):
        """Initialize the Stripe event handler."""
        self.event = event

    def handle(self) -> None:
        """Routes the event to the appropriate handler based on its type."""
        event_type = self.event.type
        handler_method = getattr(self, f"handle_{event_type.replace('.', '_')}", self.handle_unknown_event)
        handler_method(self.event)

    def handle_unknown_event(self, event: stripe.Event) -> None:
        """Log unhandled event types for future development."""
        logger.info("stripe_webhook_unhandled_event", event_type=event.type, event_id=event.id)

    def handle_checkout_session_completed(self, event: stripe.Event) -> None:
        """A completed session only counts once the money is actually in."""
        session = event.data.object
        if session["payment_status"] not in {"paid", "no_payment_required"}:
            logger.warning(
                "stripe_session_unresolved_payment",
                session_id=session["id"],
                payment_status=session["payment_status"],
            )
            return
        self._report(session["id"], PaymentOutcome.SUCCESS, event)

    def handle_checkout_session_async_payment_succeeded(self, event: stripe.Event) -> None:
        self._report(event.data.object["id"], PaymentOutcome.SUCCESS, event)

    def handle_checkout_session_async_payment_failed(self, event: stripe.Event) -> None:
        self._report(event.data.object["id"], PaymentOutcome.FAILED, event)

    def handle_checkout_session_expired(self, event: stripe.Event) -> None:
        """The buyer abandoned the checkout page."""
        self._report(event.data.object["id"], PaymentOutcome.FAILED, event)

    def _report(self, session_id: str, outcome: PaymentOutcome, event: stripe.Event) -> None:
        raw_response: dict[str, t.Any] = {"stripe_event_id": event.id, "stripe_event_type": event.type}
        try:
            purchase_service.confirm_purchase(session_id, outcome, raw_response=raw_response)
        except TicketingError as e:
            # Stripe must get a 2xx for outcomes we handled, including the unhappy ones.
            logger.info(
                "stripe_webhook_outcome_applied",
                session_id=session_id,
                outcome=outcome,
                error_code=e.code,
            )
