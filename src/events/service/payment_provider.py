"""Payment provider boundary.

The engine only needs two things from a provider: a checkout to redirect the buyer to, and a
single SUCCESS/FAILED report per checkout (delivered to ``purchase_service.confirm_purchase``).
"""

import typing as t
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal

import stripe
import structlog
from django.conf import settings
from django.utils import timezone
from django.utils.module_loading import import_string

from events.models import Payment

logger = structlog.get_logger(__name__)

# Stripe rejects checkout sessions that expire sooner than 30 minutes from creation.
STRIPE_MIN_SESSION_LIFETIME = timedelta(minutes=31)


class PaymentProviderError(Exception):
    """The provider could not start a checkout."""


@dataclass(frozen=True)
class CheckoutSession:
    reference: str
    redirect_url: str


class PaymentProvider(ABC):
    @abstractmethod
    def create_checkout(self, payment: Payment) -> CheckoutSession:
        """Start a checkout for a PENDING payment.

        Raises:
            PaymentProviderError: The checkout could not be created.
        """


class StripePaymentProvider(PaymentProvider):
    """Stripe Checkout adapter. Outcomes arrive through the Stripe webhook."""

    def __init__(self) -> None:
        stripe.api_key = settings.STRIPE_SECRET_KEY

    def create_checkout(self, payment: Payment) -> CheckoutSession:
        event = payment.event
        reservation = payment.reservation
        frontend_base_url = settings.FRONTEND_BASE_URL
        expires_at = max(reservation.expires_at, timezone.now() + STRIPE_MIN_SESSION_LIFETIME)
        session_data: dict[str, t.Any] = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": payment.currency.lower(),
                        "product_data": {"name": event.name},
                        "unit_amount": to_minor_units(payment.amount),
                    },
                    "quantity": 1,
                }
            ],
            "metadata": {
                "payment_id": str(payment.id),
                "reservation_id": str(reservation.id),
                "event_id": str(event.id),
                "user_id": str(payment.user_id),
            },
            "success_url": f"{frontend_base_url}/events/{event.id}?payment_success=true",
            "cancel_url": f"{frontend_base_url}/events/{event.id}?payment_cancelled=true",
            "expires_at": int(expires_at.timestamp()),
        }
        if payment.user.email:
            session_data["customer_email"] = payment.user.email
        try:
            session = stripe.checkout.Session.create(**session_data)
        except stripe.StripeError as e:
            logger.warning("stripe_checkout_failed", payment_id=str(payment.id), error=str(e))
            raise PaymentProviderError(str(e)) from e
        logger.info("stripe_checkout_created", payment_id=str(payment.id), session_id=session.id)
        return CheckoutSession(reference=session.id, redirect_url=session.url)


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount to the integer cents Stripe expects."""
    return int((amount * 100).to_integral_value())


def get_payment_provider() -> PaymentProvider:
    """Instantiate the provider configured in ``PAYMENT_PROVIDER``."""
    provider_class: type[PaymentProvider] = import_string(settings.PAYMENT_PROVIDER)
    return provider_class()
