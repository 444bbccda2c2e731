import typing as t
from datetime import datetime
from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
from django.test.client import Client
from ninja_jwt.tokens import RefreshToken

from accounts.models import TurnstileUser
from conftest import TurnstileUserFactory
from events.models import Event, PromoCode, Reservation, Ticket


@pytest.fixture
def creator(turnstile_user_factory: TurnstileUserFactory) -> TurnstileUser:
    """The user who creates and runs events."""
    return turnstile_user_factory(username="creator", email="creator@example.com")


@pytest.fixture
def buyer(turnstile_user_factory: TurnstileUserFactory) -> TurnstileUser:
    return turnstile_user_factory(username="buyer", email="buyer@example.com")


@pytest.fixture
def other_buyer(turnstile_user_factory: TurnstileUserFactory) -> TurnstileUser:
    return turnstile_user_factory(username="other_buyer", email="other@example.com")


@pytest.fixture
def free_event(creator: TurnstileUser, next_week: datetime) -> Event:
    """A published free event with room for two."""
    return Event.objects.create(
        creator=creator,
        name="Free Meetup",
        capacity=2,
        price=Decimal("0"),
        starts_at=next_week,
        status=Event.EventStatus.PUBLISHED,
    )


@pytest.fixture
def paid_event(creator: TurnstileUser, next_week: datetime) -> Event:
    """A published paid event with room for two."""
    return Event.objects.create(
        creator=creator,
        name="Paid Concert",
        capacity=2,
        price=Decimal("50.00"),
        currency="EUR",
        starts_at=next_week,
        status=Event.EventStatus.PUBLISHED,
    )


@pytest.fixture
def draft_event(creator: TurnstileUser) -> Event:
    return Event.objects.create(creator=creator, name="Draft", capacity=10, price=Decimal("10.00"))


@pytest.fixture
def promo_code(creator: TurnstileUser, paid_event: Event) -> PromoCode:
    """20% off the paid event, single use."""
    return PromoCode.objects.create(
        code="SAVE20",
        owner=creator,
        event=paid_event,
        discount_type=PromoCode.DiscountType.PERCENTAGE,
        discount_value=Decimal("20"),
        max_uses=1,
    )


@pytest.fixture
def make_ticket() -> t.Callable[..., Ticket]:
    """Issue a ticket directly, keeping the event counter consistent."""

    def _make(event: Event, user: TurnstileUser, **kwargs: t.Any) -> Ticket:
        event.reserved_count += 1
        Event.objects.filter(pk=event.pk).update(reserved_count=event.reserved_count)
        reservation = Reservation.objects.create(
            event=event,
            user=user,
            status=Reservation.ReservationStatus.CONFIRMED,
            original_price=event.price,
            quoted_price=event.price,
        )
        kwargs.setdefault("price_paid", event.price)
        return Ticket.objects.create(event=event, user=user, reservation=reservation, **kwargs)

    return _make


@pytest.fixture
def mock_stripe_checkout() -> t.Iterator[MagicMock]:
    """Stripe checkout session creation returning a fixed session."""
    with patch("stripe.checkout.Session.create") as mock_create:
        session = MagicMock()
        session.id = "cs_test_123"
        session.url = "https://checkout.stripe.com/c/pay/cs_test_123"
        mock_create.return_value = session
        yield mock_create


def _client_for(user: TurnstileUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


@pytest.fixture
def creator_client(creator: TurnstileUser) -> Client:
    """API client for the event creator."""
    return _client_for(creator)


@pytest.fixture
def buyer_client(buyer: TurnstileUser) -> Client:
    """API client for a buyer."""
    return _client_for(buyer)


@pytest.fixture
def other_buyer_client(other_buyer: TurnstileUser) -> Client:
    return _client_for(other_buyer)


@pytest.fixture
def staff_client(superuser: TurnstileUser) -> Client:
    """API client for a staff member."""
    return _client_for(superuser)
