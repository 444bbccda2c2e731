"""Tests for the public event endpoints: browsing, purchase and waitlist."""

import typing as t
from decimal import Decimal
from unittest.mock import MagicMock

import orjson
import pytest
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client

from accounts.models import TurnstileUser
from conftest import TurnstileUserFactory
from events.models import Event, PromoCode, Ticket, WaitlistEntry
from events.service import capacity_guard

pytestmark = pytest.mark.django_db


def _post(client: Client, url: str, payload: dict[str, t.Any] | None = None) -> t.Any:
    return client.post(url, data=orjson.dumps(payload or {}), content_type="application/json")


class TestBrowseEvents:
    def test_list_shows_only_published(self, client: Client, free_event: Event, draft_event: Event) -> None:
        response = client.get(reverse("api:list_events"))

        assert response.status_code == 200
        ids = [item["id"] for item in response.json()["results"]]
        assert ids == [str(free_event.id)]

    def test_get_event_reports_availability(self, client: Client, free_event: Event, buyer: TurnstileUser) -> None:
        capacity_guard.reserve(free_event, buyer)

        response = client.get(reverse("api:get_event", kwargs={"event_id": free_event.id}))

        assert response.status_code == 200
        data = response.json()
        assert data["available"] == 1
        assert data["is_sold_out"] is False

    def test_draft_is_hidden_from_strangers(self, buyer_client: Client, draft_event: Event) -> None:
        response = buyer_client.get(reverse("api:get_event", kwargs={"event_id": draft_event.id}))

        assert response.status_code == 404

    def test_draft_is_visible_to_creator(self, creator_client: Client, draft_event: Event) -> None:
        response = creator_client.get(reverse("api:get_event", kwargs={"event_id": draft_event.id}))

        assert response.status_code == 200


class TestPurchase:
    def test_purchase_requires_authentication(self, client: Client, free_event: Event) -> None:
        response = _post(client, reverse("api:purchase_ticket", kwargs={"event_id": free_event.id}))

        assert response.status_code == 401

    def test_free_purchase_returns_ticket(self, buyer_client: Client, free_event: Event) -> None:
        response = _post(buyer_client, reverse("api:purchase_ticket", kwargs={"event_id": free_event.id}))

        assert response.status_code == 200, response.content
        data = response.json()
        assert data["ticket"]["status"] == "active"
        assert data["ticket"]["qr_token"]
        assert data["checkout_url"] is None

    def test_paid_purchase_returns_checkout(
        self, buyer_client: Client, paid_event: Event, promo_code: PromoCode, mock_stripe_checkout: MagicMock
    ) -> None:
        url = reverse("api:purchase_ticket", kwargs={"event_id": paid_event.id})

        response = _post(buyer_client, url, {"promo_code": "save20"})

        assert response.status_code == 200, response.content
        data = response.json()
        assert data["ticket"] is None
        assert data["checkout_url"] == "https://checkout.stripe.com/c/pay/cs_test_123"
        assert Decimal(data["quote"]["final_price"]) == Decimal("40.00")
        assert data["quote"]["promo_code"] == "SAVE20"

    def test_sold_out_answers_conflict(
        self, buyer_client: Client, free_event: Event, turnstile_user_factory: TurnstileUserFactory
    ) -> None:
        """A sold-out purchase points the buyer to the waitlist."""
        capacity_guard.reserve(free_event, turnstile_user_factory())
        capacity_guard.reserve(free_event, turnstile_user_factory())

        response = _post(buyer_client, reverse("api:purchase_ticket", kwargs={"event_id": free_event.id}))

        assert response.status_code == 409
        assert response.json()["code"] == "sold_out"
        assert response.json()["extra"]["waitlist_available"] is True

    def test_invalid_promo(self, buyer_client: Client, paid_event: Event) -> None:
        url = reverse("api:purchase_ticket", kwargs={"event_id": paid_event.id})

        response = _post(buyer_client, url, {"promo_code": "BOGUS"})

        assert response.status_code == 400
        assert response.json()["code"] == "promo_invalid"
        assert not Ticket.objects.exists()

    def test_validate_promo_code(self, buyer_client: Client, paid_event: Event, promo_code: PromoCode) -> None:
        url = reverse("api:validate_promo_code", kwargs={"event_id": paid_event.id})

        response = _post(buyer_client, url, {"code": "SAVE20"})

        assert response.status_code == 200
        assert Decimal(response.json()["discount_amount"]) == Decimal("10.00")
        promo_code.refresh_from_db()
        assert promo_code.used_count == 0


class TestWaitlistEndpoints:
    @pytest.fixture
    def sold_out(self, free_event: Event, turnstile_user_factory: TurnstileUserFactory) -> Event:
        capacity_guard.reserve(free_event, turnstile_user_factory())
        capacity_guard.reserve(free_event, turnstile_user_factory())
        return free_event

    def test_join_and_status(self, buyer_client: Client, other_buyer_client: Client, sold_out: Event) -> None:
        url = reverse("api:join_waitlist", kwargs={"event_id": sold_out.id})

        first = _post(buyer_client, url)
        second = _post(other_buyer_client, url)
        status = other_buyer_client.get(reverse("api:waitlist_status", kwargs={"event_id": sold_out.id}))

        assert first.status_code == 200
        assert first.json()["position"] == 1
        assert second.json()["position"] == 2
        assert second.json()["total_ahead"] == 1
        assert status.json() == {
            "on_waitlist": True,
            "position": 2,
            "total_ahead": 1,
            "state": "waiting",
            "hold_expires_at": None,
        }

    def test_join_twice(self, buyer_client: Client, sold_out: Event) -> None:
        url = reverse("api:join_waitlist", kwargs={"event_id": sold_out.id})
        _post(buyer_client, url)

        response = _post(buyer_client, url)

        assert response.status_code == 409
        assert response.json()["code"] == "already_waiting"

    def test_join_not_sold_out(self, buyer_client: Client, free_event: Event) -> None:
        response = _post(buyer_client, reverse("api:join_waitlist", kwargs={"event_id": free_event.id}))

        assert response.status_code == 409
        assert response.json()["code"] == "not_sold_out"

    def test_leave(self, buyer_client: Client, buyer: TurnstileUser, sold_out: Event) -> None:
        url = reverse("api:join_waitlist", kwargs={"event_id": sold_out.id})
        _post(buyer_client, url)

        response = buyer_client.delete(reverse("api:leave_waitlist", kwargs={"event_id": sold_out.id}))

        assert response.status_code == 200
        assert WaitlistEntry.objects.get(user=buyer).state == WaitlistEntry.WaitlistState.LEFT

    def test_leave_when_not_waiting(self, buyer_client: Client, sold_out: Event) -> None:
        response = buyer_client.delete(reverse("api:leave_waitlist", kwargs={"event_id": sold_out.id}))

        assert response.status_code == 404
        assert response.json()["code"] == "not_waiting"
