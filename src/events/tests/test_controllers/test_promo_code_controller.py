"""Tests for promo code management endpoints."""

import typing as t

import orjson
import pytest
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client

from events.models import Event, PromoCode

pytestmark = pytest.mark.django_db


def _json(client: Client, method: str, url: str, payload: dict[str, t.Any]) -> t.Any:
    return getattr(client, method)(url, data=orjson.dumps(payload), content_type="application/json")


def test_create_promo_code(creator_client: Client, paid_event: Event) -> None:
    response = _json(
        creator_client,
        "post",
        reverse("api:create_promo_code"),
        {
            "code": "vip-10",
            "discount_type": "fixed",
            "discount_value": "10.00",
            "event_id": str(paid_event.id),
            "max_uses": 5,
        },
    )

    assert response.status_code == 200, response.content
    assert response.json()["code"] == "VIP-10"
    assert PromoCode.objects.get(code="VIP-10").event == paid_event


def test_create_duplicate_code(creator_client: Client, promo_code: PromoCode) -> None:
    response = _json(
        creator_client,
        "post",
        reverse("api:create_promo_code"),
        {"code": "SAVE20", "discount_type": "percentage", "discount_value": "5"},
    )

    assert response.status_code == 409
    assert response.json()["code"] == "promo_code_conflict"


def test_cannot_bind_code_to_foreign_event(buyer_client: Client, paid_event: Event) -> None:
    response = _json(
        buyer_client,
        "post",
        reverse("api:create_promo_code"),
        {"code": "MINE", "discount_type": "fixed", "discount_value": "1", "event_id": str(paid_event.id)},
    )

    assert response.status_code == 403


def test_list_and_deactivate(creator_client: Client, promo_code: PromoCode) -> None:
    listing = creator_client.get(reverse("api:list_promo_codes"))
    response = _json(
        creator_client,
        "patch",
        reverse("api:update_promo_code", kwargs={"promo_code_id": promo_code.id}),
        {"is_active": False},
    )

    assert [item["code"] for item in listing.json()["results"]] == ["SAVE20"]
    assert response.status_code == 200
    promo_code.refresh_from_db()
    assert promo_code.is_active is False


def test_other_users_cannot_see_codes(buyer_client: Client, promo_code: PromoCode) -> None:
    response = buyer_client.get(reverse("api:get_promo_code", kwargs={"promo_code_id": promo_code.id}))

    assert response.status_code == 404


def test_delete_promo_code(creator_client: Client, promo_code: PromoCode) -> None:
    response = creator_client.delete(reverse("api:delete_promo_code", kwargs={"promo_code_id": promo_code.id}))

    assert response.status_code == 204
    assert not PromoCode.objects.exists()
