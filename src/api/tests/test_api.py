"""Tests for the API root: version, healthcheck and error rendering."""

import typing as t
from unittest.mock import patch

import orjson
import pytest
from django.conf import settings
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client
from ninja_jwt.tokens import RefreshToken

from accounts.models import TurnstileUser
from api.exception_handlers import obfuscate
from events.models import Event

pytestmark = pytest.mark.django_db


@pytest.fixture
def user_client(user: TurnstileUser) -> Client:
    refresh = RefreshToken.for_user(user)
    return Client(HTTP_AUTHORIZATION=f"Bearer {str(refresh.access_token)}")  # type: ignore[attr-defined]


def test_version_endpoint(client: Client) -> None:
    response = client.get(reverse("api:version"))

    assert response.status_code == 200
    assert response.json() == {"version": settings.VERSION}


def test_healthcheck(client: Client) -> None:
    response = client.get(reverse("api:healthcheck"))

    assert response.status_code == 200


def test_obfuscate_hides_secrets() -> None:
    data: dict[str, t.Any] = {"Authorization": "Bearer abc", "qr_token": "secret", "name": "ok"}

    assert obfuscate(data) == {"Authorization": "********", "qr_token": "********", "name": "ok"}


def test_unexpected_errors_render_500(client: Client, user: TurnstileUser) -> None:
    event = Event.objects.create(creator=user, name="Boom", capacity=1, status=Event.EventStatus.PUBLISHED)

    with patch("events.controllers.events.EventController.get_one", side_effect=RuntimeError("boom")):
        response = client.get(reverse("api:get_event", kwargs={"event_id": event.id}))

    assert response.status_code == 500
    assert response.json()["detail"] == "Internal Server Error."


def test_model_validation_errors_render_400(user_client: Client) -> None:
    response = user_client.post(
        reverse("api:create_promo_code"),
        data=orjson.dumps({"code": "HALFOFF", "discount_type": "percentage", "discount_value": "150"}),
        content_type="application/json",
    )

    assert response.status_code == 400
    assert "discount_value" in response.json()["errors"]
