import structlog
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client


def test_response_carries_request_id(client: Client) -> None:
    response = client.get(reverse("api:healthcheck"))

    assert response["X-Request-ID"]


def test_incoming_request_id_is_kept(client: Client) -> None:
    response = client.get(reverse("api:healthcheck"), HTTP_X_REQUEST_ID="req-123")

    assert response["X-Request-ID"] == "req-123"
    assert structlog.contextvars.get_contextvars() == {}
