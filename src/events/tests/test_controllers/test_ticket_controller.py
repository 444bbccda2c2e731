"""Tests for the ticket holder endpoints."""

import typing as t

import orjson
import pytest
from django.shortcuts import reverse  # type: ignore[attr-defined]
from django.test.client import Client

from accounts.models import TurnstileUser
from events.models import Event, Ticket

pytestmark = pytest.mark.django_db


def test_list_my_tickets(
    buyer_client: Client,
    free_event: Event,
    paid_event: Event,
    buyer: TurnstileUser,
    other_buyer: TurnstileUser,
    make_ticket: t.Callable[..., Ticket],
) -> None:
    mine = make_ticket(free_event, buyer)
    make_ticket(paid_event, other_buyer)

    response = buyer_client.get(reverse("api:list_my_tickets"))

    assert response.status_code == 200
    results = response.json()["results"]
    assert [item["id"] for item in results] == [str(mine.id)]
    assert results[0]["qr_token"] == mine.qr_token
    assert results[0]["event"]["id"] == str(free_event.id)


def test_get_someone_elses_ticket(
    other_buyer_client: Client, free_event: Event, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
) -> None:
    ticket = make_ticket(free_event, buyer)

    response = other_buyer_client.get(reverse("api:get_ticket", kwargs={"ticket_id": ticket.id}))

    assert response.status_code == 404


def test_cancel_ticket(
    buyer_client: Client, free_event: Event, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
) -> None:
    ticket = make_ticket(free_event, buyer)
    url = reverse("api:cancel_ticket", kwargs={"ticket_id": ticket.id})

    response = buyer_client.post(url)
    repeated = buyer_client.post(url)

    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert repeated.status_code == 409
    assert repeated.json()["code"] == "cancelled"
    free_event.refresh_from_db()
    assert free_event.reserved_count == 0


def test_creator_cancels_attendee_ticket(
    creator_client: Client, free_event: Event, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
) -> None:
    ticket = make_ticket(free_event, buyer)

    response = creator_client.post(reverse("api:cancel_ticket", kwargs={"ticket_id": ticket.id}))

    assert response.status_code == 200
    ticket.refresh_from_db()
    assert ticket.status == Ticket.TicketStatus.CANCELLED


def test_transfer_ticket(
    buyer_client: Client,
    free_event: Event,
    buyer: TurnstileUser,
    other_buyer: TurnstileUser,
    make_ticket: t.Callable[..., Ticket],
) -> None:
    ticket = make_ticket(free_event, buyer)

    response = buyer_client.post(
        reverse("api:transfer_ticket", kwargs={"ticket_id": ticket.id}),
        data=orjson.dumps({"recipient_email": other_buyer.email}),
        content_type="application/json",
    )

    assert response.status_code == 200, response.content
    assert response.json()["user"]["id"] == str(other_buyer.id)
    ticket.refresh_from_db()
    assert ticket.status == Ticket.TicketStatus.CANCELLED
