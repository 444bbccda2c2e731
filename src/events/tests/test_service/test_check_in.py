"""Tests for door check-in."""

import threading
import typing as t
from datetime import timedelta

from unittest.mock import patch

import pytest
from django.db import connection
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import AlreadyUsedError, ForbiddenError, NotFoundError, TicketCancelledError
from events.models import Event, Ticket
from events.service import capacity_guard
from events.service.check_in import verify_and_check_in

pytestmark = pytest.mark.django_db


class TestVerifyAndCheckIn:
    def test_first_scan_admits(
        self, free_event: Event, creator: TurnstileUser, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
    ) -> None:
        ticket = make_ticket(free_event, buyer)

        checked_in = verify_and_check_in(ticket.qr_token, creator)

        ticket.refresh_from_db()
        assert checked_in.pk == ticket.pk
        assert ticket.status == Ticket.TicketStatus.USED
        assert ticket.scanned_at is not None
        assert ticket.scanned_by == creator

    def test_second_scan_reports_first_scan_time(
        self, free_event: Event, creator: TurnstileUser, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
    ) -> None:
        """The second scan fails and carries the time of the admitted scan."""
        ticket = make_ticket(free_event, buyer)
        verify_and_check_in(ticket.qr_token, creator)
        ticket.refresh_from_db()

        with pytest.raises(AlreadyUsedError) as exc_info:
            verify_and_check_in(ticket.qr_token, creator)

        assert exc_info.value.scanned_at == ticket.scanned_at
        assert exc_info.value.extra["scanned_at"] == ticket.scanned_at.isoformat()  # type: ignore[union-attr]

    def test_unknown_token(self, creator: TurnstileUser) -> None:
        with pytest.raises(NotFoundError):
            verify_and_check_in("not-a-real-token", creator)

    def test_cancelled_ticket(
        self, free_event: Event, creator: TurnstileUser, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
    ) -> None:
        ticket = make_ticket(free_event, buyer)
        capacity_guard.release_ticket(ticket)

        with pytest.raises(TicketCancelledError):
            verify_and_check_in(ticket.qr_token, creator)

    def test_only_creator_can_check_in(
        self,
        free_event: Event,
        buyer: TurnstileUser,
        other_buyer: TurnstileUser,
        make_ticket: t.Callable[..., Ticket],
    ) -> None:
        ticket = make_ticket(free_event, buyer)

        with pytest.raises(ForbiddenError):
            verify_and_check_in(ticket.qr_token, other_buyer)

        ticket.refresh_from_db()
        assert ticket.status == Ticket.TicketStatus.ACTIVE

    def test_scan_that_loses_the_race_reports_first_scan(
        self, free_event: Event, creator: TurnstileUser, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
    ) -> None:
        """The USED transition is decided by the database row, not by the ticket that was read."""
        ticket = make_ticket(free_event, buyer)
        stale = Ticket.objects.select_related("event", "user").get(pk=ticket.pk)
        first_scan = timezone.now() - timedelta(minutes=1)
        Ticket.objects.filter(pk=ticket.pk).update(status=Ticket.TicketStatus.USED, scanned_at=first_scan)

        with patch.object(Ticket.objects, "select_related") as mock_select:
            mock_select.return_value.filter.return_value.first.return_value = stale
            with pytest.raises(AlreadyUsedError) as exc_info:
                verify_and_check_in(ticket.qr_token, creator)

        ticket.refresh_from_db()
        assert exc_info.value.scanned_at == first_scan
        assert ticket.scanned_at == first_scan
        assert ticket.scanned_by is None


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(connection.vendor == "sqlite", reason="needs concurrent connections")
def test_simultaneous_scans_admit_exactly_once(
    creator: TurnstileUser, buyer: TurnstileUser, make_ticket: t.Callable[..., Ticket]
) -> None:
    event = Event.objects.create(
        creator=creator, name="Door", capacity=5, status=Event.EventStatus.PUBLISHED, starts_at=timezone.now()
    )
    ticket = make_ticket(event, buyer)
    outcomes: list[str] = []
    lock = threading.Lock()
    barrier = threading.Barrier(5)

    def scan() -> None:
        barrier.wait()
        try:
            verify_and_check_in(ticket.qr_token, creator)
            result = "admitted"
        except AlreadyUsedError:
            result = "already_used"
        finally:
            connection.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=scan) for _ in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("admitted") == 1
    assert outcomes.count("already_used") == 4
