"""Tests for the periodic ticketing tasks."""

import typing as t
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from accounts.models import TurnstileUser
from events import tasks
from events.models import Event, Reservation, WaitlistEntry
from events.service import capacity_guard

pytestmark = pytest.mark.django_db


def test_release_expired_reservations_task(free_event: Event, buyer: TurnstileUser) -> None:
    reservation = capacity_guard.reserve(free_event, buyer)
    Reservation.objects.filter(pk=reservation.pk).update(expires_at=timezone.now() - timedelta(seconds=1))

    result = tasks.release_expired_reservations.delay()

    assert result.get() == 1
    free_event.refresh_from_db()
    assert free_event.reserved_count == 0


def test_expire_waitlist_holds_task(free_event: Event, buyer: TurnstileUser) -> None:
    entry = WaitlistEntry.objects.create(
        event=free_event,
        user=buyer,
        position=1,
        state=WaitlistEntry.WaitlistState.NOTIFIED,
        hold_expires_at=timezone.now() - timedelta(minutes=1),
    )

    assert tasks.expire_waitlist_holds.delay().get() == 1

    entry.refresh_from_db()
    assert entry.state == WaitlistEntry.WaitlistState.EXPIRED


def test_promote_waitlist_task(free_event: Event, buyer: TurnstileUser) -> None:
    entry = WaitlistEntry.objects.create(event=free_event, user=buyer, position=1)

    assert tasks.promote_waitlist.delay(str(free_event.id)).get() == str(entry.id)
    assert tasks.promote_waitlist.delay(str(free_event.id)).get() is None


def test_audit_capacity_task(free_event: Event, buyer: TurnstileUser, other_buyer: TurnstileUser) -> None:
    capacity_guard.confirm(capacity_guard.reserve(free_event, buyer), price_paid=Decimal("0"))

    assert tasks.audit_capacity.delay().get() == 0

    Event.objects.filter(pk=free_event.pk).update(reserved_count=2)
    assert tasks.audit_capacity.delay().get() == 1


def test_beat_schedule_registers_sweeps(settings: t.Any) -> None:
    scheduled = {entry["task"] for entry in settings.CELERY_BEAT_SCHEDULE.values()}

    assert {"events.release_expired_reservations", "events.expire_waitlist_holds", "events.audit_capacity"} <= scheduled
