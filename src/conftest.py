"""
Project-wide fixtures: users, time helpers and celery/throttling test configuration.
"""

import secrets
import string
import typing as t
from datetime import datetime, time, timedelta

import faker
import pytest
from django.utils import timezone
from pytest import MonkeyPatch

from accounts.models import TurnstileUser


@pytest.fixture(autouse=True)
def increase_rate_limit(monkeypatch: MonkeyPatch) -> None:
    """Increase the rate limits of the write-heavy throttles to allow testing."""
    monkeypatch.setattr("common.throttling.AnonDefaultThrottle.rate", "1000/min")
    monkeypatch.setattr("common.throttling.UserDefaultThrottle.rate", "1000/min")
    monkeypatch.setattr("common.throttling.WriteThrottle.rate", "1000/min")
    monkeypatch.setattr("common.throttling.PurchaseThrottle.rate", "1000/min")
    monkeypatch.setattr("common.throttling.CheckInThrottle.rate", "1000/min")


@pytest.fixture(autouse=True)
def enable_celery_eager_mode(settings: t.Any) -> t.Iterator[None]:
    """Enable Celery eager mode for tests so tasks execute synchronously.

    This ensures that Celery tasks run immediately in the same process,
    allowing tests to verify their side effects without async complications.
    """
    from turnstile.celery import app

    settings.CELERY_TASK_ALWAYS_EAGER = True
    settings.CELERY_TASK_EAGER_PROPAGATES = True
    previous = (app.conf.task_always_eager, app.conf.task_eager_propagates)
    app.conf.task_always_eager = True
    app.conf.task_eager_propagates = True
    yield
    app.conf.task_always_eager, app.conf.task_eager_propagates = previous


class TurnstileUserFactory:
    """Factory for creating TurnstileUser instances for testing."""

    fake = faker.Faker()

    def create_user(self, **kwargs: t.Any) -> TurnstileUser:
        username = kwargs.pop(
            "username", "".join(secrets.choice(string.ascii_lowercase) for _ in range(8)) + "@user.test"
        )
        email = kwargs.pop("email", username + ("@test.com" if "@" not in username else ""))
        password = kwargs.pop("password", "password")
        first_name = kwargs.pop("first_name", self.fake.first_name())
        last_name = kwargs.pop("last_name", self.fake.last_name())
        preferred_name = kwargs.pop("preferred_name", f"{first_name} {last_name}")
        return TurnstileUser.objects.create_user(
            username=username,
            email=email,
            password=password,
            preferred_name=preferred_name,
            first_name=first_name,
            last_name=last_name,
            **kwargs,
        )

    def __call__(self, **kwargs: t.Any) -> TurnstileUser:
        return self.create_user(**kwargs)


@pytest.fixture
def turnstile_user_factory() -> TurnstileUserFactory:
    return TurnstileUserFactory()


@pytest.fixture
def user(turnstile_user_factory: TurnstileUserFactory) -> TurnstileUser:
    return turnstile_user_factory()


@pytest.fixture
def superuser(turnstile_user_factory: TurnstileUserFactory) -> TurnstileUser:
    """A superuser."""
    return turnstile_user_factory(is_superuser=True, is_staff=True)


@pytest.fixture
def next_week() -> datetime:
    today = timezone.now()
    same_time_next_week = today + timedelta(days=7)
    noon = time(hour=12, minute=0)
    return timezone.make_aware(
        datetime.combine(same_time_next_week.date(), noon),
        timezone.get_current_timezone(),
    )
