import typing as t
from unittest.mock import MagicMock

import pytest
from django.db import OperationalError

from events.exceptions import TransientStoreError
from events.service.ledger import retry_on_transient


@pytest.fixture(autouse=True)
def no_backoff(settings: t.Any) -> None:
    settings.LEDGER_RETRY_ATTEMPTS = 3
    settings.LEDGER_RETRY_BACKOFF_SECONDS = 0


def test_retries_until_success() -> None:
    operation = MagicMock(side_effect=[OperationalError("deadlock detected"), "done"], __name__="operation")

    assert retry_on_transient(operation)() == "done"
    assert operation.call_count == 2


def test_gives_up_after_configured_attempts() -> None:
    operation = MagicMock(side_effect=OperationalError("could not serialize access"), __name__="operation")

    with pytest.raises(TransientStoreError):
        retry_on_transient(operation)()

    assert operation.call_count == 3


def test_business_errors_are_not_retried() -> None:
    operation = MagicMock(side_effect=ValueError("nope"), __name__="operation")

    with pytest.raises(ValueError):
        retry_on_transient(operation)()

    assert operation.call_count == 1
