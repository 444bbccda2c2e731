"""Transaction plumbing shared by the engine's conditional updates."""

import functools
import time
import typing as t

import structlog
from django.conf import settings
from django.db import OperationalError

from events.exceptions import TransientStoreError

logger = structlog.get_logger(__name__)

P = t.ParamSpec("P")
R = t.TypeVar("R")


def retry_on_transient(func: t.Callable[P, R]) -> t.Callable[P, R]:
    """Retry an idempotent ledger operation on transient store failures.

    The wrapped function must open its own atomic block (apply this decorator outside
    ``transaction.atomic``) so every attempt runs against a fresh transaction or savepoint.
    Connection losses, serialization failures and deadlocks all surface as ``OperationalError``.
    After ``LEDGER_RETRY_ATTEMPTS`` attempts the failure is raised as ``TransientStoreError``.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        attempts = max(1, settings.LEDGER_RETRY_ATTEMPTS)
        backoff = settings.LEDGER_RETRY_BACKOFF_SECONDS
        for attempt in range(1, attempts + 1):
            try:
                return func(*args, **kwargs)
            except OperationalError as e:
                if attempt == attempts:
                    logger.error(
                        "ledger_retries_exhausted",
                        operation=func.__name__,
                        attempts=attempts,
                        error=str(e),
                    )
                    raise TransientStoreError() from e
                logger.warning(
                    "ledger_transient_error",
                    operation=func.__name__,
                    attempt=attempt,
                    error=str(e),
                )
                time.sleep(backoff * 2 ** (attempt - 1))
        raise AssertionError("unreachable")  # pragma: no cover

    return wrapper
