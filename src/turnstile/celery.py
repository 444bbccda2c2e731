"""Celery setup for Turnstile."""

import os
import typing as t

import structlog
from celery import Celery
from celery.signals import task_postrun, task_prerun
from opentelemetry import trace

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "turnstile.settings")

app = Celery("turnstile")

# - namespace='CELERY' means all celery-related configuration keys
#   should have a `CELERY_` prefix.
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()


@task_prerun.connect
def celery_task_prerun(task_id: str, task: t.Any, *args: t.Any, **kwargs: t.Any) -> None:
    """Bind Celery task context to structlog before task execution."""
    from django.conf import settings

    if not settings.ENABLE_OBSERVABILITY:
        return

    structlog.contextvars.clear_contextvars()

    trace_id = None
    span = trace.get_current_span()
    if span and span.get_span_context().is_valid:
        trace_id = format(span.get_span_context().trace_id, "032x")

    context = {
        "task_id": task_id,
        "task_name": task.name,
        "retries": task.request.retries if hasattr(task.request, "retries") else 0,
    }
    if trace_id:
        context["trace_id"] = trace_id

    structlog.contextvars.bind_contextvars(**context)


@task_postrun.connect
def celery_task_postrun(*args: t.Any, **kwargs: t.Any) -> None:
    """Clear structlog context after task execution."""
    from django.conf import settings

    if not settings.ENABLE_OBSERVABILITY:
        return

    structlog.contextvars.clear_contextvars()


# run:
# celery -A turnstile worker -l INFO
# celery -A turnstile beat -l INFO --scheduler django_celery_beat.schedulers:DatabaseScheduler
