"""Request context for structured logs."""

import typing as t
import uuid

import structlog
from django.conf import settings
from django.http import HttpRequest, HttpResponse
from opentelemetry import trace


class StructlogContextMiddleware:
    """Binds request metadata to every log event emitted while serving the request.

    The user id is bound later by the authentication classes, since API auth happens inside the view.
    The ``X-Request-ID`` response header carries the same id for support lookups.
    """

    def __init__(self, get_response: t.Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if not settings.ENABLE_OBSERVABILITY:
            return self.get_response(request)

        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        structlog.contextvars.clear_contextvars()

        context: dict[str, t.Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.path,
            "ip_address": get_client_ip(request),
        }
        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            context["trace_id"] = format(span_context.trace_id, "032x")
        structlog.contextvars.bind_contextvars(**context)

        try:
            response = self.get_response(request)
        finally:
            structlog.contextvars.clear_contextvars()
        response["X-Request-ID"] = request_id
        return response


def get_client_ip(request: HttpRequest) -> str:
    """First address of X-Forwarded-For when proxied, REMOTE_ADDR otherwise."""
    x_forwarded_for = request.META.get("HTTP_X_FORWARDED_FOR")
    if x_forwarded_for:
        return str(x_forwarded_for.split(",")[0].strip())
    return str(request.META.get("REMOTE_ADDR", "unknown"))
