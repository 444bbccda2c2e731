from django.conf import settings
from django.core.exceptions import ValidationError
from django.http import HttpRequest
from ninja_extra import NinjaExtraAPI

from common.schema import ResponseOk, VersionResponse
from common.throttling import AnonDefaultThrottle, UserDefaultThrottle
from events.controllers.event_admin import EventAdminController
from events.controllers.events import EventController
from events.controllers.payments import PaymentController
from events.controllers.promo_codes import PromoCodeController
from events.controllers.stripe_webhook import StripeWebhookController
from events.controllers.tickets import TicketController
from events.exceptions import TicketingError

from .exception_handlers import handle_django_validation_error, handle_general_exception, handle_ticketing_error

api = NinjaExtraAPI(
    title="Turnstile Ticketing API",
    docs_url="/docs",
    version=settings.VERSION,
    description=f"Turnstile API {settings.VERSION}",
    app_name=f"turnstile-api-{settings.VERSION}",
    urls_namespace="api",
    servers=[
        {"url": settings.SERVICE_URL, "description": settings.SERVICE_DESCRIPTION},
    ],
    throttle=[AnonDefaultThrottle(), UserDefaultThrottle()],
)


@api.get("/version", tags=["Version"], response={200: VersionResponse})
def version(request: HttpRequest) -> tuple[int, VersionResponse]:
    """Get the API version.

    Args:
        request: The incoming HTTP request.

    Returns:
        The response status code and message.
    """
    return 200, VersionResponse(version=settings.VERSION)


@api.get("/healthcheck", tags=["Healthcheck"], response={200: ResponseOk})
def healthcheck(request: HttpRequest) -> tuple[int, ResponseOk]:
    """Check the health of the API."""
    return 200, ResponseOk()


api.register_controllers(
    EventController,
    TicketController,
    EventAdminController,
    PromoCodeController,
    PaymentController,
    StripeWebhookController,
)

EXCEPTION_HANDLERS = {
    Exception: handle_general_exception,
    ValidationError: handle_django_validation_error,
    TicketingError: handle_ticketing_error,
}

for exc, handler in EXCEPTION_HANDLERS.items():
    api.add_exception_handler(exc, handler)
