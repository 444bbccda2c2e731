import typing as t
from uuid import UUID

from django.db.models import Q
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.authentication import OptionalAuth, TurnstileJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ResponseOk
from common.throttling import PurchaseThrottle, WriteThrottle
from events import models, schema
from events.service import promo_service, purchase_service, waitlist_service
from events.service.promo_service import DiscountQuote
from events.service.waitlist_service import WaitlistStatus


@api_controller("/events", auth=OptionalAuth(), tags=["Events"])
class EventController(UserAwareController):
    def get_queryset(self) -> models.event.EventQuerySet:
        """Published events, plus the caller's own drafts."""
        user = self.maybe_user()
        if user.is_authenticated:
            return models.Event.objects.filter(Q(status=models.Event.EventStatus.PUBLISHED) | Q(creator=user))
        return models.Event.objects.published()

    def get_one(self, event_id: UUID) -> models.Event:
        """Wrapper helper."""
        return t.cast(models.Event, self.get_object_or_exception(self.get_queryset(), pk=event_id))

    @route.get("/", url_name="list_events", response=PaginatedResponseSchema[schema.EventSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def list_events(self) -> models.event.EventQuerySet:
        """List events that are on sale, soonest first."""
        return models.Event.objects.published().order_by("starts_at", "-created_at")

    @route.get("/{uuid:event_id}", url_name="get_event", response=schema.EventSchema)
    def get_event(self, event_id: UUID) -> models.Event:
        """Get an event with its remaining availability."""
        return self.get_one(event_id)

    @route.post(
        "/{uuid:event_id}/purchase",
        url_name="purchase_ticket",
        response={200: schema.PurchaseResponseSchema, 400: ErrorResponse, 402: ErrorResponse, 409: ErrorResponse},
        auth=TurnstileJWTAuth(),
        throttle=PurchaseThrottle(),
    )
    def purchase(self, event_id: UUID, payload: schema.PurchaseRequestSchema) -> dict[str, t.Any]:
        """Buy a ticket, or reserve one and get a checkout URL for priced events.

        Free tickets (including ones discounted to zero by a promo code) are issued right away.
        For priced events the response carries `checkout_url`; the ticket is issued once the
        payment provider reports success. A sold-out event answers 409 `sold_out`; join the
        waitlist instead.
        """
        event = self.get_one(event_id)
        result = purchase_service.purchase_or_reserve(event, self.user(), promo_code=payload.promo_code)
        return {
            "reservation_id": result.reservation.id,
            "expires_at": result.reservation.expires_at,
            "quote": result.quote,
            "ticket": result.ticket,
            "payment_id": result.payment.id if result.payment else None,
            "checkout_url": result.checkout_url,
        }

    @route.post(
        "/{uuid:event_id}/promo-codes/validate",
        url_name="validate_promo_code",
        response={200: schema.DiscountQuoteSchema, 400: ErrorResponse, 409: ErrorResponse},
    )
    def validate_promo_code(self, event_id: UUID, payload: schema.PromoValidateSchema) -> DiscountQuote:
        """Quote the price of a ticket with a promo code. Nothing is redeemed."""
        event = self.get_one(event_id)
        return promo_service.validate_promo(payload.code, event)

    @route.get(
        "/{uuid:event_id}/waitlist",
        url_name="waitlist_status",
        response=schema.WaitlistStatusSchema,
        auth=TurnstileJWTAuth(),
    )
    def waitlist_status(self, event_id: UUID) -> WaitlistStatus:
        """Your place on the event's waitlist, if any.

        `position` is your rank among the people still waiting; `total_ahead` is `position - 1`.
        """
        event = self.get_one(event_id)
        return waitlist_service.get_waitlist_status(event, self.user())

    @route.post(
        "/{uuid:event_id}/waitlist",
        url_name="join_waitlist",
        response={200: schema.WaitlistJoinResponseSchema, 409: ErrorResponse},
        auth=TurnstileJWTAuth(),
        throttle=WriteThrottle(),
    )
    def join_waitlist(self, event_id: UUID) -> dict[str, t.Any]:
        """Join the waitlist of a sold-out event.

        When a spot opens up, the first person in line is notified and has priority for a limited time.
        """
        event = self.get_one(event_id)
        entry = waitlist_service.join_waitlist(event, self.user())
        rank = waitlist_service.get_rank(entry)
        return {"id": entry.id, "position": rank, "total_ahead": rank - 1}

    @route.delete(
        "/{uuid:event_id}/waitlist",
        url_name="leave_waitlist",
        response={200: ResponseOk, 404: ErrorResponse},
        auth=TurnstileJWTAuth(),
        throttle=WriteThrottle(),
    )
    def leave_waitlist(self, event_id: UUID) -> ResponseOk:
        """Leave the event's waitlist."""
        event = self.get_one(event_id)
        waitlist_service.leave_waitlist(event, self.user())
        return ResponseOk()
