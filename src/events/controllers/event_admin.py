import typing as t
from uuid import UUID

from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.authentication import TurnstileJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ValidationErrorResponse
from common.throttling import CheckInThrottle, WriteThrottle
from events import models, schema
from events.service import check_in, event_service, waitlist_service


@api_controller("/event-admin", auth=TurnstileJWTAuth(), tags=["Event Admin"], throttle=WriteThrottle())
class EventAdminController(UserAwareController):
    """Creator-facing event management, door check-in and waitlist overview."""

    def get_queryset(self) -> models.event.EventQuerySet:
        """Events created by the user."""
        return models.Event.objects.created_by(self.user())

    def get_one(self, event_id: UUID) -> models.Event:
        """Wrapper helper."""
        return t.cast(models.Event, self.get_object_or_exception(self.get_queryset(), pk=event_id))

    @route.get("/events", url_name="list_my_events", response=PaginatedResponseSchema[schema.EventSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def list_events(self) -> models.event.EventQuerySet:
        """List the events you created."""
        return self.get_queryset()

    @route.post(
        "/events",
        url_name="create_event",
        response={200: schema.EventSchema, 400: ValidationErrorResponse},
    )
    def create_event(self, payload: schema.EventCreateSchema) -> models.Event:
        """Create an event. It starts as a draft; publish it to put tickets on sale."""
        return event_service.create_event(self.user(), **payload.model_dump(exclude_none=True))

    @route.get("/events/{uuid:event_id}", url_name="get_my_event", response=schema.EventSchema)
    def get_event(self, event_id: UUID) -> models.Event:
        """Get one of your events."""
        return self.get_one(event_id)

    @route.patch(
        "/events/{uuid:event_id}",
        url_name="update_event",
        response={200: schema.EventSchema, 400: ErrorResponse},
    )
    def update_event(self, event_id: UUID, payload: schema.EventUpdateSchema) -> models.Event:
        """Update an event.

        Capacity can only be lowered down to the number of tickets and reservations already taken.
        """
        event = self.get_one(event_id)
        return event_service.update_event(event, **payload.model_dump(exclude_unset=True))

    @route.post("/events/{uuid:event_id}/publish", url_name="publish_event", response=schema.EventSchema)
    def publish_event(self, event_id: UUID) -> models.Event:
        """Put an event on sale."""
        event = self.get_one(event_id)
        return event_service.publish_event(event)

    @route.get(
        "/events/{uuid:event_id}/tickets",
        url_name="list_event_tickets",
        response=PaginatedResponseSchema[schema.TicketSchema],
    )
    @paginate(PageNumberPaginationExtra, page_size=50)
    def list_tickets(self, event_id: UUID, status: models.Ticket.TicketStatus | None = None) -> t.Any:
        """List the tickets issued for your event, optionally filtered by status."""
        event = self.get_one(event_id)
        qs = models.Ticket.objects.full().filter(event=event)
        if status:
            qs = qs.filter(status=status)
        return qs

    @route.get(
        "/events/{uuid:event_id}/waitlist",
        url_name="list_waitlist",
        response=list[schema.AdminWaitlistEntrySchema],
    )
    def list_waitlist(self, event_id: UUID) -> list[dict[str, t.Any]]:
        """List the people still waiting, in queue order, with the rank each of them sees."""
        event = self.get_one(event_id)
        return [
            {
                "id": entry.id,
                "user": entry.user,
                "state": entry.state,
                "rank": rank,
                "joined_at": entry.joined_at,
                "notified_at": entry.notified_at,
                "hold_expires_at": entry.hold_expires_at,
            }
            for entry, rank in waitlist_service.list_waitlist(event)
        ]

    @route.post(
        "/check-in",
        url_name="check_in",
        response={200: schema.CheckInResponseSchema, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=CheckInThrottle(),
    )
    def check_in(self, payload: schema.CheckInRequestSchema) -> models.Ticket:
        """Verify a scanned QR code and admit the ticket holder.

        Each ticket is admitted once. A second scan answers 409 `already_used` with the time of the
        first scan in `extra.scanned_at`; a cancelled ticket answers 409 `cancelled`.
        """
        return check_in.verify_and_check_in(payload.qr_token, self.user())
