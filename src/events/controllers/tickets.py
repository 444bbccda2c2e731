from uuid import UUID

from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.authentication import TurnstileJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse
from common.throttling import WriteThrottle
from events import models, schema
from events.service import ticket_service


@api_controller("/tickets", auth=TurnstileJWTAuth(), tags=["Tickets"])
class TicketController(UserAwareController):
    def get_queryset(self) -> models.ticket.TicketQuerySet:
        """Tickets held by the user or issued for their events."""
        return models.Ticket.objects.full().for_user(self.user())

    def get_one(self, ticket_id: UUID) -> models.Ticket:
        """Wrapper helper."""
        return self.get_object_or_exception(self.get_queryset(), pk=ticket_id)  # type: ignore[no-any-return]

    @route.get("/", url_name="list_my_tickets", response=PaginatedResponseSchema[schema.UserTicketSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def list_my_tickets(self) -> models.ticket.TicketQuerySet:
        """List your tickets, newest first."""
        return models.Ticket.objects.full().filter(user=self.user())

    @route.get("/{uuid:ticket_id}", url_name="get_ticket", response=schema.TicketSchema)
    def get_ticket(self, ticket_id: UUID) -> models.Ticket:
        """Get a ticket you hold or that was issued for one of your events."""
        return self.get_one(ticket_id)

    @route.post(
        "/{uuid:ticket_id}/cancel",
        url_name="cancel_ticket",
        response={200: schema.TicketSchema, 403: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def cancel_ticket(self, ticket_id: UUID) -> models.Ticket:
        """Cancel a ticket. The freed spot is offered to the first person on the waitlist."""
        ticket = self.get_one(ticket_id)
        return ticket_service.cancel_ticket(ticket, self.user())

    @route.post(
        "/{uuid:ticket_id}/transfer",
        url_name="transfer_ticket",
        response={200: schema.TicketSchema, 403: ErrorResponse, 404: ErrorResponse, 409: ErrorResponse},
        throttle=WriteThrottle(),
    )
    def transfer_ticket(self, ticket_id: UUID, payload: schema.TicketTransferSchema) -> models.Ticket:
        """Transfer your ticket to another user by email. A new QR code is issued to them."""
        ticket = self.get_one(ticket_id)
        return ticket_service.transfer_ticket(ticket, self.user(), payload.recipient_email)
