"""Ticket, purchase and check-in schemas."""

import typing as t
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import EmailStr, Field

from accounts.schema import MinimalTurnstileUserSchema
from events.models import Ticket

from .event import EventSchema
from .promo import DiscountQuoteSchema


class TicketSchema(ModelSchema):
    """A ticket as seen by the event creator."""

    status: Ticket.TicketStatus
    user: MinimalTurnstileUserSchema
    event_id: UUID
    promo_code: str | None = None

    class Meta:
        model = Ticket
        fields = ["id", "status", "price_paid", "scanned_at", "cancelled_at", "created_at"]

    @staticmethod
    def resolve_promo_code(obj: Ticket) -> str | None:
        return obj.promo_code.code if obj.promo_code else None


class UserTicketSchema(ModelSchema):
    """A ticket as seen by its holder, including the QR token."""

    status: Ticket.TicketStatus
    event: EventSchema
    qr_token: str

    class Meta:
        model = Ticket
        fields = ["id", "status", "qr_token", "price_paid", "scanned_at", "created_at"]


class PurchaseRequestSchema(Schema):
    promo_code: str | None = Field(None, min_length=1, max_length=20)


class PurchaseResponseSchema(Schema):
    """Either an issued ticket or a checkout to complete."""

    reservation_id: UUID
    expires_at: datetime
    quote: DiscountQuoteSchema
    ticket: UserTicketSchema | None = None
    payment_id: UUID | None = None
    checkout_url: str | None = None


class ConfirmPurchaseSchema(Schema):
    reference: str = Field(..., min_length=1, max_length=255)
    outcome: t.Literal["SUCCESS", "FAILED"]


class TicketTransferSchema(Schema):
    recipient_email: EmailStr


class CheckInRequestSchema(Schema):
    qr_token: str = Field(..., min_length=1, max_length=128)


class CheckInResponseSchema(ModelSchema):
    status: Ticket.TicketStatus
    user: MinimalTurnstileUserSchema
    event: EventSchema
    price_paid: Decimal

    class Meta:
        model = Ticket
        fields = ["id", "status", "scanned_at", "price_paid"]
