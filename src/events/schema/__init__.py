"""Events schema package."""

from .event import EventCreateSchema, EventSchema, EventUpdateSchema
from .promo import (
    DiscountQuoteSchema,
    PromoCodeCreateSchema,
    PromoCodeSchema,
    PromoCodeUpdateSchema,
    PromoValidateSchema,
)
from .ticket import (
    CheckInRequestSchema,
    CheckInResponseSchema,
    ConfirmPurchaseSchema,
    PurchaseRequestSchema,
    PurchaseResponseSchema,
    TicketSchema,
    TicketTransferSchema,
    UserTicketSchema,
)
from .waitlist import AdminWaitlistEntrySchema, WaitlistJoinResponseSchema, WaitlistStatusSchema

__all__ = [
    # Events
    "EventCreateSchema",
    "EventSchema",
    "EventUpdateSchema",
    # Tickets
    "CheckInRequestSchema",
    "CheckInResponseSchema",
    "ConfirmPurchaseSchema",
    "PurchaseRequestSchema",
    "PurchaseResponseSchema",
    "TicketSchema",
    "TicketTransferSchema",
    "UserTicketSchema",
    # Waitlist
    "AdminWaitlistEntrySchema",
    "WaitlistJoinResponseSchema",
    "WaitlistStatusSchema",
    # Promo codes
    "DiscountQuoteSchema",
    "PromoCodeCreateSchema",
    "PromoCodeSchema",
    "PromoCodeUpdateSchema",
    "PromoValidateSchema",
]
