"""Event schemas."""

import typing as t
from decimal import Decimal

from ninja import ModelSchema, Schema
from pydantic import AwareDatetime, Field

from events.models import Event

Currencies = t.Literal["EUR", "USD", "GBP", "CHF", "CAD", "AUD", "SEK", "NOK", "DKK", "PLN", "CZK", "JPY"]


class EventSchema(ModelSchema):
    status: Event.EventStatus
    available: int
    is_sold_out: bool

    class Meta:
        model = Event
        fields = [
            "id",
            "name",
            "description",
            "starts_at",
            "capacity",
            "price",
            "currency",
            "status",
            "reserved_count",
            "created_at",
        ]


class EventCreateSchema(Schema):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = ""
    starts_at: AwareDatetime | None = None
    capacity: int = Field(..., ge=1)
    price: Decimal = Field(Decimal("0"), ge=0, max_digits=10, decimal_places=2)
    currency: Currencies | None = None


class EventUpdateSchema(Schema):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    starts_at: AwareDatetime | None = None
    capacity: int | None = Field(None, ge=1)
    price: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)
    currency: Currencies | None = None
