"""Promo code schemas."""

from decimal import Decimal
from uuid import UUID

from ninja import ModelSchema, Schema
from pydantic import AwareDatetime, Field, field_validator

from events.models import PromoCode


class DiscountQuoteSchema(Schema):
    original_price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    promo_code: str | None = None

    @staticmethod
    def resolve_promo_code(obj: object) -> str | None:
        promo = getattr(obj, "promo_code", None)
        if isinstance(promo, PromoCode):
            return promo.code
        return promo


class PromoValidateSchema(Schema):
    code: str = Field(..., min_length=1, max_length=20)


class PromoCodeSchema(ModelSchema):
    discount_type: PromoCode.DiscountType
    event_id: UUID | None = None

    class Meta:
        model = PromoCode
        fields = [
            "id",
            "code",
            "discount_type",
            "discount_value",
            "max_uses",
            "used_count",
            "expires_at",
            "is_active",
            "created_at",
        ]


class PromoCodeCreateSchema(Schema):
    code: str = Field(..., min_length=3, max_length=20, pattern=r"^[A-Za-z0-9_-]+$")
    discount_type: PromoCode.DiscountType
    discount_value: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    event_id: UUID | None = None
    max_uses: int | None = Field(None, ge=1)
    expires_at: AwareDatetime | None = None
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def upper_case_code(cls, value: str) -> str:
        return value.upper()


class PromoCodeUpdateSchema(Schema):
    is_active: bool | None = None
    max_uses: int | None = Field(None, ge=1)
    expires_at: AwareDatetime | None = None
