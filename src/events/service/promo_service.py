"""Promo code validation, redemption and management."""

import typing as t
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

import structlog
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from accounts.models import TurnstileUser
from events.exceptions import (
    ForbiddenError,
    PromoCodeConflictError,
    PromoExhaustedError,
    PromoInvalidError,
)
from events.models import Event, PromoCode, Ticket

from .ledger import retry_on_transient

logger = structlog.get_logger(__name__)

CENT = Decimal("0.01")


@dataclass(frozen=True)
class DiscountQuote:
    original_price: Decimal
    discount_amount: Decimal
    final_price: Decimal
    promo_code: PromoCode | None = None


def normalize_code(code: str) -> str:
    return code.strip().upper()


def full_price_quote(event: Event) -> DiscountQuote:
    """A quote without any discount."""
    return DiscountQuote(original_price=event.price, discount_amount=Decimal("0.00"), final_price=event.price)


def compute_discount(price: Decimal, discount_type: str, value: Decimal) -> Decimal:
    """Discount for a price, never larger than the price itself.

    Percentage discounts are rounded half-up to the cent.
    """
    if discount_type == PromoCode.DiscountType.PERCENTAGE:
        amount = (price * value / Decimal(100)).quantize(CENT, rounding=ROUND_HALF_UP)
    else:
        amount = value
    return max(Decimal("0.00"), min(price, amount))


def validate_promo(code: str, event: Event) -> DiscountQuote:
    """Check a code against an event and quote the discounted price.

    Checks run in order: exists, active, not expired, applicable to the event, uses left.
    Nothing is written, so the result can be requested any number of times.

    Raises:
        PromoInvalidError: The code does not exist, is inactive, expired or not applicable.
        PromoExhaustedError: The code reached its usage limit.
    """
    normalized = normalize_code(code)
    promo = PromoCode.objects.filter(code=normalized).first()
    if promo is None:
        raise PromoInvalidError("This promo code does not exist.", reason="not_found")
    if not promo.is_active:
        raise PromoInvalidError("This promo code is no longer active.", reason="inactive")
    if promo.is_expired():
        raise PromoInvalidError("This promo code has expired.", reason="expired")
    applies_to_event = promo.event_id == event.id or (promo.event_id is None and promo.owner_id == event.creator_id)
    if not applies_to_event:
        raise PromoInvalidError("This promo code is not valid for this event.", reason="not_applicable")
    if promo.max_uses is not None and promo.used_count >= promo.max_uses:
        raise PromoExhaustedError()

    discount = compute_discount(event.price, promo.discount_type, promo.discount_value)
    return DiscountQuote(
        original_price=event.price,
        discount_amount=discount,
        final_price=event.price - discount,
        promo_code=promo,
    )


@retry_on_transient
@transaction.atomic
def redeem_promo(code: str, event: Event, ticket: Ticket | None = None) -> None:
    """Consume one use of a code.

    The increment is a single conditional update, so concurrent redemptions of the last use
    cannot both succeed.

    Raises:
        PromoExhaustedError: No uses left at the moment of redemption.
        PromoInvalidError: The code was deactivated, expired or deleted since validation.
    """
    normalized = normalize_code(code)
    updated = PromoCode.objects.redeemable().filter(code=normalized).update(
        used_count=F("used_count") + 1, updated_at=timezone.now()
    )

    if updated:
        logger.info(
            "promo_code_redeemed",
            promo_code=normalized,
            event_id=str(event.id),
            ticket_id=str(ticket.id) if ticket else None,
        )
        return

    promo = PromoCode.objects.filter(code=normalized).first()
    if promo is None or not promo.is_active or promo.is_expired():
        logger.info("promo_code_redeem_invalid", promo_code=normalized, event_id=str(event.id))
        raise PromoInvalidError()
    logger.info("promo_code_exhausted", promo_code=normalized, event_id=str(event.id))
    raise PromoExhaustedError()


def create_promo_code(
    owner: TurnstileUser,
    *,
    code: str,
    discount_type: str,
    discount_value: Decimal,
    event: Event | None = None,
    max_uses: int | None = None,
    expires_at: datetime | None = None,
    is_active: bool = True,
) -> PromoCode:
    """Create a promo code for one of the owner's events, or for all of them.

    Raises:
        ForbiddenError: The event belongs to someone else.
        PromoCodeConflictError: The code is taken.
    """
    if event is not None and event.creator_id != owner.id:
        raise ForbiddenError("You can only create promo codes for your own events.")
    normalized = normalize_code(code)
    if PromoCode.objects.filter(code=normalized).exists():
        raise PromoCodeConflictError()
    try:
        with transaction.atomic():
            promo = PromoCode.objects.create(
                code=normalized,
                owner=owner,
                event=event,
                discount_type=discount_type,
                discount_value=discount_value,
                max_uses=max_uses,
                expires_at=expires_at,
                is_active=is_active,
            )
    except IntegrityError as e:
        raise PromoCodeConflictError() from e
    logger.info("promo_code_created", promo_code_id=str(promo.id), owner_id=str(owner.id))
    return promo


@transaction.atomic
def update_promo_code(promo: PromoCode, **fields: t.Any) -> PromoCode:
    """Update the mutable settings of a code: is_active, max_uses and expires_at.

    The row is locked and re-read first, so a lowered ``max_uses`` is checked against the usage
    committed by concurrent redemptions rather than the caller's copy.

    Raises:
        ValidationError: ``max_uses`` would drop below the current usage.
    """
    allowed = {"is_active", "max_uses", "expires_at"}
    changed = [name for name in fields if name in allowed]
    if not changed:
        return promo
    locked = PromoCode.objects.select_for_update().get(pk=promo.pk)
    for name in changed:
        setattr(locked, name, fields[name])
    locked.save(update_fields=[*changed, "updated_at"])
    logger.info("promo_code_updated", promo_code_id=str(locked.id), fields=changed)
    return locked


def delete_promo_code(promo: PromoCode) -> None:
    logger.info("promo_code_deleted", promo_code_id=str(promo.id))
    promo.delete()
