"""Tests for promo code validation, redemption and management."""

import threading
from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.exceptions import ValidationError
from django.db import connection
from django.utils import timezone

from accounts.models import TurnstileUser
from conftest import TurnstileUserFactory
from events.exceptions import ForbiddenError, PromoCodeConflictError, PromoExhaustedError, PromoInvalidError
from events.models import Event, PromoCode
from events.service import promo_service

pytestmark = pytest.mark.django_db


class TestComputeDiscount:
    @pytest.mark.parametrize(
        "price,discount_type,value,expected",
        [
            (Decimal("50.00"), PromoCode.DiscountType.PERCENTAGE, Decimal("20"), Decimal("10.00")),
            (Decimal("9.99"), PromoCode.DiscountType.PERCENTAGE, Decimal("15"), Decimal("1.50")),
            (Decimal("50.00"), PromoCode.DiscountType.FIXED, Decimal("5.00"), Decimal("5.00")),
            (Decimal("5.00"), PromoCode.DiscountType.FIXED, Decimal("8.00"), Decimal("5.00")),
            (Decimal("30.00"), PromoCode.DiscountType.PERCENTAGE, Decimal("100"), Decimal("30.00")),
        ],
    )
    def test_compute_discount(
        self, price: Decimal, discount_type: str, value: Decimal, expected: Decimal
    ) -> None:
        """Percentages round half-up to the cent and no discount exceeds the price."""
        assert promo_service.compute_discount(price, discount_type, value) == expected


class TestValidatePromo:
    def test_valid_code_is_case_insensitive(self, paid_event: Event, promo_code: PromoCode) -> None:
        quote = promo_service.validate_promo(" save20 ", paid_event)

        assert quote.original_price == Decimal("50.00")
        assert quote.discount_amount == Decimal("10.00")
        assert quote.final_price == Decimal("40.00")
        assert quote.promo_code == promo_code

    def test_validation_does_not_consume(self, paid_event: Event, promo_code: PromoCode) -> None:
        promo_service.validate_promo("SAVE20", paid_event)
        promo_service.validate_promo("SAVE20", paid_event)

        promo_code.refresh_from_db()
        assert promo_code.used_count == 0

    def test_unknown_code(self, paid_event: Event) -> None:
        with pytest.raises(PromoInvalidError) as exc_info:
            promo_service.validate_promo("NOPE", paid_event)
        assert exc_info.value.extra["reason"] == "not_found"

    def test_inactive_code(self, paid_event: Event, promo_code: PromoCode) -> None:
        PromoCode.objects.filter(pk=promo_code.pk).update(is_active=False)

        with pytest.raises(PromoInvalidError) as exc_info:
            promo_service.validate_promo("SAVE20", paid_event)
        assert exc_info.value.extra["reason"] == "inactive"

    def test_expired_code(self, paid_event: Event, promo_code: PromoCode) -> None:
        PromoCode.objects.filter(pk=promo_code.pk).update(expires_at=timezone.now() - timedelta(days=1))

        with pytest.raises(PromoInvalidError) as exc_info:
            promo_service.validate_promo("SAVE20", paid_event)
        assert exc_info.value.extra["reason"] == "expired"

    def test_code_for_another_event(self, free_event: Event, promo_code: PromoCode) -> None:
        with pytest.raises(PromoInvalidError) as exc_info:
            promo_service.validate_promo("SAVE20", free_event)
        assert exc_info.value.extra["reason"] == "not_applicable"

    def test_global_code_applies_to_all_owner_events(
        self, creator: TurnstileUser, paid_event: Event, free_event: Event
    ) -> None:
        PromoCode.objects.create(
            code="EVERYWHERE",
            owner=creator,
            discount_type=PromoCode.DiscountType.FIXED,
            discount_value=Decimal("5"),
        )

        assert promo_service.validate_promo("EVERYWHERE", paid_event).final_price == Decimal("45.00")
        assert promo_service.validate_promo("EVERYWHERE", free_event).final_price == Decimal("0")

    def test_global_code_does_not_apply_to_other_creators(
        self, other_buyer: TurnstileUser, paid_event: Event
    ) -> None:
        PromoCode.objects.create(
            code="NOTYOURS",
            owner=other_buyer,
            discount_type=PromoCode.DiscountType.FIXED,
            discount_value=Decimal("5"),
        )

        with pytest.raises(PromoInvalidError):
            promo_service.validate_promo("NOTYOURS", paid_event)

    def test_exhausted_code(self, paid_event: Event, promo_code: PromoCode) -> None:
        PromoCode.objects.filter(pk=promo_code.pk).update(used_count=1)

        with pytest.raises(PromoExhaustedError):
            promo_service.validate_promo("SAVE20", paid_event)


class TestRedeemPromo:
    def test_redeem_increments_usage(self, paid_event: Event, promo_code: PromoCode) -> None:
        promo_service.redeem_promo("save20", paid_event)

        promo_code.refresh_from_db()
        assert promo_code.used_count == 1

    def test_redeem_past_limit_raises(self, paid_event: Event, promo_code: PromoCode) -> None:
        """The last use goes to exactly one redemption."""
        promo_service.redeem_promo("SAVE20", paid_event)

        with pytest.raises(PromoExhaustedError):
            promo_service.redeem_promo("SAVE20", paid_event)

        promo_code.refresh_from_db()
        assert promo_code.used_count == 1

    def test_quote_of_last_use_does_not_reserve_it(self, paid_event: Event, promo_code: PromoCode) -> None:
        """Two buyers may both be quoted the last use; the guarded increment lets only one redeem."""
        first_quote = promo_service.validate_promo("SAVE20", paid_event)
        second_quote = promo_service.validate_promo("SAVE20", paid_event)
        assert first_quote == second_quote

        promo_service.redeem_promo("SAVE20", paid_event)
        with pytest.raises(PromoExhaustedError):
            promo_service.redeem_promo("SAVE20", paid_event)

        promo_code.refresh_from_db()
        assert promo_code.used_count == 1

    def test_redeem_deactivated_code_raises(self, paid_event: Event, promo_code: PromoCode) -> None:
        PromoCode.objects.filter(pk=promo_code.pk).update(is_active=False)

        with pytest.raises(PromoInvalidError):
            promo_service.redeem_promo("SAVE20", paid_event)

    def test_unlimited_code(self, creator: TurnstileUser, paid_event: Event) -> None:
        PromoCode.objects.create(
            code="UNLIMITED",
            owner=creator,
            event=paid_event,
            discount_type=PromoCode.DiscountType.FIXED,
            discount_value=Decimal("1"),
        )

        for _ in range(5):
            promo_service.redeem_promo("UNLIMITED", paid_event)

        assert PromoCode.objects.get(code="UNLIMITED").used_count == 5


class TestManagePromoCodes:
    def test_create_normalizes_code(self, creator: TurnstileUser, paid_event: Event) -> None:
        promo = promo_service.create_promo_code(
            creator,
            code=" early-bird ",
            discount_type=PromoCode.DiscountType.PERCENTAGE,
            discount_value=Decimal("15"),
            event=paid_event,
        )

        assert promo.code == "EARLY-BIRD"
        assert promo.used_count == 0

    def test_create_duplicate_code(self, creator: TurnstileUser, promo_code: PromoCode) -> None:
        with pytest.raises(PromoCodeConflictError):
            promo_service.create_promo_code(
                creator, code="save20", discount_type=PromoCode.DiscountType.FIXED, discount_value=Decimal("1")
            )

    def test_create_for_someone_elses_event(self, other_buyer: TurnstileUser, paid_event: Event) -> None:
        with pytest.raises(ForbiddenError):
            promo_service.create_promo_code(
                other_buyer,
                code="STEAL",
                discount_type=PromoCode.DiscountType.FIXED,
                discount_value=Decimal("1"),
                event=paid_event,
            )

    def test_percentage_above_hundred_is_rejected(self, creator: TurnstileUser) -> None:
        with pytest.raises(ValidationError):
            promo_service.create_promo_code(
                creator, code="TOOMUCH", discount_type=PromoCode.DiscountType.PERCENTAGE, discount_value=Decimal("150")
            )

    def test_update_only_touches_mutable_fields(self, promo_code: PromoCode) -> None:
        promo_service.update_promo_code(promo_code, is_active=False, max_uses=10, code="OTHER")

        promo_code.refresh_from_db()
        assert promo_code.is_active is False
        assert promo_code.max_uses == 10
        assert promo_code.code == "SAVE20"

    def test_max_uses_below_usage_is_rejected(self, paid_event: Event, promo_code: PromoCode) -> None:
        promo_service.redeem_promo("SAVE20", paid_event)
        promo_code.refresh_from_db()
        promo_code.max_uses = 5
        promo_code.save()
        PromoCode.objects.filter(pk=promo_code.pk).update(used_count=3)
        promo_code.refresh_from_db()

        with pytest.raises(ValidationError):
            promo_service.update_promo_code(promo_code, max_uses=2)

    def test_max_uses_is_checked_against_committed_usage(self, promo_code: PromoCode) -> None:
        """Redemptions committed after the caller loaded the code still count."""
        PromoCode.objects.filter(pk=promo_code.pk).update(max_uses=5, used_count=3)
        assert promo_code.used_count == 0

        with pytest.raises(ValidationError):
            promo_service.update_promo_code(promo_code, max_uses=2)

        promo_code.refresh_from_db()
        assert promo_code.max_uses == 5

    def test_update_returns_fresh_row(self, promo_code: PromoCode) -> None:
        PromoCode.objects.filter(pk=promo_code.pk).update(max_uses=5, used_count=3)

        updated = promo_service.update_promo_code(promo_code, max_uses=4)

        assert updated.max_uses == 4
        assert updated.used_count == 3


@pytest.mark.django_db(transaction=True)
@pytest.mark.skipif(connection.vendor == "sqlite", reason="needs row-level locking")
def test_concurrent_redemptions_of_last_use(turnstile_user_factory: TurnstileUserFactory) -> None:
    """Twenty redemptions racing for a single use: exactly one wins."""
    owner = turnstile_user_factory()
    event = Event.objects.create(
        creator=owner, name="Promo rush", capacity=50, price=Decimal("20.00"), status=Event.EventStatus.PUBLISHED
    )
    PromoCode.objects.create(
        code="LASTONE",
        owner=owner,
        event=event,
        discount_type=PromoCode.DiscountType.PERCENTAGE,
        discount_value=Decimal("10"),
        max_uses=1,
    )
    outcomes: list[str] = []
    lock = threading.Lock()
    barrier = threading.Barrier(20)

    def attempt() -> None:
        barrier.wait()
        try:
            promo_service.redeem_promo("LASTONE", event)
            result = "redeemed"
        except PromoExhaustedError:
            result = "exhausted"
        finally:
            connection.close()
        with lock:
            outcomes.append(result)

    threads = [threading.Thread(target=attempt) for _ in range(20)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("redeemed") == 1
    assert outcomes.count("exhausted") == 19
    assert PromoCode.objects.get(code="LASTONE").used_count == 1
