import typing as t

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

from common.models import TimeStampedModel

promo_code_validator = RegexValidator(
    regex=r"^[A-Z0-9_-]{3,20}$",
    message="Code must be 3-20 characters of letters, digits, underscores or hyphens.",
)


class PromoCodeQuerySet(models.QuerySet["PromoCode"]):
    def redeemable(self) -> t.Self:
        """Active, unexpired codes with uses left."""
        now = timezone.now()
        return self.filter(
            Q(max_uses__isnull=True) | Q(used_count__lt=F("max_uses")),
            Q(expires_at__isnull=True) | Q(expires_at__gt=now),
            is_active=True,
        )


class PromoCode(TimeStampedModel):
    class DiscountType(models.TextChoices):
        PERCENTAGE = "percentage"
        FIXED = "fixed"

    code = models.CharField(max_length=20, unique=True, validators=[promo_code_validator])
    owner = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="promo_codes")
    event = models.ForeignKey(
        "events.Event",
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name="promo_codes",
        help_text="Leave empty to apply the code to every event of the owner.",
    )
    discount_type = models.CharField(max_length=20, choices=DiscountType.choices)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(0)])
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0, editable=False)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)

    objects = PromoCodeQuerySet.as_manager()

    class Meta:
        constraints = [
            models.CheckConstraint(
                condition=Q(max_uses__isnull=True) | Q(used_count__lte=F("max_uses")),
                name="promo_used_within_max_uses",
            ),
        ]
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return self.code

    def save(self, *args: t.Any, **kwargs: t.Any) -> None:
        """Store codes upper-cased so lookups are case-insensitive."""
        self.code = (self.code or "").strip().upper()
        super().save(*args, **kwargs)

    def clean(self) -> None:
        """Validate the discount value against its type."""
        super().clean()
        if self.discount_value is None:
            return
        if self.discount_value <= 0:
            raise DjangoValidationError({"discount_value": "Discount must be greater than zero."})
        if self.discount_type == self.DiscountType.PERCENTAGE and self.discount_value > 100:
            raise DjangoValidationError({"discount_value": "Percentage discount cannot exceed 100."})
        if self.max_uses is not None and self.max_uses < self.used_count:
            raise DjangoValidationError({"max_uses": "Max uses cannot be lower than the current usage."})

    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= timezone.now()
