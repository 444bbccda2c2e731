import typing as t

from django.contrib import admin
from django.urls import reverse
from django.utils.html import format_html

from . import models


class UserLinkMixin:
    """Mixin to add a link to a user."""

    def user_link(self, obj: t.Any) -> str:
        user = getattr(obj, "user", getattr(obj, "owner", None))
        url = reverse("admin:accounts_turnstileuser_change", args=[user.id])  # type: ignore[union-attr]
        return format_html('<a href="{}">{}</a>', url, user.username)  # type: ignore[union-attr]

    user_link.short_description = "User"  # type: ignore[attr-defined]


class EventLinkMixin:
    """Mixin to add a link to an event."""

    def event_link(self, obj: t.Any) -> str | None:
        if not getattr(obj, "event", None):
            return None
        url = reverse("admin:events_event_change", args=[obj.event.id])
        return format_html('<a href="{}">{}</a>', url, obj.event.name)

    event_link.short_description = "Event"  # type: ignore[attr-defined]


class TicketInline(admin.TabularInline):  # type: ignore[type-arg]
    model = models.Ticket
    fk_name = "event"
    extra = 0
    fields = ["user", "status", "price_paid", "promo_code", "scanned_at"]
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(models.Event)
class EventAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "creator", "status", "starts_at", "capacity", "reserved_count", "price", "currency"]
    list_filter = ["status", "currency"]
    search_fields = ["name", "creator__email", "creator__username"]
    readonly_fields = ["reserved_count", "created_at", "updated_at"]
    autocomplete_fields = ["creator"]
    inlines = [TicketInline]


@admin.register(models.Ticket)
class TicketAdmin(UserLinkMixin, EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["id", "user_link", "event_link", "status", "price_paid", "scanned_at"]
    list_filter = ["status"]
    search_fields = ["user__email", "event__name", "qr_token"]
    readonly_fields = ["qr_token", "scanned_at", "scanned_by", "reservation", "transferred_from", "cancelled_at"]
    list_select_related = ["user", "event"]

    def has_add_permission(self, request: t.Any) -> bool:
        # Tickets are issued through the capacity guard only.
        return False


@admin.register(models.Reservation)
class ReservationAdmin(UserLinkMixin, EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["id", "user_link", "event_link", "status", "quoted_price", "expires_at"]
    list_filter = ["status"]
    readonly_fields = ["event", "user", "status", "original_price", "quoted_price", "promo_code", "expires_at"]
    list_select_related = ["user", "event"]

    def has_add_permission(self, request: t.Any) -> bool:
        return False


@admin.register(models.Payment)
class PaymentAdmin(UserLinkMixin, EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["id", "user_link", "event_link", "status", "amount", "currency", "external_reference"]
    list_filter = ["status", "currency"]
    search_fields = ["external_reference", "user__email"]
    readonly_fields = ["reservation", "ticket", "raw_response", "checkout_url"]
    list_select_related = ["user", "event"]


@admin.register(models.WaitlistEntry)
class WaitlistEntryAdmin(UserLinkMixin, EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["position", "user_link", "event_link", "state", "joined_at", "hold_expires_at"]
    list_filter = ["state"]
    search_fields = ["user__email", "event__name"]
    list_select_related = ["user", "event"]


@admin.register(models.PromoCode)
class PromoCodeAdmin(UserLinkMixin, EventLinkMixin, admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["code", "user_link", "event_link", "discount_type", "discount_value", "used_count", "max_uses"]
    list_filter = ["discount_type", "is_active"]
    search_fields = ["code", "owner__email"]
    readonly_fields = ["used_count"]
