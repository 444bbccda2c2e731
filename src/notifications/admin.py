from django.contrib import admin

from notifications.models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["notification_type", "user", "delivery_status", "created_at", "delivered_at"]
    list_filter = ["notification_type", "delivery_status"]
    search_fields = ["user__email", "user__username", "title"]
    readonly_fields = ["context", "title", "body", "error_message"]
