"""Models for the notification system."""

from django.conf import settings
from django.db import models
from django.utils import timezone

from common.models import TimeStampedModel
from notifications.enums import DeliveryStatus, NotificationType


class Notification(TimeStampedModel):
    """Channel-agnostic notification record.

    Everything needed for rendering lives in ``context``; only the recipient is a foreign key.
    """

    notification_type = models.CharField(
        max_length=50,
        db_index=True,
        choices=NotificationType.choices,
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications", db_index=True
    )
    title = models.CharField(max_length=255, blank=True, default="", help_text="Rendered notification title")
    body = models.TextField(blank=True, default="", help_text="Rendered notification body")
    context = models.JSONField(default=dict, blank=True)
    delivery_status = models.CharField(
        max_length=20, choices=DeliveryStatus.choices, default=DeliveryStatus.PENDING, db_index=True
    )
    delivered_at = models.DateTimeField(null=True, blank=True)
    error_message = models.TextField(blank=True, default="")
    read_at = models.DateTimeField(null=True, blank=True, db_index=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["user", "notification_type", "created_at"], name="notif_user_type_created_idx"),
            models.Index(fields=["user", "read_at"], name="notif_user_read_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.notification_type} for user {self.user_id} at {self.created_at}"

    def mark_read(self) -> None:
        """Mark notification as read."""
        if not self.read_at:
            self.read_at = timezone.now()
            self.save(update_fields=["read_at"])

    @property
    def is_read(self) -> bool:
        return self.read_at is not None
