"""Signals for the notification system."""

from django.dispatch import Signal

# Signal for requesting notification dispatch
# Expected kwargs:
#   - notification_type: NotificationType enum value
#   - user: TurnstileUser instance
#   - context: dict with the values the notification template renders
notification_requested = Signal()
