import re
import uuid

from django.contrib.auth.models import AbstractUser, UserManager
from django.db import models


class TurnstileUserQueryset(models.QuerySet["TurnstileUser"]):
    """Queryset for TurnstileUser."""


class TurnstileUserManager(UserManager["TurnstileUser"]):
    def get_queryset(self) -> TurnstileUserQueryset:
        """Get queryset for TurnstileUser."""
        return TurnstileUserQueryset(self.model)


class TurnstileUser(AbstractUser):
    """Account record for creators and attendees.

    Sign-up, login and sessions live outside this service; tokens issued for these
    users are only validated here.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    preferred_name = models.CharField(db_index=True, max_length=255, blank=True, help_text="Preferred name")

    objects = TurnstileUserManager()  # type: ignore[misc]

    class Meta:
        ordering = ["username"]

    @property
    def display_name(self) -> str:
        """Display name."""
        return self.get_display_name()

    def get_display_name(self) -> str:
        """Returns the user's preferred name, or their full name as a fallback."""
        return (
            self.preferred_name or self.get_full_name() or re.sub(r"(\W|_)+", " ", self.username.split("@")[0]).title()
        )
