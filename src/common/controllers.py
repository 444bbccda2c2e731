import typing as t

from django.contrib.auth.models import AnonymousUser
from ninja_extra import ControllerBase

from accounts.models import TurnstileUser


class UserAwareController(ControllerBase):
    def maybe_user(self) -> TurnstileUser | AnonymousUser:
        """Get the user for this request."""
        return t.cast(TurnstileUser | AnonymousUser, self.context.request.user)  # type: ignore[union-attr]

    def user(self) -> TurnstileUser:
        """Get the user for this request."""
        return t.cast(TurnstileUser, self.context.request.user)  # type: ignore[union-attr]
