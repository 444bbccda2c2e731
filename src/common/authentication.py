"""Bearer authentication for the API.

Tokens are issued by the external identity service; this service only validates them.
"""

import typing as t

import structlog
from django.conf import settings
from django.contrib.auth.models import AnonymousUser
from django.http import HttpRequest
from ninja_extra import status
from ninja_extra.exceptions import APIException
from ninja_jwt.authentication import JWTAuth

logger = structlog.get_logger(__name__)


class PermissionDenied(APIException):
    """Exception raised when user doesn't have required permissions."""

    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Permission denied"


class TurnstileJWTAuth(JWTAuth):
    """JWT authentication with optional staff checking.

    Usage:
        @route.post("/payments/confirm", auth=TurnstileJWTAuth(is_staff=True))
    """

    def __init__(self, *, is_staff: bool = False) -> None:
        """Initialize the authentication class.

        Args:
            is_staff: Whether the user must be a Django staff member.
        """
        self.is_staff = is_staff
        super().__init__()

    def authenticate(self, request: HttpRequest, token: str) -> t.Any:
        """Authenticate and verify user permissions.

        Raises:
            PermissionDenied: If the user is not staff where staff is required.
        """
        user = super().authenticate(request, token)
        if user and not isinstance(user, AnonymousUser):
            if self.is_staff and not getattr(user, "is_staff", False):
                raise PermissionDenied("Staff access required.")
            structlog.contextvars.bind_contextvars(user_id=str(user.pk))
        return user


class OptionalAuth(TurnstileJWTAuth):
    """Optional JWT authentication.

    - If JWT token present: authenticates the user
    - If no JWT token: sets request.user to AnonymousUser and continues
    """

    def __call__(self, request: HttpRequest) -> t.Any | None:
        """Overrides JWTAuth __call__ to provide optional auth."""
        headers = request.headers
        auth_value = headers.get(self.header)
        if not auth_value:
            request.user = AnonymousUser()
            return request.user
        parts = auth_value.split(" ")

        if parts[0].lower() != self.openapi_scheme:
            if settings.DEBUG:
                logger.error("unexpected_auth_scheme", scheme=parts[0])
            return None
        token = " ".join(parts[1:])
        return self.authenticate(request, token)
