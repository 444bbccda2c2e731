import typing as t
from uuid import UUID

from django.shortcuts import get_object_or_404
from ninja_extra import api_controller, route
from ninja_extra.pagination import PageNumberPaginationExtra, PaginatedResponseSchema, paginate

from common.authentication import TurnstileJWTAuth
from common.controllers import UserAwareController
from common.schema import ErrorResponse, ValidationErrorResponse
from common.throttling import WriteThrottle
from events import models, schema
from events.service import promo_service


@api_controller("/promo-codes", auth=TurnstileJWTAuth(), tags=["Promo Codes"], throttle=WriteThrottle())
class PromoCodeController(UserAwareController):
    def get_queryset(self) -> t.Any:
        """Promo codes owned by the user."""
        return models.PromoCode.objects.filter(owner=self.user())

    def get_one(self, promo_code_id: UUID) -> models.PromoCode:
        """Wrapper helper."""
        return t.cast(models.PromoCode, self.get_object_or_exception(self.get_queryset(), pk=promo_code_id))

    @route.get("/", url_name="list_promo_codes", response=PaginatedResponseSchema[schema.PromoCodeSchema])
    @paginate(PageNumberPaginationExtra, page_size=20)
    def list_promo_codes(self, event_id: UUID | None = None) -> t.Any:
        """List your promo codes, optionally only the ones bound to an event."""
        qs = self.get_queryset()
        if event_id:
            qs = qs.filter(event_id=event_id)
        return qs

    @route.post(
        "/",
        url_name="create_promo_code",
        response={200: schema.PromoCodeSchema, 400: ValidationErrorResponse, 403: ErrorResponse, 409: ErrorResponse},
    )
    def create_promo_code(self, payload: schema.PromoCodeCreateSchema) -> models.PromoCode:
        """Create a promo code.

        Leave `event_id` empty to make the code valid for all of your events. Codes are
        case-insensitive and stored upper-cased.
        """
        data = payload.model_dump(exclude={"event_id"})
        event = get_object_or_404(models.Event, pk=payload.event_id) if payload.event_id else None
        return promo_service.create_promo_code(self.user(), event=event, **data)

    @route.get("/{uuid:promo_code_id}", url_name="get_promo_code", response=schema.PromoCodeSchema)
    def get_promo_code(self, promo_code_id: UUID) -> models.PromoCode:
        """Get one of your promo codes with its usage."""
        return self.get_one(promo_code_id)

    @route.patch(
        "/{uuid:promo_code_id}",
        url_name="update_promo_code",
        response={200: schema.PromoCodeSchema, 400: ValidationErrorResponse},
    )
    def update_promo_code(self, promo_code_id: UUID, payload: schema.PromoCodeUpdateSchema) -> models.PromoCode:
        """Activate or deactivate a code, or change its usage limit or expiry."""
        promo = self.get_one(promo_code_id)
        return promo_service.update_promo_code(promo, **payload.model_dump(exclude_unset=True))

    @route.delete("/{uuid:promo_code_id}", url_name="delete_promo_code", response={204: None})
    def delete_promo_code(self, promo_code_id: UUID) -> tuple[int, None]:
        """Delete a promo code. Tickets already bought with it keep their price."""
        promo = self.get_one(promo_code_id)
        promo_service.delete_promo_code(promo)
        return 204, None
