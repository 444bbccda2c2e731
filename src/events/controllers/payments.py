from ninja_extra import api_controller, route

from common.authentication import TurnstileJWTAuth
from common.schema import ErrorResponse
from events import models, schema
from events.service import purchase_service


@api_controller("/payments", auth=TurnstileJWTAuth(is_staff=True), tags=["Payments"])
class PaymentController:
    @route.post(
        "/confirm",
        url_name="confirm_payment",
        response={200: schema.UserTicketSchema, 402: ErrorResponse, 404: ErrorResponse, 410: ErrorResponse},
    )
    def confirm_payment(self, payload: schema.ConfirmPurchaseSchema) -> models.Ticket:
        """Report a payment outcome for a checkout reference.

        For payment providers without a dedicated webhook. Reports are idempotent: repeating a
        SUCCESS returns the same ticket.
        """
        return purchase_service.confirm_purchase(
            payload.reference, payload.outcome, raw_response={"source": "payments_confirm_endpoint"}
        )
