"""Expected, user-facing outcomes of the ticketing engine.

Every outcome carries a closed ``ErrorCode``. The API layer turns them into a typed error body with a
stable HTTP status; none of them is a defect.
"""

import typing as t
from datetime import datetime
from enum import StrEnum


class ErrorCode(StrEnum):
    SOLD_OUT = "sold_out"
    ALREADY_WAITING = "already_waiting"
    NOT_WAITING = "not_waiting"
    NOT_FOUND = "not_found"
    ALREADY_USED = "already_used"
    CANCELLED = "cancelled"
    PROMO_INVALID = "promo_invalid"
    PROMO_EXHAUSTED = "promo_exhausted"
    PAYMENT_FAILED = "payment_failed"
    RESERVATION_EXPIRED = "reservation_expired"
    ALREADY_HAS_TICKET = "already_has_ticket"
    NOT_SOLD_OUT = "not_sold_out"
    EVENT_NOT_ON_SALE = "event_not_on_sale"
    FORBIDDEN = "forbidden"
    INVALID_CAPACITY = "invalid_capacity"
    PROMO_CODE_CONFLICT = "promo_code_conflict"
    TRANSIENT_STORE_ERROR = "transient_store_error"


class TicketingError(Exception):
    """Base class for expected ticketing outcomes."""

    code: t.ClassVar[ErrorCode]
    status_code: t.ClassVar[int] = 400
    default_message: t.ClassVar[str] = "The request could not be completed."

    def __init__(self, message: str | None = None, **extra: t.Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)


class SoldOutError(TicketingError):
    code = ErrorCode.SOLD_OUT
    status_code = 409
    default_message = "This event is sold out. You can join the waitlist."

    def __init__(self, message: str | None = None, **extra: t.Any) -> None:
        extra.setdefault("waitlist_available", True)
        super().__init__(message, **extra)


class AlreadyWaitingError(TicketingError):
    code = ErrorCode.ALREADY_WAITING
    status_code = 409
    default_message = "You are already on the waitlist for this event."


class NotWaitingError(TicketingError):
    code = ErrorCode.NOT_WAITING
    status_code = 404
    default_message = "You are not on the waitlist for this event."


class NotFoundError(TicketingError):
    code = ErrorCode.NOT_FOUND
    status_code = 404
    default_message = "Not found."


class AlreadyUsedError(TicketingError):
    code = ErrorCode.ALREADY_USED
    status_code = 409
    default_message = "This ticket has already been checked in."

    def __init__(self, scanned_at: datetime | None, message: str | None = None) -> None:
        self.scanned_at = scanned_at
        super().__init__(message, scanned_at=scanned_at.isoformat() if scanned_at else None)


class TicketCancelledError(TicketingError):
    code = ErrorCode.CANCELLED
    status_code = 409
    default_message = "This ticket has been cancelled."


class PromoInvalidError(TicketingError):
    code = ErrorCode.PROMO_INVALID
    status_code = 400
    default_message = "This promo code is not valid for this event."


class PromoExhaustedError(TicketingError):
    code = ErrorCode.PROMO_EXHAUSTED
    status_code = 409
    default_message = "This promo code has reached its usage limit."


class PaymentFailedError(TicketingError):
    code = ErrorCode.PAYMENT_FAILED
    status_code = 402
    default_message = "The payment did not go through."


class ReservationExpiredError(TicketingError):
    code = ErrorCode.RESERVATION_EXPIRED
    status_code = 410
    default_message = "Your reservation expired before the payment was confirmed."


class AlreadyHasTicketError(TicketingError):
    code = ErrorCode.ALREADY_HAS_TICKET
    status_code = 409
    default_message = "You already have a ticket for this event."


class NotSoldOutError(TicketingError):
    code = ErrorCode.NOT_SOLD_OUT
    status_code = 409
    default_message = "This event still has tickets available."


class EventNotOnSaleError(TicketingError):
    code = ErrorCode.EVENT_NOT_ON_SALE
    status_code = 409
    default_message = "This event is not on sale."


class ForbiddenError(TicketingError):
    code = ErrorCode.FORBIDDEN
    status_code = 403
    default_message = "You do not have permission to do this."


class InvalidCapacityError(TicketingError):
    code = ErrorCode.INVALID_CAPACITY
    status_code = 400
    default_message = "Capacity cannot be lower than the tickets already reserved."


class PromoCodeConflictError(TicketingError):
    code = ErrorCode.PROMO_CODE_CONFLICT
    status_code = 409
    default_message = "A promo code with this code already exists."


class TransientStoreError(TicketingError):
    code = ErrorCode.TRANSIENT_STORE_ERROR
    status_code = 503
    default_message = "The service is busy. Please try again."
