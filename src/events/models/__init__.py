from .event import Event
from .promo import PromoCode
from .reservation import Reservation
from .ticket import Payment, Ticket
from .waitlist import WaitlistEntry

__all__ = [
    "Event",
    "Payment",
    "PromoCode",
    "Reservation",
    "Ticket",
    "WaitlistEntry",
]
