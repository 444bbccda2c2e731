"""Tunables for ticket issuance, waitlist promotion and check-in."""

from decouple import config

# How long a HELD reservation survives without Confirm/Release before the sweep releases it.
# Stripe checkout sessions must live at least 30 minutes.
RESERVATION_TIMEOUT_MINUTES = config("RESERVATION_TIMEOUT_MINUTES", cast=int, default=30)

# Grace window a promoted waitlist entry keeps priority.
WAITLIST_HOLD_HOURS = config("WAITLIST_HOLD_HOURS", cast=int, default=12)

LEDGER_RETRY_ATTEMPTS = config("LEDGER_RETRY_ATTEMPTS", cast=int, default=3)
LEDGER_RETRY_BACKOFF_SECONDS = config("LEDGER_RETRY_BACKOFF_SECONDS", cast=float, default=0.05)

SWEEP_INTERVAL_SECONDS = config("SWEEP_INTERVAL_SECONDS", cast=int, default=60)

PAYMENT_PROVIDER = config("PAYMENT_PROVIDER", default="events.service.payment_provider.StripePaymentProvider")

QR_TOKEN_BYTES = config("QR_TOKEN_BYTES", cast=int, default=32)
