import structlog
from celery import shared_task

from events.service import capacity_guard, waitlist_service

logger = structlog.get_logger(__name__)


@shared_task(name="events.release_expired_reservations")
def release_expired_reservations() -> int:
    """Release HELD reservations whose checkout window closed.

    Abandoned checkouts would otherwise keep their capacity unit forever.
    This task is idempotent and safe to run periodically.
    """
    return capacity_guard.release_expired_reservations()


@shared_task(name="events.expire_waitlist_holds")
def expire_waitlist_holds() -> int:
    """Expire NOTIFIED waitlist entries past their hold window and cascade to the next in line."""
    return waitlist_service.expire_waitlist_holds()


@shared_task(name="events.promote_waitlist")
def promote_waitlist(event_id: str) -> str | None:
    """Notify the next WAITING entry of an event that a spot opened up."""
    entry = waitlist_service.promote(event_id)
    return str(entry.id) if entry else None


@shared_task(name="events.audit_capacity")
def audit_capacity() -> int:
    """Log every event whose counters disagree with its tickets and reservations."""
    violations = capacity_guard.audit_capacity()
    if not violations:
        logger.info("capacity_audit_clean")
    return violations
