"""Waitlist schemas."""

from datetime import datetime
from uuid import UUID

from ninja import Schema

from accounts.schema import MinimalTurnstileUserSchema


class WaitlistStatusSchema(Schema):
    on_waitlist: bool
    position: int | None = None
    total_ahead: int | None = None
    state: str | None = None
    hold_expires_at: datetime | None = None


class WaitlistJoinResponseSchema(Schema):
    id: UUID
    position: int
    total_ahead: int


class AdminWaitlistEntrySchema(Schema):
    id: UUID
    user: MinimalTurnstileUserSchema
    state: str
    rank: int
    joined_at: datetime
    notified_at: datetime | None = None
    hold_expires_at: datetime | None = None
