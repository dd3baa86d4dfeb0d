"""Domain models for modal sessions."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

DEFAULT_TTL_MINUTES = 15


class SessionStatus(StrEnum):
    """Lifecycle status of a modal session."""

    OPEN = "open"
    SUBMITTED = "submitted"
    EXPIRED = "expired"


@dataclass(frozen=True)
class SessionCreateInput:
    """Fields required to persist a new modal session."""

    session_id: str
    feature: str
    flow: str
    owner_user_id: str
    state_json: str
    expires_at: datetime
    created_at: datetime
    guild_id: str | None = None
    channel_id: str | None = None


@dataclass(frozen=True)
class ModalSession:
    """Represents a persisted modal session."""

    session_id: str
    feature: str
    flow: str
    owner_user_id: str
    guild_id: str | None
    channel_id: str | None
    state_json: str
    status: SessionStatus
    expires_at: datetime
    created_at: datetime
    updated_at: datetime


def build_expiry(now: datetime, ttl_minutes: int = DEFAULT_TTL_MINUTES) -> datetime:
    """Return the session deadline, flooring the TTL at one minute."""
    return now + timedelta(minutes=max(1, ttl_minutes))


def is_expired(session: ModalSession, now: datetime) -> bool:
    """Return whether the session deadline has passed."""
    return session.expires_at <= now
