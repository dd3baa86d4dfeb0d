"""Session lifecycle service for managed modals."""

import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from modal_sessions.domain.errors import InvalidSessionIdError
from modal_sessions.domain.sessions import (
    DEFAULT_TTL_MINUTES,
    ModalSession,
    SessionCreateInput,
    SessionStatus,
    build_expiry,
)
from modal_sessions.services.custom_id import is_valid_session_id


class SessionRepository(Protocol):
    """Persistence interface for modal sessions."""

    def create_session(self, session: SessionCreateInput) -> ModalSession:
        """Insert an open session and return it."""

    def get_session(self, session_id: str) -> ModalSession | None:
        """Return a session by id, if present."""

    def set_status(self, session_id: str, status: SessionStatus) -> bool:
        """Overwrite a session status and report whether a row matched."""

    def claim_for_submit(
        self, session_id: str, owner_user_id: str, now: datetime
    ) -> bool:
        """Atomically move an open, owned, unexpired session to submitted."""

    def sweep_expired(self, cutoff: datetime) -> int:
        """Delete stale open or expired sessions and return the count."""


def generate_session_id() -> str:
    """Return a fresh random session id within the custom id charset."""
    return secrets.token_urlsafe(16)


@dataclass
class SessionService:
    """Creates, resolves and settles modal sessions."""

    session_repository: SessionRepository
    default_ttl_minutes: int = DEFAULT_TTL_MINUTES

    def start_session(  # noqa: PLR0913
        self,
        *,
        feature: str,
        flow: str,
        owner_user_id: str,
        state_json: str,
        now: datetime,
        guild_id: str | None = None,
        channel_id: str | None = None,
        session_id: str | None = None,
        ttl_minutes: int | None = None,
    ) -> ModalSession:
        """Persist a new open session for the owner."""
        resolved_id = session_id or generate_session_id()
        if not is_valid_session_id(resolved_id):
            raise InvalidSessionIdError(
                "Modal session id contains unsupported characters or length."
            )
        ttl = self.default_ttl_minutes if ttl_minutes is None else ttl_minutes
        return self.session_repository.create_session(
            SessionCreateInput(
                session_id=resolved_id,
                feature=feature,
                flow=flow,
                owner_user_id=owner_user_id,
                state_json=state_json,
                expires_at=build_expiry(now, ttl),
                created_at=now,
                guild_id=guild_id,
                channel_id=channel_id,
            )
        )

    def get_session(self, session_id: str) -> ModalSession | None:
        """Return a session by id, if present."""
        return self.session_repository.get_session(session_id)

    def expire_session(self, session_id: str) -> bool:
        """Mark a session as expired."""
        return self.session_repository.set_status(session_id, SessionStatus.EXPIRED)

    def claim_for_submit(
        self, session_id: str, owner_user_id: str, now: datetime
    ) -> bool:
        """Claim the session for its single accepted submission."""
        return self.session_repository.claim_for_submit(session_id, owner_user_id, now)

    def sweep_expired(self, cutoff: datetime) -> int:
        """Delete open or expired sessions whose deadline is before cutoff."""
        return self.session_repository.sweep_expired(cutoff)
