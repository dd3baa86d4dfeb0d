"""Supabase-backed modal session repository."""

from dataclasses import dataclass
from datetime import UTC, datetime

from postgrest.exceptions import APIError
from supabase import Client

from modal_sessions.domain.errors import DuplicateSessionError, SessionStoreError
from modal_sessions.domain.sessions import (
    ModalSession,
    SessionCreateInput,
    SessionStatus,
)
from modal_sessions.services.sessions import SessionRepository

_TABLE = "modal_sessions"
_COLUMNS = (
    "session_id, feature_id, flow_id, owner_user_id, guild_id, channel_id, "
    "state_json, status, expires_at, created_at, updated_at"
)
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for modal sessions.

    Each operation is a single PostgREST statement, so conditional updates
    are evaluated atomically by Postgres.
    """

    client: Client

    def create_session(self, session: SessionCreateInput) -> ModalSession:
        """Insert an open session row and return it."""
        now = session.created_at
        if session.expires_at <= now:
            raise ValueError("Modal session must expire after it is created.")
        try:
            response = (
                self.client.table(_TABLE)
                .insert(
                    {
                        "session_id": session.session_id,
                        "feature_id": session.feature,
                        "flow_id": session.flow,
                        "owner_user_id": session.owner_user_id,
                        "guild_id": session.guild_id,
                        "channel_id": session.channel_id,
                        "state_json": session.state_json,
                        "status": _to_db_status(SessionStatus.OPEN),
                        "expires_at": session.expires_at.isoformat(),
                        "created_at": now.isoformat(),
                        "updated_at": now.isoformat(),
                    }
                )
                .execute()
            )
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise DuplicateSessionError(session.session_id) from exc
            raise
        if not response.data:
            raise SessionStoreError("Failed to create modal session")
        return _map_row(response.data[0])

    def get_session(self, session_id: str) -> ModalSession | None:
        """Return a session by id, if present."""
        response = (
            self.client.table(_TABLE)
            .select(_COLUMNS)
            .eq("session_id", session_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _map_row(response.data[0])

    def set_status(self, session_id: str, status: SessionStatus) -> bool:
        """Overwrite the session status unconditionally."""
        response = (
            self.client.table(_TABLE)
            .update(
                {
                    "status": _to_db_status(status),
                    "updated_at": datetime.now(tz=UTC).isoformat(),
                }
            )
            .eq("session_id", session_id)
            .execute()
        )
        return bool(response.data)

    def claim_for_submit(
        self, session_id: str, owner_user_id: str, now: datetime
    ) -> bool:
        """Flip an open, owned, unexpired session to submitted in one update."""
        response = (
            self.client.table(_TABLE)
            .update(
                {
                    "status": _to_db_status(SessionStatus.SUBMITTED),
                    "updated_at": now.isoformat(),
                }
            )
            .eq("session_id", session_id)
            .eq("owner_user_id", owner_user_id)
            .eq("status", _to_db_status(SessionStatus.OPEN))
            .gt("expires_at", now.isoformat())
            .execute()
        )
        return bool(response.data)

    def sweep_expired(self, cutoff: datetime) -> int:
        """Delete open or expired sessions whose deadline is before cutoff."""
        response = (
            self.client.table(_TABLE)
            .delete()
            .lt("expires_at", cutoff.isoformat())
            .in_(
                "status",
                [
                    _to_db_status(SessionStatus.OPEN),
                    _to_db_status(SessionStatus.EXPIRED),
                ],
            )
            .execute()
        )
        return len(response.data or [])


def _to_db_status(status: SessionStatus) -> str:
    return status.value.upper()


def _from_db_status(raw: str) -> SessionStatus:
    try:
        return SessionStatus(raw.strip().lower())
    except ValueError:
        raise SessionStoreError(f"Unknown modal session status: {raw}") from None


def _to_datetime(value: str | datetime) -> datetime:
    parsed = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed


def _map_row(row: dict[str, object]) -> ModalSession:
    return ModalSession(
        session_id=str(row["session_id"]),
        feature=str(row["feature_id"]),
        flow=str(row["flow_id"]),
        owner_user_id=str(row["owner_user_id"]),
        guild_id=str(row["guild_id"]) if row.get("guild_id") else None,
        channel_id=str(row["channel_id"]) if row.get("channel_id") else None,
        state_json=str(row.get("state_json") or ""),
        status=_from_db_status(str(row["status"])),
        expires_at=_to_datetime(row["expires_at"]),
        created_at=_to_datetime(row["created_at"]),
        updated_at=_to_datetime(row["updated_at"]),
    )
