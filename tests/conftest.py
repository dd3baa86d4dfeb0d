"""Shared test fixtures."""

import threading
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta

import pytest

from modal_sessions.adapters.discord_interaction_client import (
    InteractionClient,
    parse_submission_payload,
)
from modal_sessions.config import Settings
from modal_sessions.containers import AppContainer
from modal_sessions.domain.errors import DuplicateSessionError
from modal_sessions.domain.sessions import (
    ModalSession,
    SessionCreateInput,
    SessionStatus,
)
from modal_sessions.domain.submissions import (
    ModalOpenRequest,
    ReplyMessage,
    SubmissionContext,
)
from modal_sessions.services.feature_gate import FeatureGate, FeatureGateConfig
from modal_sessions.services.router import SessionRouter
from modal_sessions.services.sessions import SessionRepository, SessionService

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """In-memory session repository for tests."""

    sessions: dict[str, ModalSession] = field(default_factory=dict)
    mutations: list[tuple[str, str]] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def create_session(self, session: SessionCreateInput) -> ModalSession:
        with self._lock:
            if session.session_id in self.sessions:
                raise DuplicateSessionError(session.session_id)
            if session.expires_at <= session.created_at:
                raise ValueError("Modal session must expire after it is created.")
            record = ModalSession(
                session_id=session.session_id,
                feature=session.feature,
                flow=session.flow,
                owner_user_id=session.owner_user_id,
                guild_id=session.guild_id,
                channel_id=session.channel_id,
                state_json=session.state_json,
                status=SessionStatus.OPEN,
                expires_at=session.expires_at,
                created_at=session.created_at,
                updated_at=session.created_at,
            )
            self.sessions[session.session_id] = record
            self.mutations.append(("create", session.session_id))
            return record

    def get_session(self, session_id: str) -> ModalSession | None:
        return self.sessions.get(session_id)

    def set_status(self, session_id: str, status: SessionStatus) -> bool:
        with self._lock:
            session = self.sessions.get(session_id)
            if session is None:
                return False
            self.sessions[session_id] = replace(
                session, status=status, updated_at=datetime.now(tz=UTC)
            )
            self.mutations.append((f"set_status:{status.value}", session_id))
            return True

    def claim_for_submit(
        self, session_id: str, owner_user_id: str, now: datetime
    ) -> bool:
        with self._lock:
            session = self.sessions.get(session_id)
            if (
                session is None
                or session.owner_user_id != owner_user_id
                or session.status is not SessionStatus.OPEN
                or session.expires_at <= now
            ):
                return False
            self.sessions[session_id] = replace(
                session, status=SessionStatus.SUBMITTED, updated_at=now
            )
            self.mutations.append(("claim", session_id))
            return True

    def sweep_expired(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [
                session_id
                for session_id, session in self.sessions.items()
                if session.expires_at < cutoff
                and session.status in {SessionStatus.OPEN, SessionStatus.EXPIRED}
            ]
            for session_id in stale:
                del self.sessions[session_id]
            return len(stale)

    def add(self, **overrides: object) -> ModalSession:
        """Insert a session directly, bypassing creation rules."""
        values: dict[str, object] = {
            "session_id": "abc123",
            "feature": "todo",
            "flow": "create",
            "owner_user_id": "111",
            "guild_id": "900",
            "channel_id": "800",
            "state_json": '{"draft": true}',
            "status": SessionStatus.OPEN,
            "expires_at": NOW + timedelta(minutes=15),
            "created_at": NOW,
            "updated_at": NOW,
        }
        values.update(overrides)
        session = ModalSession(**values)  # type: ignore[arg-type]
        self.sessions[session.session_id] = session
        return session


@dataclass
class FakeInteractionClient(InteractionClient):
    """Fake interaction client that records outbound calls."""

    opened: list[ModalOpenRequest] = field(default_factory=list)
    acknowledged: list[tuple[str, str]] = field(default_factory=list)
    replies: list[tuple[str, str, ReplyMessage]] = field(default_factory=list)
    follow_ups: list[tuple[str, ReplyMessage]] = field(default_factory=list)
    open_error: Exception | None = None

    async def open_modal(self, request: ModalOpenRequest) -> None:
        if self.open_error is not None:
            raise self.open_error
        self.opened.append(request)

    async def acknowledge(
        self, interaction_id: str, interaction_token: str, ephemeral: bool = True
    ) -> None:
        self.acknowledged.append((interaction_id, interaction_token))

    async def reply(
        self, interaction_id: str, interaction_token: str, message: ReplyMessage
    ) -> None:
        self.replies.append((interaction_id, interaction_token, message))

    async def follow_up(
        self, interaction_token: str, message: ReplyMessage
    ) -> dict[str, object] | None:
        self.follow_ups.append((interaction_token, message))
        return None

    def parse_submission(self, payload: object) -> SubmissionContext | None:
        return parse_submission_payload(payload)

    def sent_contents(self) -> list[str | None]:
        """Return every message content sent back to users, in order."""
        return [message.content for *_, message in self.replies] + [
            message.content for _, message in self.follow_ups
        ]


def modal_submit_payload(  # noqa: PLR0913
    custom_id: str = "modal:todo:v1:create:abc123",
    user_id: str = "111",
    guild_id: str | None = "900",
    components: list[dict[str, object]] | None = None,
    resolved: dict[str, object] | None = None,
    interaction_id: str = "int-1",
) -> dict[str, object]:
    """Build a raw modal submit interaction as Discord sends it."""
    data: dict[str, object] = {
        "custom_id": custom_id,
        "components": components
        if components is not None
        else [
            {
                "type": 1,
                "components": [{"type": 4, "custom_id": "title", "value": "ok"}],
            }
        ],
    }
    if resolved is not None:
        data["resolved"] = resolved
    payload: dict[str, object] = {
        "id": interaction_id,
        "application_id": "app-1",
        "type": 5,
        "token": f"token-{interaction_id}",
        "channel_id": "800",
        "member": {"user": {"id": user_id, "username": "tester"}},
        "data": data,
    }
    if guild_id is not None:
        payload["guild_id"] = guild_id
    return payload


def open_gate() -> FeatureGate:
    return FeatureGate.static(
        FeatureGateConfig(
            enabled=True,
            pilot_features=frozenset({"todo", "suggestion"}),
            pilot_guild_ids=frozenset({"900"}),
        )
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        discord_application_id="app-1",
        supabase_url="https://example.supabase.co",
        supabase_service_key="service-key",
        admin_token="admin-token",
        use_raw_improved_modals=True,
        raw_modal_pilot_guild_ids="900",
    )


@pytest.fixture
def session_repository() -> InMemorySessionRepository:
    return InMemorySessionRepository()


@pytest.fixture
def interaction_client() -> FakeInteractionClient:
    return FakeInteractionClient()


@pytest.fixture
def router(
    session_repository: InMemorySessionRepository,
    interaction_client: FakeInteractionClient,
) -> SessionRouter:
    return SessionRouter(
        session_service=SessionService(session_repository),
        interaction_client=interaction_client,
        feature_gate=open_gate(),
        clock=lambda: NOW,
    )


@pytest.fixture
def container(
    settings: Settings,
    session_repository: InMemorySessionRepository,
    interaction_client: FakeInteractionClient,
    router: SessionRouter,
) -> AppContainer:
    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=settings,
        interaction_client=interaction_client,
        session_service=router.session_service,
        feature_gate=router.feature_gate,
        session_router=router,
        close_resources=close_resources,
    )
