"""Tests for the Supabase session repository."""

from dataclasses import dataclass, field
from datetime import timedelta

import pytest
from postgrest.exceptions import APIError

from modal_sessions.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from modal_sessions.domain.errors import DuplicateSessionError, SessionStoreError
from modal_sessions.domain.sessions import SessionCreateInput, SessionStatus
from tests.conftest import NOW


@dataclass
class FakeResponse:
    data: list[dict[str, object]] | None


@dataclass
class FakeTable:
    name: str
    response_queue: dict[str, list[list[dict[str, object]]]] = field(
        default_factory=lambda: {"select": [], "insert": [], "update": [], "delete": []}
    )
    last_payload: object | None = None
    last_filters: list[tuple[str, str, object]] = field(default_factory=list)
    error: Exception | None = None

    def queue(self, action: str, data: list[dict[str, object]]) -> None:
        self.response_queue[action].append(data)

    def select(self, *_args) -> "FakeTable":
        self._start("select")
        return self

    def insert(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._start("insert")
        self.last_payload = payload
        return self

    def update(self, payload) -> "FakeTable":  # type: ignore[no-untyped-def]
        self._start("update")
        self.last_payload = payload
        return self

    def delete(self) -> "FakeTable":
        self._start("delete")
        return self

    def eq(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("eq", column, value))
        return self

    def gt(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("gt", column, value))
        return self

    def lt(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("lt", column, value))
        return self

    def in_(self, column: str, value) -> "FakeTable":  # type: ignore[no-untyped-def]
        self.last_filters.append(("in", column, value))
        return self

    def limit(self, _count: int) -> "FakeTable":
        return self

    def execute(self) -> FakeResponse:
        if self.error is not None:
            raise self.error
        queue = self.response_queue.get(self._action, [])
        data = queue.pop(0) if queue else []
        return FakeResponse(data=data)

    def _start(self, action: str) -> None:
        self._action = action
        self.last_filters = []


@dataclass
class FakeSupabaseClient:
    tables: dict[str, FakeTable] = field(default_factory=dict)

    def table(self, name: str) -> FakeTable:
        if name not in self.tables:
            self.tables[name] = FakeTable(name=name)
        return self.tables[name]


def _row(**overrides: object) -> dict[str, object]:
    row: dict[str, object] = {
        "session_id": "abc123",
        "feature_id": "todo",
        "flow_id": "create",
        "owner_user_id": "111",
        "guild_id": "900",
        "channel_id": None,
        "state_json": '{"draft": true}',
        "status": "OPEN",
        "expires_at": "2026-01-15T12:15:00+00:00",
        "created_at": "2026-01-15T12:00:00+00:00",
        "updated_at": "2026-01-15T12:00:00",
    }
    row.update(overrides)
    return row


def _create_input(**overrides: object) -> SessionCreateInput:
    values: dict[str, object] = {
        "session_id": "abc123",
        "feature": "todo",
        "flow": "create",
        "owner_user_id": "111",
        "state_json": "{}",
        "expires_at": NOW + timedelta(minutes=15),
        "created_at": NOW,
        "guild_id": "900",
    }
    values.update(overrides)
    return SessionCreateInput(**values)  # type: ignore[arg-type]


def test_create_session_inserts_open_row() -> None:
    client = FakeSupabaseClient()
    table = client.table("modal_sessions")
    table.queue("insert", [_row()])

    session = SupabaseSessionRepository(client).create_session(_create_input())

    assert isinstance(table.last_payload, dict)
    assert table.last_payload["status"] == "OPEN"
    assert table.last_payload["feature_id"] == "todo"
    assert table.last_payload["created_at"] == NOW.isoformat()
    assert table.last_payload["updated_at"] == NOW.isoformat()
    assert table.last_payload["expires_at"] == (NOW + timedelta(minutes=15)).isoformat()
    assert session.status is SessionStatus.OPEN
    assert session.channel_id is None
    assert session.updated_at.tzinfo is not None


def test_create_session_rejects_past_deadline() -> None:
    client = FakeSupabaseClient()

    with pytest.raises(ValueError):
        SupabaseSessionRepository(client).create_session(
            _create_input(expires_at=NOW)
        )


def test_create_session_maps_unique_violation() -> None:
    client = FakeSupabaseClient()
    client.table("modal_sessions").error = APIError(
        {"message": "duplicate key value", "code": "23505"}
    )

    with pytest.raises(DuplicateSessionError):
        SupabaseSessionRepository(client).create_session(_create_input())


def test_create_session_propagates_other_errors() -> None:
    client = FakeSupabaseClient()
    client.table("modal_sessions").error = APIError(
        {"message": "permission denied", "code": "42501"}
    )

    with pytest.raises(APIError):
        SupabaseSessionRepository(client).create_session(_create_input())


def test_create_session_without_returned_row_fails() -> None:
    client = FakeSupabaseClient()

    with pytest.raises(SessionStoreError):
        SupabaseSessionRepository(client).create_session(_create_input())


def test_get_session_maps_row() -> None:
    client = FakeSupabaseClient()
    client.table("modal_sessions").queue("select", [_row(status="SUBMITTED")])
    repository = SupabaseSessionRepository(client)

    session = repository.get_session("abc123")

    assert session is not None
    assert session.status is SessionStatus.SUBMITTED
    assert session.expires_at == NOW + timedelta(minutes=15)
    assert repository.get_session("missing") is None


def test_unknown_status_is_a_store_error() -> None:
    client = FakeSupabaseClient()
    client.table("modal_sessions").queue("select", [_row(status="ARCHIVED")])

    with pytest.raises(SessionStoreError):
        SupabaseSessionRepository(client).get_session("abc123")


def test_claim_is_a_single_conditional_update() -> None:
    client = FakeSupabaseClient()
    table = client.table("modal_sessions")
    table.queue("update", [_row(status="SUBMITTED")])
    repository = SupabaseSessionRepository(client)

    claimed = repository.claim_for_submit("abc123", "111", NOW)

    assert claimed
    assert table.last_payload == {
        "status": "SUBMITTED",
        "updated_at": NOW.isoformat(),
    }
    assert table.last_filters == [
        ("eq", "session_id", "abc123"),
        ("eq", "owner_user_id", "111"),
        ("eq", "status", "OPEN"),
        ("gt", "expires_at", NOW.isoformat()),
    ]
    assert not repository.claim_for_submit("abc123", "111", NOW)


def test_set_status_reports_matches() -> None:
    client = FakeSupabaseClient()
    table = client.table("modal_sessions")
    table.queue("update", [_row(status="EXPIRED")])
    repository = SupabaseSessionRepository(client)

    assert repository.set_status("abc123", SessionStatus.EXPIRED)
    assert isinstance(table.last_payload, dict)
    assert table.last_payload["status"] == "EXPIRED"
    assert not repository.set_status("missing", SessionStatus.EXPIRED)


def test_sweep_deletes_only_unsubmitted_rows() -> None:
    client = FakeSupabaseClient()
    table = client.table("modal_sessions")
    table.queue("delete", [_row(), _row(session_id="other", status="EXPIRED")])

    deleted = SupabaseSessionRepository(client).sweep_expired(NOW)

    assert deleted == 2
    assert table.last_filters == [
        ("lt", "expires_at", NOW.isoformat()),
        ("in", "status", ["OPEN", "EXPIRED"]),
    ]
