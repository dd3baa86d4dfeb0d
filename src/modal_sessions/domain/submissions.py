"""Domain models for modal submissions and replies."""

from dataclasses import dataclass, field
from enum import IntEnum

EPHEMERAL_FLAG = 1 << 6

SubmittedValue = str | list[str] | bool | None


class ContainerKind(IntEnum):
    """Discord component types that wrap submitted fields."""

    ACTION_ROW = 1
    LABEL = 18


class FieldKind(IntEnum):
    """Discord component types accepted inside a modal submission."""

    STRING_SELECT = 3
    TEXT_INPUT = 4
    USER_SELECT = 5
    ROLE_SELECT = 6
    MENTIONABLE_SELECT = 7
    CHANNEL_SELECT = 8
    FILE_UPLOAD = 19
    RADIO_GROUP = 21
    CHECKBOX_GROUP = 22
    CHECKBOX = 23


SELECT_KINDS = frozenset(
    {
        FieldKind.STRING_SELECT,
        FieldKind.USER_SELECT,
        FieldKind.ROLE_SELECT,
        FieldKind.MENTIONABLE_SELECT,
        FieldKind.CHANNEL_SELECT,
    }
)


@dataclass(frozen=True)
class SubmittedField:
    """A single leaf field flattened out of a modal submission."""

    kind: FieldKind
    custom_id: str
    value: SubmittedValue


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of structural submission validation."""

    ok: bool
    reason: str | None = None

    @classmethod
    def success(cls) -> "ValidationResult":
        return cls(ok=True)

    @classmethod
    def failure(cls, reason: str) -> "ValidationResult":
        return cls(ok=False, reason=reason)


@dataclass(frozen=True)
class SubmissionContext:
    """Normalized view of an inbound modal submission."""

    interaction_id: str
    interaction_token: str
    custom_id: str
    user_id: str
    guild_id: str | None = None
    channel_id: str | None = None
    values: dict[str, SubmittedValue] = field(default_factory=dict)
    attachments: dict[str, dict[str, object]] = field(default_factory=dict)


@dataclass(frozen=True)
class AcceptedSubmission:
    """Handoff passed to business flows once a session is claimed."""

    feature: str
    flow: str
    session_id: str
    state_json: str
    submission: SubmissionContext


@dataclass(frozen=True)
class ReplyMessage:
    """Message body sent back to the interacting user."""

    content: str | None = None
    ephemeral: bool = True
    components: list[dict[str, object]] | None = None
    embeds: list[dict[str, object]] | None = None

    def to_payload(self) -> dict[str, object]:
        """Return the Discord message JSON body."""
        payload: dict[str, object] = {}
        if self.content is not None:
            payload["content"] = self.content
        if self.ephemeral:
            payload["flags"] = EPHEMERAL_FLAG
        if self.components is not None:
            payload["components"] = self.components
        if self.embeds is not None:
            payload["embeds"] = self.embeds
        return payload


@dataclass(frozen=True)
class ModalOpenRequest:
    """Request to present a modal for an interaction."""

    interaction_id: str
    interaction_token: str
    feature: str
    flow: str
    session_id: str
    title: str
    components: list[dict[str, object]]
    custom_id: str | None = None


@dataclass(frozen=True)
class SessionOpenRequest:
    """Request to start a session-backed modal for a user."""

    interaction_id: str
    interaction_token: str
    feature: str
    flow: str
    owner_user_id: str
    title: str
    components: list[dict[str, object]]
    state_json: str = "{}"
    guild_id: str | None = None
    channel_id: str | None = None
    session_id: str | None = None
    ttl_minutes: int | None = None
