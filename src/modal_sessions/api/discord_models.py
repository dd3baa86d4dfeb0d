"""Pydantic models for Discord interaction webhook payloads."""

from pydantic import BaseModel, ConfigDict


class DiscordUser(BaseModel):
    """Discord user payload."""

    model_config = ConfigDict(extra="allow")

    id: str
    username: str | None = None


class DiscordMember(BaseModel):
    """Guild member payload wrapping the user."""

    model_config = ConfigDict(extra="allow")

    user: DiscordUser | None = None


class DiscordInteraction(BaseModel):
    """Envelope of an inbound interaction.

    Only the routing fields are typed; component data stays raw and is
    validated by the modal protocol itself.
    """

    model_config = ConfigDict(extra="allow")

    id: str
    type: int
    application_id: str | None = None
    token: str | None = None
    guild_id: str | None = None
    channel_id: str | None = None
    member: DiscordMember | None = None
    user: DiscordUser | None = None
    data: dict[str, object] | None = None


class SweepResult(BaseModel):
    """Response body for the session sweep endpoint."""

    deleted: int
    cutoff: str
