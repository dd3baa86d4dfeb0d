"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

from modal_sessions.domain.sessions import DEFAULT_TTL_MINUTES

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")

ALL_GUILDS_TOKEN = "*"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    discord_application_id: str
    discord_api_base_url: str = "https://discord.com/api/v10"
    supabase_url: str
    supabase_service_key: str
    admin_token: str
    use_raw_improved_modals: bool = False
    raw_modal_pilot_guild_ids: str | None = None
    modal_session_ttl_minutes: int = DEFAULT_TTL_MINUTES
    environment: str = _ENVIRONMENT

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )


def parse_guild_ids(raw: str | None) -> frozenset[str]:
    """Parse the comma-separated pilot guild list from env."""
    if raw is None:
        return frozenset()
    return frozenset(chunk.strip() for chunk in raw.split(",") if chunk.strip())
