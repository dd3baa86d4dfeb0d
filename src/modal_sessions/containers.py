"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import create_client

from modal_sessions.adapters.discord_interaction_client import (
    HttpxDiscordInteractionClient,
    InteractionClient,
)
from modal_sessions.adapters.supabase_session_repository import (
    SupabaseSessionRepository,
)
from modal_sessions.config import Settings
from modal_sessions.services.feature_gate import FeatureGate, FeatureGateConfig
from modal_sessions.services.router import SessionRouter
from modal_sessions.services.sessions import SessionService


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    interaction_client: InteractionClient
    session_service: SessionService
    feature_gate: FeatureGate
    session_router: SessionRouter
    close_resources: Callable[[], Awaitable[None]]


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_repository = SupabaseSessionRepository(supabase_client)
    session_service = SessionService(
        session_repository,
        default_ttl_minutes=resolved_settings.modal_session_ttl_minutes,
    )
    interaction_client = HttpxDiscordInteractionClient.create(
        resolved_settings.discord_application_id,
        api_base_url=resolved_settings.discord_api_base_url,
    )
    gate_config = FeatureGateConfig.from_settings(resolved_settings)
    feature_gate = FeatureGate.static(gate_config)
    session_router = SessionRouter(
        session_service=session_service,
        interaction_client=interaction_client,
        feature_gate=feature_gate,
    )

    async def close_resources() -> None:
        await interaction_client.close()

    return AppContainer(
        settings=resolved_settings,
        interaction_client=interaction_client,
        session_service=session_service,
        feature_gate=feature_gate,
        session_router=session_router,
        close_resources=close_resources,
    )
