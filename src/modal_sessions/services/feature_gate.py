"""Pilot gate deciding whether managed modals handle an interaction."""

from collections.abc import Callable
from dataclasses import dataclass

from modal_sessions.config import ALL_GUILDS_TOKEN, Settings, parse_guild_ids
from modal_sessions.domain.scope import PILOT_FEATURES


@dataclass(frozen=True)
class FeatureGateConfig:
    """Snapshot of the pilot rollout switches."""

    enabled: bool
    pilot_features: frozenset[str]
    pilot_guild_ids: frozenset[str]

    @classmethod
    def from_settings(cls, settings: Settings) -> "FeatureGateConfig":
        """Build the gate configuration from application settings."""
        return cls(
            enabled=settings.use_raw_improved_modals,
            pilot_features=PILOT_FEATURES,
            pilot_guild_ids=parse_guild_ids(settings.raw_modal_pilot_guild_ids),
        )


@dataclass
class FeatureGate:
    """Decides per interaction whether the managed modal path is active."""

    config_provider: Callable[[], FeatureGateConfig]

    @classmethod
    def static(cls, config: FeatureGateConfig) -> "FeatureGate":
        """Create a gate that always evaluates the given configuration."""
        return cls(config_provider=lambda: config)

    def is_enabled(self, feature: str, guild_id: str | None) -> bool:
        """Return whether the feature is piloted for the guild."""
        config = self.config_provider()
        if not config.enabled:
            return False
        if feature not in config.pilot_features:
            return False
        if ALL_GUILDS_TOKEN in config.pilot_guild_ids:
            return True
        if not guild_id:
            return False
        return guild_id in config.pilot_guild_ids
