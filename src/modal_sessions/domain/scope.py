"""Closed vocabularies for managed modal sessions."""

CUSTOM_ID_PREFIX = "modal"
SCHEMA_VERSION = 1
MAX_CUSTOM_ID_LENGTH = 100

FEATURE_FLOWS: dict[str, frozenset[str]] = {
    "todo": frozenset(
        {"create", "comment", "edit-title", "edit-description", "query"}
    ),
    "suggestion": frozenset({"review-decision"}),
    "nominate": frozenset({"create"}),
    "round-history": frozenset({"query"}),
}

SUPPORTED_FEATURES = frozenset(FEATURE_FLOWS)
PILOT_FEATURES = frozenset({"todo", "suggestion"})


def is_supported_feature(feature: str) -> bool:
    """Return whether the feature tag belongs to the current vocabulary."""
    return feature in FEATURE_FLOWS


def is_supported_flow(feature: str, flow: str) -> bool:
    """Return whether the flow is registered for the given feature."""
    return flow in FEATURE_FLOWS.get(feature, frozenset())
