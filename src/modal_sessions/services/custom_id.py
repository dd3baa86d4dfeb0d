"""Encoding and decoding of modal custom ids."""

import re
from dataclasses import dataclass

from modal_sessions.domain.errors import (
    IdentifierTooLongError,
    InvalidSessionIdError,
    UnsupportedFeatureError,
    UnsupportedFlowError,
)
from modal_sessions.domain.scope import (
    CUSTOM_ID_PREFIX,
    MAX_CUSTOM_ID_LENGTH,
    SCHEMA_VERSION,
    is_supported_feature,
    is_supported_flow,
)

_SESSION_ID_PATTERN = re.compile(r"[A-Za-z0-9_-]{1,64}")
_VERSION_PATTERN = re.compile(r"v([0-9]+)")
_SEGMENT_COUNT = 5


@dataclass(frozen=True)
class ParsedCustomId:
    """Routing metadata carried by a modal custom id."""

    feature: str
    flow: str
    session_id: str
    version: int


def is_valid_session_id(session_id: object) -> bool:
    """Return whether a session id fits the allowed charset and length."""
    return isinstance(session_id, str) and (
        _SESSION_ID_PATTERN.fullmatch(session_id) is not None
    )


def is_protocol_custom_id(custom_id: object) -> bool:
    """Return whether a custom id claims to belong to managed modals."""
    return isinstance(custom_id, str) and custom_id.startswith(f"{CUSTOM_ID_PREFIX}:")


def encode_custom_id(
    feature: str,
    flow: str,
    session_id: str,
    schema_version: int = SCHEMA_VERSION,
) -> str:
    """Build the custom id for a modal session.

    Raises a ``ValueError`` subclass when the parts cannot form a valid id.
    """
    if not is_supported_feature(feature):
        raise UnsupportedFeatureError(f"Unsupported modal feature: {feature}")
    if not is_supported_flow(feature, flow):
        raise UnsupportedFlowError(f"Unsupported modal flow for {feature}: {flow}")
    if not is_valid_session_id(session_id):
        raise InvalidSessionIdError(
            "Modal session id contains unsupported characters or length."
        )
    if schema_version < 1:
        raise ValueError("Modal schema version must be a positive integer.")

    custom_id = ":".join(
        [CUSTOM_ID_PREFIX, feature, f"v{schema_version}", flow, session_id]
    )
    if len(custom_id) > MAX_CUSTOM_ID_LENGTH:
        raise IdentifierTooLongError(
            f"Modal custom id length exceeds {MAX_CUSTOM_ID_LENGTH} characters."
        )
    return custom_id


def decode_custom_id(custom_id: object) -> ParsedCustomId | None:
    """Parse an untrusted custom id, returning None for anything malformed."""
    if not isinstance(custom_id, str) or len(custom_id) > MAX_CUSTOM_ID_LENGTH:
        return None
    segments = custom_id.split(":")
    if len(segments) != _SEGMENT_COUNT or not all(segments):
        return None

    prefix, feature, version_part, flow, session_id = segments
    if prefix != CUSTOM_ID_PREFIX:
        return None
    if not is_supported_feature(feature) or not is_supported_flow(feature, flow):
        return None
    version_match = _VERSION_PATTERN.fullmatch(version_part)
    if version_match is None:
        return None
    version = int(version_match.group(1))
    if version < 1:
        return None
    if not is_valid_session_id(session_id):
        return None

    return ParsedCustomId(
        feature=feature,
        flow=flow,
        session_id=session_id,
        version=version,
    )
