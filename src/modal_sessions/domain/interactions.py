"""Discord interaction constants used by the modal protocol."""

from enum import IntEnum


class InteractionType(IntEnum):
    """Inbound Discord interaction types."""

    PING = 1
    APPLICATION_COMMAND = 2
    MESSAGE_COMPONENT = 3
    APPLICATION_COMMAND_AUTOCOMPLETE = 4
    MODAL_SUBMIT = 5


class CallbackType(IntEnum):
    """Discord interaction response types."""

    PONG = 1
    CHANNEL_MESSAGE_WITH_SOURCE = 4
    DEFERRED_CHANNEL_MESSAGE_WITH_SOURCE = 5
    MODAL = 9


ALREADY_ACKNOWLEDGED_CODE = 40060
UNKNOWN_INTERACTION_CODE = 10062
