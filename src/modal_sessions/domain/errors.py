"""Exception types raised by the modal session protocol."""


class ModalSessionError(Exception):
    """Base class for modal session errors."""


class CustomIdError(ModalSessionError, ValueError):
    """Raised when a custom id cannot be built from the given parts."""


class UnsupportedFeatureError(CustomIdError):
    """Raised for a feature tag outside the supported vocabulary."""


class UnsupportedFlowError(CustomIdError):
    """Raised for a flow tag not registered for its feature."""


class InvalidSessionIdError(CustomIdError):
    """Raised when a session id has unsupported characters or length."""


class IdentifierTooLongError(CustomIdError):
    """Raised when an encoded custom id exceeds Discord's length ceiling."""


class SessionStoreError(ModalSessionError):
    """Raised when the session store rejects an operation."""


class DuplicateSessionError(SessionStoreError):
    """Raised when creating a session whose id already exists."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Modal session already exists: {session_id}")
        self.session_id = session_id


class ChannelError(ModalSessionError):
    """Raised when a Discord interaction call fails."""


class IdentifierLengthExceededError(ChannelError):
    """Raised before opening a modal whose custom id is unusable."""


class ChannelTimeoutError(ChannelError):
    """Raised when a Discord call exceeds its timeout budget."""

    def __init__(self, endpoint: str, timeout_seconds: float) -> None:
        super().__init__(f"Request to {endpoint} timed out after {timeout_seconds}s")
        self.endpoint = endpoint
        self.timeout_seconds = timeout_seconds


class RequestRejectedError(ChannelError):
    """Raised when Discord answers with a non-success status."""

    def __init__(self, endpoint: str, status_code: int, body: str) -> None:
        super().__init__(
            f"Discord request to {endpoint} failed: {status_code} {body}".rstrip()
        )
        self.endpoint = endpoint
        self.status_code = status_code
        self.body = body
