"""Error taxonomy shared by all clients and services.

Every error carries a ``retryable`` flag so callers (and the HTTP layer) can
decide whether a failure is worth retrying without inspecting messages.
"""


class BridgeError(Exception):
    """Base class for all errors raised by the medqa bridge."""

    retryable: bool = False

    def __init__(self, message: str, *, retryable: bool | None = None) -> None:
        super().__init__(message)
        self.message = message
        if retryable is not None:
            self.retryable = retryable


class InvalidInputError(BridgeError):
    """Malformed or missing caller-supplied data."""


class NotFoundError(InvalidInputError):
    """The requested resource does not exist or is not owned by the caller."""


class ConfigurationError(BridgeError):
    """A required credential or setting is missing. Needs operator action."""


class ProviderError(BridgeError):
    """An embedding or chat provider call failed or returned an unusable shape."""

    retryable = True

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool | None = None) -> None:
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class StoreError(BridgeError):
    """Vector store transport failure or unexpected response status."""

    retryable = True

    def __init__(self, message: str, *, status_code: int | None = None, retryable: bool | None = None) -> None:
        super().__init__(message, retryable=retryable)
        self.status_code = status_code


class ValidationError(BridgeError):
    """Internal invariant violation, e.g. mismatched batch lengths. Indicates a bug."""


class StreamCancelledError(BridgeError):
    """A streaming answer was cancelled by its consumer."""
