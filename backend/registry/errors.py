"""Domain errors raised by the registry and the relay.

Each error carries the human-readable message that is put on the wire,
either as an HTTP ``detail`` or as the ``message`` of an error event.
"""


class RelayError(Exception):
    """Base exception for all registry and relay errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(RelayError):
    """Raised when a required registration field is missing or empty."""


class DuplicateCodeError(RelayError):
    """Raised when a pairing code is already bound to a durable identity."""

    def __init__(self, code: str):
        self.code = code
        super().__init__("Connection code already in use")


class UnknownCodeError(RelayError):
    """Raised when a pairing code does not resolve to any durable identity."""

    def __init__(self, code: str):
        self.code = code
        super().__init__("Invalid connection code")


class SourceUnavailableError(RelayError):
    """Raised when a stream is requested for a source that is not live."""

    def __init__(self, identity: str):
        self.identity = identity
        super().__init__("Computer is not connected")
