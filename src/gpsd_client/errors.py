"""Exception taxonomy for the gpsd client.

Programmer errors (AlreadyRunningError, NotRunningError) fail fast.
Decode errors (MalformedPayloadError, UnknownTypeError) are recoverable:
the session logs them and skips the offending line.
"""

from __future__ import annotations


class GpsdClientError(Exception):
    """Base class for all gpsd client errors."""


class AlreadyRunningError(GpsdClientError, RuntimeError):
    """Raised when start() is called on a session that is not stopped."""

    def __init__(self, message: str = "Client is already running"):
        super().__init__(message)


class NotRunningError(GpsdClientError, RuntimeError):
    """Raised when sending while the session is not connected."""

    def __init__(self, message: str = "Client is not running"):
        super().__init__(message)


class ConnectFailedError(GpsdClientError, ConnectionError):
    """Connection attempts to the gpsd server were exhausted."""

    def __init__(self, host: str, port: int, attempts: int):
        super().__init__(
            f"Connection to gpsd server {host}:{port} failed after {attempts} attempt(s)"
        )
        self.host = host
        self.port = port
        self.attempts = attempts


class GpsdParseError(GpsdClientError, ValueError):
    """Data received from gpsd could not be decoded."""


class MalformedPayloadError(GpsdParseError):
    """The line is not a JSON object carrying a string 'class' property."""


class UnknownTypeError(GpsdParseError):
    """The 'class' tag has no registered message schema."""

    def __init__(self, tag: str):
        super().__init__(f"Unknown message class '{tag}'")
        self.tag = tag
