"""gpsd client - Python client for the gpsd GPS daemon.

Connects to gpsd over TCP, decodes its JSON reports into typed messages
and dispatches them to registered handlers:
- GpsdClient: lifecycle, commands and handler registration (start here)
- GpsdSession: connection state machine with reconnect
- HandlerRegistry: type-hierarchy message routing
"""

from .client import GpsdClient
from .config import DEFAULT_HOST, DEFAULT_PORT, GpsdClientOptions
from .errors import (
    AlreadyRunningError,
    ConnectFailedError,
    GpsdClientError,
    GpsdParseError,
    MalformedPayloadError,
    NotRunningError,
    UnknownTypeError,
)
from .protocol import (
    ATTReport,
    ClockReport,
    DeviceMessage,
    DeviceParity,
    DevicesMessage,
    ErrorMessage,
    GpsdCommandMessage,
    GpsdMessage,
    GpsdReport,
    GSTReport,
    NMEAMode,
    PollMessage,
    PPSReport,
    Satellite,
    SKYReport,
    TOFFReport,
    TPVReport,
    VersionMessage,
    WatchMessage,
)
from .registry import HandlerRegistry, OneShotHandler
from .session import GpsdSession, SessionState

__all__ = [
    # Client
    "GpsdClient",
    "GpsdSession",
    "SessionState",
    "HandlerRegistry",
    "OneShotHandler",
    # Configuration
    "GpsdClientOptions",
    "DEFAULT_HOST",
    "DEFAULT_PORT",
    # Errors
    "GpsdClientError",
    "AlreadyRunningError",
    "NotRunningError",
    "ConnectFailedError",
    "GpsdParseError",
    "MalformedPayloadError",
    "UnknownTypeError",
    # Messages
    "GpsdMessage",
    "GpsdReport",
    "GpsdCommandMessage",
    "TPVReport",
    "SKYReport",
    "GSTReport",
    "ATTReport",
    "TOFFReport",
    "ClockReport",
    "PPSReport",
    "Satellite",
    "WatchMessage",
    "PollMessage",
    "DeviceMessage",
    "DevicesMessage",
    "VersionMessage",
    "ErrorMessage",
    "NMEAMode",
    "DeviceParity",
]
