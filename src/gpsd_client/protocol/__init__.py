"""gpsd protocol layer.

Defines the message catalog and the codec that maps between protocol
lines and typed messages:
- Reports: server-to-client data (TPV, SKY, GST, ATT, TOFF, PPS)
- Commands: client requests that gpsd echoes back as replies
- ERROR: server-reported failures
"""

from .codec import decode, encode, split_lines
from .messages import (
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
    chain_of,
    message_types,
    schema_for,
    tag_of,
)

__all__ = [
    # Codec
    "decode",
    "encode",
    "split_lines",
    # Catalog
    "chain_of",
    "message_types",
    "schema_for",
    "tag_of",
    # Base types
    "GpsdMessage",
    "GpsdReport",
    "GpsdCommandMessage",
    "ClockReport",
    # Reports
    "TPVReport",
    "SKYReport",
    "GSTReport",
    "ATTReport",
    "TOFFReport",
    "PPSReport",
    "Satellite",
    # Commands
    "WatchMessage",
    "PollMessage",
    "DeviceMessage",
    "DevicesMessage",
    "VersionMessage",
    # Errors
    "ErrorMessage",
    # Enums
    "NMEAMode",
    "DeviceParity",
]
