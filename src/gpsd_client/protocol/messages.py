"""gpsd message catalog.

Every JSON object gpsd emits carries a "class" property naming its type.
Each concrete message model declares that tag as its CLASS attribute and is
added to the catalog when the class is defined, together with its dispatch
chain: the model itself followed by its message ancestors up to GpsdMessage.

Hierarchy:
    GpsdMessage
    ├── GpsdReport          server-to-client data (TPV, SKY, GST, ATT, TOFF, PPS)
    ├── GpsdCommandMessage  client requests, echoed back as replies
    │                       (WATCH, POLL, DEVICE, DEVICES, VERSION)
    └── ErrorMessage        server-reported errors (ERROR)

Field names are descriptive; wire names are kept as aliases, so both
``TPVReport(lat=1.0)`` and ``TPVReport(latitude=1.0)`` work.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum, IntEnum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field

from ..errors import UnknownTypeError

_TYPES_BY_TAG: dict[str, type[GpsdMessage]] = {}
_CHAINS: dict[type[GpsdMessage], tuple[type[GpsdMessage], ...]] = {}


class NMEAMode(IntEnum):
    """Fix mode reported in TPV."""

    NOT_SEEN = 0
    NO_FIX = 1
    TWO_D = 2
    THREE_D = 3


class DeviceParity(str, Enum):
    """Serial parity of a device."""

    NO = "N"
    ODD = "O"
    EVEN = "E"


def _register(cls: type[GpsdMessage]) -> None:
    _CHAINS[cls] = tuple(
        base for base in cls.__mro__ if isinstance(base, type) and issubclass(base, GpsdMessage)
    )
    tag = cls.__dict__.get("CLASS")
    if tag is None:
        return
    existing = _TYPES_BY_TAG.get(tag)
    if existing is not None and existing is not cls:
        raise ValueError(
            f"gpsd class '{tag}' already registered to {existing.__qualname__}"
        )
    _TYPES_BY_TAG[tag] = cls


class GpsdMessage(BaseModel):
    """Root of all messages exchanged with gpsd.

    Unknown JSON fields are ignored so newer gpsd releases keep decoding.
    Instances are immutable once built.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    CLASS: ClassVar[str | None] = None

    @classmethod
    def __pydantic_init_subclass__(cls, **kwargs: Any) -> None:
        super().__pydantic_init_subclass__(**kwargs)
        _register(cls)

    @property
    def gpsd_class(self) -> str:
        """The protocol tag of this message."""
        return tag_of(type(self))


# Subclasses register themselves; the root is added by hand
_CHAINS[GpsdMessage] = (GpsdMessage,)


class GpsdReport(GpsdMessage):
    """A server-to-client report carrying sensor or position data."""


class GpsdCommandMessage(GpsdMessage):
    """A message the client may send; gpsd replies with the same class."""


def tag_of(message_type: type[GpsdMessage]) -> str:
    """Return the protocol tag of a concrete message type."""
    tag = message_type.__dict__.get("CLASS") if isinstance(message_type, type) else None
    if tag is None:
        raise ValueError(f"{message_type!r} is not a concrete gpsd message type")
    return tag


def chain_of(message_type: type[GpsdMessage]) -> tuple[type[GpsdMessage], ...]:
    """Return the dispatch chain of a message type, most specific first."""
    try:
        return _CHAINS[message_type]
    except (KeyError, TypeError):
        raise TypeError(f"{message_type!r} is not a gpsd message type") from None


def schema_for(tag: str) -> type[GpsdMessage]:
    """Return the message model registered for a protocol tag."""
    try:
        return _TYPES_BY_TAG[tag]
    except KeyError:
        raise UnknownTypeError(tag) from None


def message_types() -> dict[str, type[GpsdMessage]]:
    """Snapshot of the tag -> model table."""
    return dict(_TYPES_BY_TAG)


# =============================================================================
# Reports
# =============================================================================


class Satellite(BaseModel):
    """One satellite of a SKY report."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    # 1-63 GNSS, 64-96 GLONASS, 100-164 SBAS
    prn: int | None = Field(None, alias="PRN")
    azimuth: float | None = Field(None, alias="az")  # degrees from true north
    elevation: float | None = Field(None, alias="el")  # degrees
    signal_strength: float | None = Field(None, alias="ss")  # dB
    used: bool = False


class TPVReport(GpsdReport):
    """Time-position-velocity report.

    Error estimates are at 95% confidence. Position fields are present only
    when the fix mode allows them (2D or 3D, altitude only in 3D).
    """

    CLASS: ClassVar[str] = "TPV"

    device: str | None = None
    mode: NMEAMode | None = None
    time: datetime | None = None
    time_error: float | None = Field(None, alias="ept")  # seconds
    latitude: float | None = Field(None, alias="lat")
    longitude: float | None = Field(None, alias="lon")
    altitude: float | None = Field(None, alias="alt")  # meters
    longitude_error: float | None = Field(None, alias="epx")  # meters
    latitude_error: float | None = Field(None, alias="epy")  # meters
    altitude_error: float | None = Field(None, alias="epv")  # meters
    course: float | None = Field(None, alias="track")  # degrees from true north
    speed: float | None = None  # m/s
    climb_rate: float | None = Field(None, alias="climb")  # m/s
    course_error: float | None = Field(None, alias="epd")  # degrees
    speed_error: float | None = Field(None, alias="eps")  # m/s
    climb_rate_error: float | None = Field(None, alias="epc")  # m/s

    @property
    def has_fix(self) -> bool:
        return self.mode in (NMEAMode.TWO_D, NMEAMode.THREE_D)


class SKYReport(GpsdReport):
    """Sky view: dilution of precision factors and visible satellites."""

    CLASS: ClassVar[str] = "SKY"

    device: str | None = None
    time: datetime | None = None
    time_dop: float | None = Field(None, alias="tdop")
    longitude_dop: float | None = Field(None, alias="xdop")
    latitude_dop: float | None = Field(None, alias="ydop")
    altitude_dop: float | None = Field(None, alias="vdop")
    horizontal_dop: float | None = Field(None, alias="hdop")
    spherical_dop: float | None = Field(None, alias="pdop")
    hyperspherical_dop: float | None = Field(None, alias="gdop")
    satellites: tuple[Satellite, ...] = ()

    @property
    def used_satellites(self) -> list[Satellite]:
        return [sat for sat in self.satellites if sat.used]


class GSTReport(GpsdReport):
    """Pseudorange noise statistics. Deviations are in meters."""

    CLASS: ClassVar[str] = "GST"

    device: str | None = None
    time: datetime | None = None
    rms: float | None = None
    major: float | None = None  # semi-major axis of the error ellipse
    minor: float | None = None  # semi-minor axis of the error ellipse
    orient: float | None = None  # degrees from true north
    lat: float | None = None
    lon: float | None = None
    alt: float | None = None


class ATTReport(GpsdReport):
    """Vehicle attitude from a digital compass or gyroscope."""

    CLASS: ClassVar[str] = "ATT"

    device: str | None = None
    time: datetime | None = None
    heading: float | None = None  # degrees from true north
    pitch: float | None = None
    yaw: float | None = None
    roll: float | None = None
    dip: float | None = None  # magnetic inclination, positive downward
    magnetometer_status: str | None = Field(None, alias="mag_st")
    pitch_sensor_status: str | None = Field(None, alias="pitch_st")
    yaw_sensor_status: str | None = Field(None, alias="yaw_st")
    roll_sensor_status: str | None = Field(None, alias="roll_st")
    magnetic_field_strength: float | None = Field(None, alias="mag_len")
    magnetic_field_x: float | None = Field(None, alias="mag_x")
    magnetic_field_y: float | None = Field(None, alias="mag_y")
    magnetic_field_z: float | None = Field(None, alias="mag_z")
    acceleration: float | None = Field(None, alias="acc_len")
    acceleration_x: float | None = Field(None, alias="acc_x")
    acceleration_y: float | None = Field(None, alias="acc_y")
    acceleration_z: float | None = Field(None, alias="acc_z")
    gyro_x: float | None = None
    gyro_y: float | None = None
    water_depth: float | None = Field(None, alias="depth")  # meters
    temperature: float | None = None  # degrees centigrade


class ClockReport(GpsdReport):
    """Common shape of the TOFF and PPS timing reports."""

    device: str | None = None
    gps_clock_seconds: float | None = Field(None, alias="real_sec")
    gps_clock_nanoseconds: float | None = Field(None, alias="real_nsec")
    system_clock_seconds: float | None = Field(None, alias="clock_sec")
    system_clock_nanoseconds: float | None = Field(None, alias="clock_nsec")


class TOFFReport(ClockReport):
    """Offset between the GPS clock and the system clock for one cycle."""

    CLASS: ClassVar[str] = "TOFF"


class PPSReport(ClockReport):
    """Pulse-per-second timing from a device emitting 1PPS."""

    CLASS: ClassVar[str] = "PPS"

    precision: int | None = None


# =============================================================================
# Commands
# =============================================================================


class WatchMessage(GpsdCommandMessage):
    """WATCH: enable or disable streaming of reports.

    Only fields that are set explicitly are sent, so gpsd applies its own
    defaults to the rest.
    """

    CLASS: ClassVar[str] = "WATCH"

    enabled: bool = Field(True, alias="enable")
    dump_json: bool = Field(False, alias="json")
    nmea: bool = False  # dump binary packets as pseudo-NMEA
    raw: int | None = None  # 1 = hex-dumped raw data, 2 = verbatim
    scaled: bool = False
    split24: bool = False  # AIS type 24 aggregation
    pps: bool = False  # emit TOFF and PPS messages
    device: str | None = None  # watch only this device


class PollMessage(GpsdCommandMessage):
    """POLL: last fix and sky view of every active device."""

    CLASS: ClassVar[str] = "POLL"

    time: datetime | None = None
    active_count: int | None = Field(None, alias="active")
    tpv: tuple[TPVReport, ...] = ()
    sky: tuple[SKYReport, ...] = ()


class DeviceMessage(GpsdCommandMessage):
    """DEVICE: a device's status, or a request to reconfigure it."""

    CLASS: ClassVar[str] = "DEVICE"

    path: str | None = None
    activated: datetime | None = None
    flags: int | None = None
    driver: str | None = None
    subtype: str | None = None
    bps: int | None = None
    parity: DeviceParity | None = None
    stopbits: int | None = None
    native_mode: int | None = Field(None, alias="native")
    cycle: float | None = None
    mincycle: float | None = None


class DevicesMessage(GpsdCommandMessage):
    """DEVICES: the list of devices gpsd knows about."""

    CLASS: ClassVar[str] = "DEVICES"

    devices: tuple[DeviceMessage, ...] = ()
    remote: str | None = None


class VersionMessage(GpsdCommandMessage):
    """VERSION: sent on connect and in reply to ?VERSION."""

    CLASS: ClassVar[str] = "VERSION"

    release: str | None = None
    revision: str | None = Field(None, alias="rev")
    protocol_major: int | None = Field(None, alias="proto_major")
    protocol_minor: int | None = Field(None, alias="proto_minor")


class ErrorMessage(GpsdMessage):
    """ERROR: gpsd could not process a request."""

    CLASS: ClassVar[str] = "ERROR"

    message: str | None = None
