"""Client configuration.

GpsdClientOptions carries the connection and reconnection policy consumed by
GpsdSession. Values can come from keyword arguments or from the environment
via GpsdClientOptions.from_env().
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 2947

DEFAULT_RECONNECT_ON_DISCONNECT = True
DEFAULT_CONNECT_TIMEOUT = 3000  # ms
DEFAULT_IDLE_TIMEOUT = 120  # s
DEFAULT_RECONNECT_INTERVAL = 3000  # ms
DEFAULT_RECEIVE_BUFFER_SIZE = 4 * 1024  # bytes

ENV_PREFIX = "GPSD_CLIENT_"

_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


@dataclass
class GpsdClientOptions:
    """Configuration for a gpsd client session.

    Attributes:
        reconnect_on_disconnect: Reconnect when the connection to gpsd is lost.
        connect_timeout: How long to wait when connecting before giving up, in ms.
        idle_timeout: Close the connection when nothing is received for this
            many seconds. Zero means never.
        reconnect_attempts: Maximum connect retries after the first attempt.
            None means unbounded.
        reconnect_interval: Delay between connect attempts, in ms.
        receive_buffer_size: Maximum bytes taken from the socket per read.
        handler_workers: Size of the handler worker pool. None uses the
            ThreadPoolExecutor default.
    """

    reconnect_on_disconnect: bool = DEFAULT_RECONNECT_ON_DISCONNECT
    connect_timeout: int = DEFAULT_CONNECT_TIMEOUT
    idle_timeout: int = DEFAULT_IDLE_TIMEOUT
    reconnect_attempts: int | None = None
    reconnect_interval: int = DEFAULT_RECONNECT_INTERVAL
    receive_buffer_size: int = DEFAULT_RECEIVE_BUFFER_SIZE
    handler_workers: int | None = None

    def __post_init__(self) -> None:
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be greater than zero")
        if self.idle_timeout < 0:
            raise ValueError("idle_timeout cannot be negative")
        if self.reconnect_attempts is not None and self.reconnect_attempts < 0:
            raise ValueError("reconnect_attempts cannot be negative")
        if self.reconnect_interval < 0:
            raise ValueError("reconnect_interval cannot be negative")
        if self.receive_buffer_size <= 0:
            raise ValueError("receive_buffer_size must be greater than zero")
        if self.handler_workers is not None and self.handler_workers <= 0:
            raise ValueError("handler_workers must be greater than zero")

    @property
    def connect_timeout_s(self) -> float:
        return self.connect_timeout / 1000

    @property
    def reconnect_interval_s(self) -> float:
        return self.reconnect_interval / 1000

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> GpsdClientOptions:
        """Build options from GPSD_CLIENT_* environment variables.

        Unset variables keep their defaults. GPSD_CLIENT_RECONNECT_ATTEMPTS
        accepts "unbounded" (or an empty value) for no limit.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}

        if (value := env.get(f"{ENV_PREFIX}RECONNECT")) is not None:
            kwargs["reconnect_on_disconnect"] = _parse_bool(value)
        for field_name, var in (
            ("connect_timeout", "CONNECT_TIMEOUT"),
            ("idle_timeout", "IDLE_TIMEOUT"),
            ("reconnect_interval", "RECONNECT_INTERVAL"),
            ("receive_buffer_size", "RECEIVE_BUFFER_SIZE"),
            ("handler_workers", "HANDLER_WORKERS"),
        ):
            if (value := env.get(f"{ENV_PREFIX}{var}")) is not None:
                kwargs[field_name] = int(value)
        if (value := env.get(f"{ENV_PREFIX}RECONNECT_ATTEMPTS")) is not None:
            value = value.strip().lower()
            kwargs["reconnect_attempts"] = None if value in ("", "unbounded") else int(value)

        return cls(**kwargs)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUTHY:
        return True
    if lowered in _FALSY:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")
