"""gpsd client - the public entry point.

Combines a GpsdSession (connection lifecycle) with a HandlerRegistry
(message routing) and correlates command replies with one-shot handlers.

Usage:
    with GpsdClient("localhost", 2947) as client:
        client.register(TPVReport, lambda tpv: print(tpv.latitude, tpv.longitude))
        client.wait_until_connected(5)
        client.watch()
        ...

    # Without the context manager
    client = GpsdClient()
    client.register_for_errors(lambda error: print(error.message))
    client.start()
    client.wait_until_connected(5)
    client.send_command(VersionMessage(), lambda version: print(version.release))
    client.stop()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, TypeVar

from .config import DEFAULT_HOST, DEFAULT_PORT, GpsdClientOptions
from .protocol.messages import (
    ErrorMessage,
    GpsdCommandMessage,
    GpsdMessage,
    PollMessage,
    WatchMessage,
)
from .registry import HandlerRegistry, OneShotHandler
from .session import GpsdSession, SessionState

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=GpsdMessage)
C = TypeVar("C", bound=GpsdCommandMessage)


class GpsdClient:
    """Client for a gpsd server.

    Handlers may be registered before or after start(); they survive
    reconnects and restarts. Handlers run on a worker pool, never on the
    I/O thread.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        options: GpsdClientOptions | None = None,
    ) -> None:
        self._registry = HandlerRegistry()
        self._session = GpsdSession(host, port, options, self._registry)

    @property
    def registry(self) -> HandlerRegistry:
        return self._registry

    @property
    def session(self) -> GpsdSession:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> GpsdClient:
        """Start connecting to gpsd.

        Raises:
            AlreadyRunningError: If the client is already started
        """
        self._session.start()
        return self

    def stop(self) -> None:
        """Shut the client down. Safe to call more than once."""
        self._session.stop()

    def is_running(self) -> bool:
        """Check if the client is connected."""
        return self._session.is_running()

    def wait_until_connected(self, timeout: float | None = None) -> bool:
        """Block until connected; False if the timeout expired first."""
        return self._session.wait_until_connected(timeout)

    def __enter__(self) -> GpsdClient:
        return self.start()

    def __exit__(self, *args: Any) -> None:
        self.stop()

    # =========================================================================
    # Sending
    # =========================================================================

    def send_raw(self, text: str) -> None:
        """Send a raw command string, e.g. ``?DEVICES;``.

        Raises:
            NotRunningError: If the client is not connected
        """
        self._session.send_raw(text)

    def send_command(
        self,
        command: C,
        on_response: Callable[[C], None] | None = None,
    ) -> None:
        """Send a command, optionally binding a handler for its reply.

        The reply is the first message received with the command's class;
        on_response runs exactly once for it. There is no timeout: if gpsd
        never replies the handler stays registered until it is removed with
        unregister_everywhere() or the client is discarded.

        Raises:
            NotRunningError: If the client is not connected
        """
        if on_response is None:
            self._session.send_command(command)
            return

        command_type = type(command)
        handler = OneShotHandler(self._registry, command_type, on_response)
        self._registry.register(command_type, handler)
        logger.debug(f"Awaiting reply to {command_type.__name__}")
        try:
            self._session.send_command(command)
        except Exception:
            self._registry.unregister(command_type, handler)
            raise

    def watch(self, enable: bool = True, report_messages: bool = True) -> None:
        """Enable or disable watch mode and JSON reporting.

        Args:
            enable: Turn watch mode on or off
            report_messages: Have gpsd stream JSON reports
        """
        self.send_command(WatchMessage(enable=enable, json=report_messages))

    def poll(self, on_response: Callable[[PollMessage], None] | None = None) -> None:
        """Request the current fix of every active device."""
        self.send_command(PollMessage(), on_response)

    # =========================================================================
    # Handlers
    # =========================================================================

    def register(self, message_type: type[M], handler: Callable[[M], None]) -> None:
        """Register a handler for a message type and all of its subtypes.

        Handlers for the concrete type run before handlers for its ancestors.
        """
        self._registry.register(message_type, handler)

    def register_for_all(self, handler: Callable[[GpsdMessage], None]) -> None:
        """Register a handler for every message, ERRORs included."""
        self._registry.register(GpsdMessage, handler)

    def register_for_errors(self, handler: Callable[[ErrorMessage], None]) -> None:
        """Register a handler for ERROR messages reported by gpsd."""
        self._registry.register(ErrorMessage, handler)

    def unregister(self, message_type: type[M], handler: Callable[[M], None]) -> bool:
        """Remove a handler from one message type.

        Returns:
            True if it was registered for that type
        """
        return self._registry.unregister(message_type, handler)

    def unregister_everywhere(self, handler: Callable[[Any], None]) -> bool:
        """Remove a handler from every message type.

        Returns:
            True if it was registered anywhere
        """
        return self._registry.unregister_everywhere(handler)

    def __repr__(self) -> str:
        return f"GpsdClient({self._session.address}, state={self.state.value})"
