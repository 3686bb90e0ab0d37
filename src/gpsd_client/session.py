"""Session - connection lifecycle for a gpsd client.

The session owns:
- a private asyncio event loop running on the ``gpsd-client-io`` thread,
  which performs all socket I/O and timers,
- a worker pool (``gpsd-handler-*``) on which message handlers run, so a
  slow handler never stalls decoding,
- the connection state machine:

      STOPPED -> CONNECTING -> CONNECTED
                     ^             |
                     +-------------+   (unexpected close, reconnect enabled)
      CONNECTING | CONNECTED -> STOPPING -> STOPPED

The public methods are synchronous and may be called from any thread.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from enum import Enum
from typing import Generic, TypeVar

from .config import DEFAULT_HOST, DEFAULT_PORT, GpsdClientOptions
from .errors import AlreadyRunningError, ConnectFailedError, GpsdParseError, NotRunningError
from .protocol.codec import decode, encode, split_lines
from .protocol.messages import GpsdCommandMessage
from .registry import HandlerRegistry

logger = logging.getLogger(__name__)

S = TypeVar("S")

_handler_thread = threading.local()


def _mark_handler_thread() -> None:
    _handler_thread.active = True


def _on_handler_thread() -> bool:
    return getattr(_handler_thread, "active", False)


class SessionState(str, Enum):
    """Connection state machine."""

    STOPPED = "stopped"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    STOPPING = "stopping"


class StampedState(Generic[S]):
    """Sequence-stamped cell for a value read far more often than written.

    Writers hold the lock and bump the stamp before and after the update, so
    an odd stamp means a write is in progress. Readers take the stamp, read
    the value and re-check the stamp; only when a write overlapped do they
    fall back to reading under the lock.
    """

    def __init__(self, initial: S) -> None:
        self._value = initial
        self._stamp = 0
        self._lock = threading.Lock()

    def get(self) -> S:
        stamp = self._stamp
        value = self._value
        if stamp % 2 == 0 and stamp == self._stamp:
            return value
        with self._lock:
            return self._value

    def set(self, value: S) -> S:
        """Store a value and return the previous one."""
        with self._lock:
            return self._swap(value)

    def compare_and_set(self, expected: S, value: S) -> bool:
        """Store value only if the current value is expected."""
        with self._lock:
            if self._value != expected:
                return False
            self._swap(value)
            return True

    def _swap(self, value: S) -> S:
        previous = self._value
        self._stamp += 1
        self._value = value
        self._stamp += 1
        return previous


class GpsdSession:
    """Persistent connection to a gpsd server.

    Usage:
        session = GpsdSession("localhost", 2947, registry=registry)
        session.start()
        session.wait_until_connected(5)
        session.send_raw('?WATCH={"enable":true,"json":true}')
        ...
        session.stop()

    Decoded messages are dispatched through the registry; lines that fail to
    decode are logged and skipped without dropping the connection.
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        options: GpsdClientOptions | None = None,
        registry: HandlerRegistry | None = None,
    ) -> None:
        self.host = host
        self.port = port
        self.options = options or GpsdClientOptions()
        self.registry = registry if registry is not None else HandlerRegistry()

        self._state: StampedState[SessionState] = StampedState(SessionState.STOPPED)
        self._lifecycle_lock = threading.RLock()
        self._connected = threading.Event()

        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._writer: asyncio.StreamWriter | None = None

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def state(self) -> SessionState:
        """Current connection state."""
        return self._state.get()

    def is_running(self) -> bool:
        """Check if the session is connected and able to send."""
        return self._state.get() is SessionState.CONNECTED

    def wait_until_connected(self, timeout: float | None = None) -> bool:
        """Block until the session is connected.

        Returns:
            True if connected, False if the timeout expired first
        """
        return self._connected.wait(timeout)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start the I/O thread and begin connecting.

        Returns as soon as the connection attempt is scheduled; use
        wait_until_connected() to block until the socket is up.

        Raises:
            AlreadyRunningError: If the session is not stopped
        """
        with self._lifecycle_lock:
            if not self._state.compare_and_set(SessionState.STOPPED, SessionState.CONNECTING):
                raise AlreadyRunningError()

            loop = asyncio.new_event_loop()
            self._loop = loop
            self._executor = ThreadPoolExecutor(
                max_workers=self.options.handler_workers,
                thread_name_prefix="gpsd-handler",
                initializer=_mark_handler_thread,
            )
            self._thread = threading.Thread(
                target=self._run_loop, args=(loop,), name="gpsd-client-io", daemon=True
            )
            self._thread.start()

            asyncio.run_coroutine_threadsafe(self._run(), loop)

    def stop(self) -> None:
        """Disconnect and release the socket, I/O thread and worker pool.

        Safe to call repeatedly and from any thread. When it returns,
        is_running() is False and no further messages are dispatched.

        Called from inside a handler while another stop() is already under
        way, it returns at once instead of waiting for that stop(), which may
        itself be waiting for the handler to finish.
        """
        self._stop()

    def _stop(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        if self._thread is not None and threading.current_thread() is self._thread:
            # The I/O thread cannot wait for itself
            self._request_stop()
            return

        if not self._acquire_lifecycle():
            return
        try:
            if loop is not None and loop is not self._loop:
                # Requested by an earlier run of the session
                return
            if self._state.get() is SessionState.STOPPED:
                return

            self._state.set(SessionState.STOPPING)
            self._connected.clear()

            io_loop, thread, executor = self._loop, self._thread, self._executor
            try:
                if io_loop is not None and thread is not None:
                    try:
                        asyncio.run_coroutine_threadsafe(self._teardown(), io_loop).result()
                    finally:
                        io_loop.call_soon_threadsafe(io_loop.stop)
                        thread.join()
                if executor is not None:
                    executor.shutdown(wait=not _on_handler_thread(), cancel_futures=True)
            finally:
                self._loop = None
                self._thread = None
                self._executor = None
                self._writer = None
                self._state.set(SessionState.STOPPED)

            logger.info(f"Client for gpsd server {self.address} stopped")
        finally:
            self._lifecycle_lock.release()

    def _acquire_lifecycle(self) -> bool:
        """Take the lifecycle lock; False if a handler should leave stopping to others."""
        if not _on_handler_thread():
            self._lifecycle_lock.acquire()
            return True
        while not self._lifecycle_lock.acquire(timeout=0.05):
            if self._state.get() in (SessionState.STOPPING, SessionState.STOPPED):
                return False
        return True

    def _request_stop(self) -> None:
        """Run stop() on a helper thread so the I/O loop never blocks on itself."""
        threading.Thread(
            target=self._stop, args=(self._loop,), name="gpsd-client-stop", daemon=True
        ).start()

    @staticmethod
    def _run_loop(loop: asyncio.AbstractEventLoop) -> None:
        asyncio.set_event_loop(loop)
        try:
            loop.run_forever()
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _teardown(self) -> None:
        """Cancel every task on the I/O loop and wait for them to finish."""
        current = asyncio.current_task()
        tasks = [task for task in asyncio.all_tasks() if task is not current]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    # =========================================================================
    # Connection (runs on the I/O loop)
    # =========================================================================

    async def _run(self) -> None:
        """Run the connection loop; shut the session down if it fails."""
        try:
            await self._connection_loop()
        except Exception:
            logger.exception(f"Connection to gpsd server {self.address} failed unexpectedly")
            self._connected.clear()
            for state in (SessionState.CONNECTED, SessionState.CONNECTING):
                if self._state.compare_and_set(state, SessionState.STOPPING):
                    self._request_stop()
                    break

    async def _connection_loop(self) -> None:
        """Connect, read until the connection closes, and reconnect as configured."""
        while True:
            streams = await self._open_connection()
            if streams is None:
                if self._state.compare_and_set(SessionState.CONNECTING, SessionState.STOPPING):
                    self._request_stop()
                return

            reader, writer = streams
            if not self._state.compare_and_set(SessionState.CONNECTING, SessionState.CONNECTED):
                # stop() won the race
                writer.close()
                return

            self._writer = writer
            self._connected.set()
            logger.info(f"Successfully connected to gpsd server {self.address}")

            try:
                await self._read(reader)
            finally:
                self._connected.clear()
                self._writer = None
                writer.close()
                with contextlib.suppress(OSError):
                    await writer.wait_closed()

            if not self._on_close():
                return

    async def _open_connection(
        self,
    ) -> tuple[asyncio.StreamReader, asyncio.StreamWriter] | None:
        """Connect within the attempt budget; None once it is exhausted."""
        budget = self.options.reconnect_attempts
        attempt = 0

        logger.info(f"Connecting to gpsd server {self.address}...")
        while True:
            attempt += 1
            try:
                return await asyncio.wait_for(
                    asyncio.open_connection(self.host, self.port),
                    timeout=self.options.connect_timeout_s,
                )
            except (OSError, TimeoutError) as e:
                if budget is not None and attempt > budget:
                    error = ConnectFailedError(self.host, self.port, attempt)
                    logger.error(f"{error}: {e!r}")
                    return None
                logger.warning(
                    f"Connection attempt {attempt} to gpsd server {self.address} failed: {e!r}. "
                    f"Retrying in {self.options.reconnect_interval_s}s"
                )
            await asyncio.sleep(self.options.reconnect_interval_s)

    async def _read(self, reader: asyncio.StreamReader) -> None:
        """Read chunks until EOF, a socket error or the idle timeout."""
        idle_timeout = self.options.idle_timeout or None
        while True:
            try:
                chunk = await asyncio.wait_for(
                    reader.read(self.options.receive_buffer_size), timeout=idle_timeout
                )
            except TimeoutError:
                logger.warning(
                    f"No data from gpsd server {self.address} for {idle_timeout}s, closing connection"
                )
                return
            except OSError as e:
                logger.warning(f"Connection to gpsd server {self.address} failed: {e!r}")
                return

            if not chunk:
                return
            self.handle_data(chunk)

    def _on_close(self) -> bool:
        """Decide what follows a closed connection. True means reconnect."""
        if self._state.get() is SessionState.STOPPING:
            logger.info("Client is shutting down...")
            return False

        if self.options.reconnect_on_disconnect:
            if self._state.compare_and_set(SessionState.CONNECTED, SessionState.CONNECTING):
                logger.warning(
                    f"Disconnected from gpsd server {self.address}. Will now try to reconnect..."
                )
                return True
            return False

        logger.info(f"Disconnected from gpsd server {self.address}")
        if self._state.compare_and_set(SessionState.CONNECTED, SessionState.STOPPING):
            self._request_stop()
        return False

    def handle_data(self, chunk: bytes) -> int:
        """Decode a received chunk and dispatch every message in it.

        The chunk is expected to hold whole lines. Lines that fail to decode
        are logged and skipped.

        Returns:
            Number of messages dispatched
        """
        executor = self._executor
        submit = executor.submit if executor is not None else None

        dispatched = 0
        for line in split_lines(chunk.decode("utf-8", errors="replace")):
            try:
                message = decode(line)
            except GpsdParseError as e:
                logger.warning(f"Cannot parse JSON: {e}")
                continue
            self.registry.dispatch(message, submit)
            dispatched += 1
        return dispatched

    # =========================================================================
    # Sending
    # =========================================================================

    def send_raw(self, text: str) -> None:
        """Write a raw command string to gpsd.

        Raises:
            NotRunningError: If the session is not connected
        """
        loop = self._loop
        if loop is None or not self.is_running():
            raise NotRunningError()
        try:
            loop.call_soon_threadsafe(self._write, text)
        except RuntimeError as e:
            # Loop closed by a concurrent stop()
            raise NotRunningError() from e

    def send_command(self, command: GpsdCommandMessage) -> None:
        """Encode and send a command.

        Raises:
            NotRunningError: If the session is not connected
        """
        self.send_raw(encode(command))

    def _write(self, text: str) -> None:
        writer = self._writer
        if writer is None or writer.is_closing():
            logger.warning(f"Dropped write, connection to {self.address} is closed: {text}")
            return
        writer.write(text.encode("utf-8"))
        logger.debug(f"Wrote: {text}")

    def __repr__(self) -> str:
        return f"GpsdSession({self.address}, state={self.state.value})"
