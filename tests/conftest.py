"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import asyncio
import json
import socket
from collections.abc import Callable

import pytest
import pytest_asyncio

VERSION_BANNER = {
    "class": "VERSION",
    "release": "3.25",
    "rev": "3.25",
    "proto_major": 3,
    "proto_minor": 15,
}


class FakeGpsd:
    """Minimal gpsd stand-in listening on 127.0.0.1.

    Records everything clients write and lets tests push lines to them.
    """

    def __init__(self, banner: dict | None = None) -> None:
        self.banner = banner
        self.received = ""
        self.connection_count = 0
        self._server: asyncio.Server | None = None
        self._writers: list[asyncio.StreamWriter] = []

    @property
    def port(self) -> int:
        assert self._server is not None
        return self._server.sockets[0].getsockname()[1]

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self._writers.append(writer)
        self.connection_count += 1
        if self.banner is not None:
            writer.write((json.dumps(self.banner) + "\r\n").encode())
            await writer.drain()
        try:
            while chunk := await reader.read(4096):
                self.received += chunk.decode()
        except ConnectionError:
            pass

    async def send(self, *lines: dict | str) -> None:
        """Write lines to the most recent client, as one chunk."""
        await self._wait_for_client()
        writer = self._writers[-1]
        payload = "".join(
            (json.dumps(line) if isinstance(line, dict) else line) + "\r\n" for line in lines
        )
        writer.write(payload.encode())
        await writer.drain()

    async def drop_clients(self) -> None:
        """Close every client connection from the server side."""
        await self._wait_for_client()
        await self._close_clients()

    async def _wait_for_client(self) -> None:
        # The client sees its connect succeed before _handle has run here
        await wait_for(lambda: self._writers)

    async def _close_clients(self) -> None:
        writers, self._writers = self._writers, []
        for writer in writers:
            writer.close()
        for writer in writers:
            try:
                await writer.wait_closed()
            except ConnectionError:
                pass

    async def expect(self, text: str, timeout: float = 5.0) -> None:
        """Wait until a client has written text."""
        await wait_for(lambda: text in self.received, timeout)

    async def wait_for_connections(self, count: int, timeout: float = 5.0) -> None:
        await wait_for(lambda: self.connection_count >= count, timeout)

    async def close(self) -> None:
        await self._close_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()


async def wait_for(condition: Callable[[], bool], timeout: float = 5.0) -> None:
    """Poll a condition until it holds or the timeout expires."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("Condition not met within timeout")
        await asyncio.sleep(0.01)


@pytest.fixture
def unused_port() -> int:
    """A local port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest_asyncio.fixture
async def fake_gpsd():
    """A running fake gpsd without a connect banner."""
    server = FakeGpsd()
    await server.start()
    yield server
    await server.close()


@pytest_asyncio.fixture
async def fake_gpsd_with_banner():
    """A running fake gpsd that greets clients with VERSION, like the real one."""
    server = FakeGpsd(banner=VERSION_BANNER)
    await server.start()
    yield server
    await server.close()
