"""gpsd client CLI.

Usage:
    gpsd-client watch                      # Stream all reports
    gpsd-client watch --type TPV -n 10     # First 10 TPV reports
    gpsd-client watch --format json        # One JSON object per line
    gpsd-client poll                       # Current fix of every device
    gpsd-client version                    # gpsd release and protocol level

    gpsd-client --host gps.local --port 2947 watch
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import threading
from collections.abc import Callable
from typing import cast

import click

from .client import GpsdClient
from .config import DEFAULT_HOST, DEFAULT_PORT, GpsdClientOptions
from .errors import UnknownTypeError
from .protocol.messages import (
    GpsdMessage,
    GpsdReport,
    PollMessage,
    SKYReport,
    TPVReport,
    VersionMessage,
    schema_for,
)

FORMAT_TEXT = "text"
FORMAT_JSON = "json"


def format_message(message: GpsdMessage, output_format: str = FORMAT_TEXT) -> str:
    """Render a message for display."""
    if output_format == FORMAT_JSON:
        data = {"class": message.gpsd_class}
        data.update(message.model_dump(mode="json", by_alias=True, exclude_none=True))
        return json.dumps(data)

    if isinstance(message, TPVReport):
        mode = message.mode.name if message.mode is not None else "UNKNOWN"
        return (
            f"TPV  {message.device or '-'} mode={mode} "
            f"lat={message.latitude} lon={message.longitude} alt={message.altitude} "
            f"speed={message.speed}"
        )
    if isinstance(message, SKYReport):
        return (
            f"SKY  {message.device or '-'} satellites={len(message.satellites)} "
            f"used={len(message.used_satellites)} hdop={message.horizontal_dop}"
        )

    fields = message.model_dump(mode="json", exclude_none=True)
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    return f"{message.gpsd_class:<4} {details}".rstrip()


def _configure_logging(verbose: bool) -> None:
    # Reports go to stdout, logs to stderr
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        stream=sys.stderr,
    )


def _connect(ctx: click.Context, timeout: float) -> GpsdClient:
    client: GpsdClient = ctx.obj["client"]
    client.start()
    if not client.wait_until_connected(timeout):
        client.stop()
        click.echo(f"Cannot connect to gpsd at {client.session.address}", err=True)
        sys.exit(1)
    return client


@click.group()
@click.option("--host", default=DEFAULT_HOST, envvar="GPSD_HOST", help="gpsd host")
@click.option("--port", default=DEFAULT_PORT, envvar="GPSD_PORT", help="gpsd port")
@click.option("--verbose", "-v", is_flag=True, help="Log connection events to stderr")
@click.pass_context
def main(ctx: click.Context, host: str, port: int, verbose: bool) -> None:
    """Command-line client for the gpsd daemon."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["client"] = GpsdClient(host, port, GpsdClientOptions.from_env())


@main.command()
@click.option(
    "--type",
    "-t",
    "tags",
    multiple=True,
    help="Only show messages of this class (e.g. TPV). Repeatable.",
)
@click.option("--count", "-n", type=int, default=None, help="Stop after this many messages")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TEXT, FORMAT_JSON]),
    default=FORMAT_TEXT,
    help="Output format",
)
@click.option("--timeout", default=10.0, help="Seconds to wait for the connection")
@click.pass_context
def watch(
    ctx: click.Context,
    tags: tuple[str, ...],
    count: int | None,
    output_format: str,
    timeout: float,
) -> None:
    """Stream reports until Ctrl+C.

    Examples:

        # Position fixes only
        gpsd-client watch --type TPV

        # Ten messages as JSON lines
        gpsd-client watch -n 10 --format json
    """
    try:
        message_types = [schema_for(tag.upper()) for tag in tags] or [GpsdReport]
    except UnknownTypeError as e:
        raise click.BadParameter(str(e), param_hint="--type") from e

    client: GpsdClient = ctx.obj["client"]
    done = threading.Event()
    lock = threading.Lock()
    seen = 0

    def on_message(message: GpsdMessage) -> None:
        nonlocal seen
        with lock:
            if done.is_set():
                return
            click.echo(format_message(message, output_format))
            seen += 1
            if count is not None and seen >= count:
                done.set()

    for message_type in message_types:
        client.register(message_type, on_message)

    _connect(ctx, timeout)
    try:
        client.watch(enable=True, report_messages=True)
        done.wait()
    except KeyboardInterrupt:
        click.echo("\nStopping", err=True)
    finally:
        client.stop()


def _request(
    ctx: click.Context,
    timeout: float,
    send: Callable[[GpsdClient, Callable[[GpsdMessage], None]], None],
) -> GpsdMessage:
    replies: queue.Queue[GpsdMessage] = queue.Queue()
    client = _connect(ctx, timeout)
    try:
        send(client, replies.put)
        return replies.get(timeout=timeout)
    except queue.Empty:
        click.echo(f"No reply from gpsd within {timeout}s", err=True)
        sys.exit(1)
    finally:
        client.stop()


@main.command()
@click.option("--timeout", default=10.0, help="Seconds to wait for the reply")
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice([FORMAT_TEXT, FORMAT_JSON]),
    default=FORMAT_TEXT,
    help="Output format",
)
@click.pass_context
def poll(ctx: click.Context, timeout: float, output_format: str) -> None:
    """Print the last fix and sky view of every active device."""

    def send(client: GpsdClient, on_reply: Callable[[GpsdMessage], None]) -> None:
        # gpsd only polls devices activated by a WATCH
        client.watch(enable=True, report_messages=False)
        client.poll(on_reply)

    reply = cast(PollMessage, _request(ctx, timeout, send))
    if output_format == FORMAT_JSON:
        click.echo(format_message(reply, FORMAT_JSON))
        return

    click.echo(f"Active devices: {reply.active_count}")
    for tpv in reply.tpv:
        click.echo(format_message(tpv))
    for sky in reply.sky:
        click.echo(format_message(sky))


@main.command()
@click.option("--timeout", default=10.0, help="Seconds to wait for the reply")
@click.pass_context
def version(ctx: click.Context, timeout: float) -> None:
    """Print the gpsd release and protocol version."""

    def send(client: GpsdClient, on_reply: Callable[[GpsdMessage], None]) -> None:
        client.send_command(VersionMessage(), on_reply)

    reply = cast(VersionMessage, _request(ctx, timeout, send))
    click.echo(
        f"gpsd {reply.release} (rev {reply.revision}), "
        f"protocol {reply.protocol_major}.{reply.protocol_minor}"
    )


if __name__ == "__main__":
    main()
