"""GlazeWM IPC command line client.

Usage:
    glazewm-ipc query monitors                    # Print monitors as JSON
    glazewm-ipc query focused                     # Print focused container
    glazewm-ipc command "focus --next-workspace"  # Run a command
    glazewm-ipc command close --context <id>      # Run against a container
    glazewm-ipc subscribe -e focus_changed        # Stream events as JSON lines
    glazewm-ipc --port 6124 query workspaces      # Non-default server port
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import Any

import click

from .client import WmClient
from .config import WmClientConfig
from .errors import WmClientError
from .protocol.types import QueryCommand, WmEventType


def _create_client(config: WmClientConfig) -> WmClient:
    return WmClient(config)


def _run(coro: Any) -> Any:
    """Run a coroutine, reporting client errors on stderr."""
    try:
        return asyncio.run(coro)
    except WmClientError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--host", default=None, help="IPC server host (default: localhost)")
@click.option("--port", type=int, default=None, help="IPC server port (default: 6123)")
@click.option("--timeout", type=float, default=None, help="Seconds to wait for a reply")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def main(
    ctx: click.Context,
    host: str | None,
    port: int | None,
    timeout: float | None,
    verbose: bool,
) -> None:
    """Query and control GlazeWM over its IPC server."""
    # Protocol output goes to stdout, logs to stderr
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    try:
        config = WmClientConfig.from_env()
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    if host:
        config.host = host
    if port is not None:
        config.port = port
    if timeout is not None:
        config.timeout = timeout

    ctx.obj = config


@main.command("query")
@click.argument("name", type=click.Choice([q.value for q in QueryCommand]))
@click.pass_context
def query(ctx: click.Context, name: str) -> None:
    """Print the result of a query as JSON."""

    async def execute() -> Any:
        async with _create_client(ctx.obj) as client:
            return await client.query(name)

    result = _run(execute())
    click.echo(json.dumps(result, indent=2, ensure_ascii=False))


@main.command("command")
@click.argument("text")
@click.option("--context", "-c", "context_id", default=None, help="Context container id")
@click.pass_context
def command(ctx: click.Context, text: str, context_id: str | None) -> None:
    """Run a WM command.

    Examples:

        glazewm-ipc command "focus --workspace 2"

        glazewm-ipc command close --context 5b0d...
    """

    async def execute() -> None:
        async with _create_client(ctx.obj) as client:
            await client.run_command(text, context_id)

    _run(execute())


@main.command("subscribe")
@click.option(
    "--event",
    "-e",
    "events",
    multiple=True,
    required=True,
    type=click.Choice([e.value for e in WmEventType]),
    help="Event type to subscribe to (repeatable)",
)
@click.pass_context
def subscribe(ctx: click.Context, events: tuple[str, ...]) -> None:
    """Print events as JSON lines until interrupted or disconnected."""

    async def execute() -> None:
        client = _create_client(ctx.obj)
        stopped = asyncio.Event()
        client.on_disconnect(lambda _error: stopped.set())

        def print_event(data: dict[str, Any]) -> None:
            click.echo(json.dumps(data, ensure_ascii=False))

        async with client:
            await client.subscribe_many(events, print_event)
            await stopped.wait()

    try:
        _run(execute())
    except KeyboardInterrupt:
        click.echo("\nStopped", err=True)


if __name__ == "__main__":
    main()
