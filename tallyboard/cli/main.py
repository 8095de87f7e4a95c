"""Tallyboard CLI: serve, status, watch and board commands."""

from __future__ import annotations

import logging
import sys
import time

import click
from rich.console import Console
from rich.table import Table

from tallyboard.server.app import (
    DEFAULT_ADMIN_PASSWORD,
    DEFAULT_HOST,
    DEFAULT_OUTBOX_SIZE,
    DEFAULT_PORT,
)

console = Console()

REPLY_TIMEOUT = 10.0

server_option = click.option(
    "--server", "server_url", default=f"http://localhost:{DEFAULT_PORT}", show_default=True, help="Server URL"
)
password_option = click.option(
    "--password", envvar="ADMIN_PASSWORD", default=None, help="Admin password (or ADMIN_PASSWORD)"
)
verbose_option = click.option("--verbose", "-v", is_flag=True, help="Verbose logging")


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _people_table(people: list[dict], title: str = "Board") -> Table:
    table = Table(title=title)
    table.add_column("ID", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Count", style="green", justify="right")
    for person in people:
        table.add_row(str(person["id"]), person["name"], str(person["count"]))
    return table


def _connected_client(server_url: str, password: str | None = None):
    from tallyboard.client.sdk import BoardClient

    client = BoardClient(server=server_url, password=password)
    client.connect()
    if password is not None and not client.view.authenticated:
        client.close()
        console.print(f"[bold red]Authentication failed:[/bold red] {client.view.auth_message}")
        sys.exit(1)
    return client


def _wait_for_own(client, types: tuple, matches):
    """Read broadcasts until one is about our own request, or we are rejected.

    Other clients' changes of the same type are skipped.
    """
    from tallyboard.board.protocol import MessageType

    deadline = time.monotonic() + REPLY_TIMEOUT
    while True:
        remaining = deadline - time.monotonic()
        try:
            if remaining <= 0:
                raise TimeoutError
            message = client.wait_for(*types, MessageType.AUTH_FAILED, timeout=remaining)
        except TimeoutError:
            console.print(f"[bold red]No reply from the server within {REPLY_TIMEOUT:g}s[/bold red]")
            sys.exit(1)
        if message.kind is MessageType.AUTH_FAILED or matches(message.payload):
            return message


@click.group()
@click.version_option(package_name="tallyboard")
def cli():
    """Tallyboard: shared counter board synchronized over WebSocket."""
    pass


@cli.command()
@click.option("--port", envvar="WS_PORT", default=DEFAULT_PORT, show_default=True, help="Port to listen on")
@click.option("--host", envvar="WS_HOST", default=DEFAULT_HOST, show_default=True, help="Host to bind to")
@click.option(
    "--admin-password",
    envvar="ADMIN_PASSWORD",
    default=DEFAULT_ADMIN_PASSWORD,
    help="Shared admin password (or ADMIN_PASSWORD)",
)
@click.option(
    "--outbox-size",
    default=DEFAULT_OUTBOX_SIZE,
    show_default=True,
    help="Frames buffered per connection before it is dropped",
)
@verbose_option
def serve(port, host, admin_password, outbox_size, verbose):
    """Start the Tallyboard server."""
    _setup_logging(verbose)

    from tallyboard.server.app import configure

    app = configure(admin_password=admin_password, port=port, host=host, outbox_size=outbox_size)

    if admin_password == DEFAULT_ADMIN_PASSWORD:
        console.print("[yellow]Using the default admin password; set ADMIN_PASSWORD to change it[/yellow]")
    console.print(f"[bold green]Tallyboard Server[/bold green]")
    console.print(f"  Listening: {host}:{port}")
    console.print(f"  Socket:    ws://{host}:{port}/ws")
    console.print(f"  Outbox:    {outbox_size} frames")
    console.print()

    import uvicorn

    uvicorn.run(app, host=host, port=port, log_level="info" if not verbose else "debug")


@cli.command()
@server_option
@verbose_option
def status(server_url, verbose):
    """Start the broker if needed and show what it holds."""
    _setup_logging(verbose)

    from tallyboard.client.sdk import BoardClient

    with BoardClient(server=server_url) as client:
        info = client.status()

    console.print(f"[bold green]{info['message']}[/bold green]")
    console.print(f"  Connected:     {info['connectedClients']}")
    console.print(f"  Authenticated: {info['authenticatedClients']}")
    console.print(_people_table(info["currentPeople"]))


@cli.command()
@server_option
@password_option
@verbose_option
def watch(server_url, password, verbose):
    """Stream live board updates, reconnecting when the server goes away."""
    _setup_logging(verbose)

    from tallyboard.client.sdk import BoardClient

    with BoardClient(server=server_url, password=password) as client:
        try:
            for message in client.listen():
                console.print(f"[dim]{message.type}[/dim]")
                console.print(
                    _people_table(client.view.people, title=f"Board ({client.view.authenticated_count} admin)")
                )
        except KeyboardInterrupt:
            console.print("Stopped.")


@cli.command()
@click.argument("name")
@server_option
@verbose_option
def add(name, server_url, verbose):
    """Add a new entry to the board."""
    _setup_logging(verbose)

    from tallyboard.board.protocol import MessageType

    if not name.strip():
        raise click.BadParameter("name must not be empty", param_hint="NAME")

    with _connected_client(server_url) as client:
        client.add(name)
        message = _wait_for_own(client, (MessageType.PERSON_ADDED,), lambda p: p.get("name") == name.strip())

    console.print(f"[bold green]Added[/bold green] {message.payload['name']} (id {message.payload['id']})")


def _update(server_url: str, password: str | None, entry_id: int, increment: bool) -> None:
    from tallyboard.board.protocol import MessageType

    if password is None:
        raise click.UsageError("--password is required for this command")

    with _connected_client(server_url, password) as client:
        if client.view.find(entry_id) is None:
            console.print(f"[bold red]No entry with id {entry_id}[/bold red]")
            sys.exit(1)
        if increment:
            client.increment(entry_id)
        else:
            client.decrement(entry_id)
        message = _wait_for_own(client, (MessageType.COUNT_UPDATED,), lambda p: p.get("id") == entry_id)

    if message.kind is MessageType.AUTH_FAILED:
        console.print(f"[bold red]Rejected:[/bold red] {message.payload['message']}")
        sys.exit(1)
    console.print(f"[bold green]Entry {message.payload['id']}[/bold green] → {message.payload['count']}")


@cli.command()
@click.argument("entry_id", type=int)
@server_option
@password_option
@verbose_option
def increment(entry_id, server_url, password, verbose):
    """Increment an entry's count."""
    _setup_logging(verbose)
    _update(server_url, password, entry_id, increment=True)


@cli.command()
@click.argument("entry_id", type=int)
@server_option
@password_option
@verbose_option
def decrement(entry_id, server_url, password, verbose):
    """Decrement an entry's count (never below zero)."""
    _setup_logging(verbose)
    _update(server_url, password, entry_id, increment=False)


@cli.command()
@click.argument("entry_id", type=int)
@server_option
@password_option
@verbose_option
def remove(entry_id, server_url, password, verbose):
    """Remove an entry from the board."""
    _setup_logging(verbose)

    from tallyboard.board.protocol import MessageType

    if password is None:
        raise click.UsageError("--password is required for this command")

    with _connected_client(server_url, password) as client:
        client.remove(entry_id)
        message = _wait_for_own(client, (MessageType.PERSON_REMOVED,), lambda p: p.get("id") == entry_id)

    if message.kind is MessageType.AUTH_FAILED:
        console.print(f"[bold red]Rejected:[/bold red] {message.payload['message']}")
        sys.exit(1)
    console.print(f"[bold green]Removed[/bold green] entry {message.payload['id']}")


if __name__ == "__main__":
    cli()
