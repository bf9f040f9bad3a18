"""
Pubky CLI - Command line interface for pubky identities.
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .auth.identity import KeyPair, generate_seed
from .client import Client
from .config import Config, get_config, set_config
from .errors import PubkyError

console = Console()


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[logging.StreamHandler()]
    )


def run_async(coro):
    """Run an async function."""
    return asyncio.run(coro)


def parse_seed(ctx, param, value: Optional[str]) -> Optional[bytes]:
    """Click callback turning a hex seed into bytes."""
    if value is None:
        return None
    try:
        seed = bytes.fromhex(value)
    except ValueError:
        raise click.BadParameter("seed must be hex encoded")
    if len(seed) != 32:
        raise click.BadParameter("seed must be 32 bytes (64 hex characters)")
    return seed


def fail(error: Exception):
    console.print(f"[red]✗ {error}[/red]")
    cause = error.__cause__
    while cause is not None:
        console.print(f"  [dim]caused by: {cause}[/dim]")
        cause = cause.__cause__
    sys.exit(1)


@click.group()
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--relay', help='Pkarr relay URL (overrides config)')
@click.option('--data-dir', type=click.Path(), help='Data directory')
@click.pass_context
def main(ctx, verbose, relay, data_dir):
    """Pubky - decentralized identities and homeservers"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    setup_logging(verbose)

    config = Config.load(Path(data_dir) if data_dir else None)
    if relay:
        config.relay_url = relay
    set_config(config)


@main.command()
@click.option('--homeserver', help='Default homeserver URL')
@click.option('--relay-url', help='Relay to save as default')
def init(homeserver: Optional[str], relay_url: Optional[str]):
    """Write a configuration file."""
    config = get_config()
    if homeserver:
        config.homeserver_url = homeserver
    if relay_url:
        config.relay_url = relay_url
    config.save()

    console.print(f"[green]✓ Configuration saved to {config.config_path}[/green]")

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    for key, value in config.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@main.command()
def keygen():
    """Generate a random seed and print its user id."""
    seed = generate_seed()
    with KeyPair.from_seed(seed) as keypair:
        user_id = keypair.to_z32()

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("Seed", f"[yellow]{seed.hex()}[/yellow]")
    table.add_row("User ID", f"[cyan]{user_id}[/cyan]")
    console.print(table)
    console.print("\n[dim]Keep the seed secret: it is the private key.[/dim]")


@main.command()
@click.argument('public_key')
def resolve(public_key: str):
    """Resolve a user's homeserver URL."""

    async def do_resolve():
        async with Client(get_config()) as client:
            return await client.resolve(public_key)

    try:
        url = run_async(do_resolve())
    except PubkyError as e:
        fail(e)
    console.print(f"[cyan]{public_key}[/cyan] -> [green]{url}[/green]")


@main.command()
@click.option('--seed', required=True, callback=parse_seed, help='Hex encoded 32-byte seed')
@click.option('--homeserver', required=True, help='Homeserver URL to publish')
def publish(seed: bytes, homeserver: str):
    """Publish the homeserver record for an identity."""

    async def do_publish():
        async with Client(get_config()) as client:
            with KeyPair.from_seed(seed) as keypair:
                await client.publish(keypair, homeserver)
                return keypair.to_z32()

    try:
        user_id = run_async(do_publish())
    except PubkyError as e:
        fail(e)
    console.print(f"[green]✓ Published {homeserver} for {user_id}[/green]")


@main.command()
@click.option('--seed', callback=parse_seed, help='Hex encoded 32-byte seed (random if omitted)')
@click.option('--homeserver', help='Homeserver URL (resolved if omitted)')
@click.option('--no-publish', is_flag=True, help='Do not republish the homeserver record')
def signup(seed: Optional[bytes], homeserver: Optional[str], no_publish: bool):
    """Sign up at a homeserver."""
    seed = seed or generate_seed()

    async def do_signup():
        async with Client(get_config()) as client:
            user_id = await client.signup(seed, homeserver, publish=not no_publish)
            return user_id, client.sessions[user_id]

    try:
        user_id, auth = run_async(do_signup())
    except PubkyError as e:
        fail(e)

    console.print("[bold green]✓ Signed up[/bold green]")
    _print_session(user_id, auth)


@main.command()
@click.option('--seed', required=True, callback=parse_seed, help='Hex encoded 32-byte seed')
@click.option('--homeserver', help='Homeserver URL (resolved if omitted)')
def login(seed: bytes, homeserver: Optional[str]):
    """Log in at a homeserver."""

    async def do_login():
        async with Client(get_config()) as client:
            user_id = await client.login(seed, homeserver)
            return user_id, client.sessions[user_id]

    try:
        user_id, auth = run_async(do_login())
    except PubkyError as e:
        fail(e)

    console.print("[bold green]✓ Logged in[/bold green]")
    _print_session(user_id, auth)


def _print_session(user_id: str, auth):
    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")
    table.add_row("User ID", f"[cyan]{user_id}[/cyan]")
    table.add_row("Homeserver", auth.homeserver_url or "[dim]unknown[/dim]")
    table.add_row("Session", auth.session_id or "[dim]none[/dim]")
    console.print(table)


@main.command()
@click.option('--host', default='127.0.0.1', help='Host to bind to')
@click.option('--port', default=15411, help='Port to bind to')
def relay(host: str, port: int):
    """Run a local pkarr relay (in-memory records)."""
    from .network.relay import RelayServer

    console.print("\n[bold blue]Starting pkarr relay[/bold blue]")
    console.print(f"   Listening on: http://{host}:{port}")
    console.print("   Press Ctrl+C to stop\n")

    async def serve():
        server = RelayServer(host=host, port=port)
        await server.start()
        try:
            await asyncio.Event().wait()
        finally:
            await server.stop()

    try:
        run_async(serve())
    except KeyboardInterrupt:
        console.print("\n[dim]Relay stopped[/dim]")


if __name__ == "__main__":
    main()
