"""CLI for CompoundChat - run and inspect the wallet bot from the terminal."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from compound_chat.masking import RedactingFilter

app = typer.Typer(
    name="compound-chat",
    help="Custodial wallet bot: supply, withdraw and send through text commands.",
    no_args_is_help=True,
)
console = Console()

_base_dir: Path | None = None
_log_level = "WARNING"


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"compound-chat {version('compound-chat')}")
        raise typer.Exit()


def _configure_logging(level: str) -> None:
    handler = RichHandler(console=Console(stderr=True), rich_tracebacks=True, show_path=False)
    handler.addFilter(RedactingFilter())
    logging.basicConfig(level=level.upper(), format="%(message)s", handlers=[handler], force=True)


def _resolve_log_level(directory: Path | None, option: str | None) -> str:
    """``--log-level`` wins, then ``logging.level`` from the config, then WARNING.

    An unreadable config falls back to WARNING here; the command itself
    reports the problem when it loads the config.
    """
    if option:
        return option.upper()
    import yaml

    from compound_chat.config import get_data_dir, load_config

    config_path = get_data_dir(directory, create=False) / "config.yaml"
    if not config_path.exists():
        return "WARNING"
    try:
        return load_config(config_path).logging.level.upper()
    except (OSError, ValueError, yaml.YAMLError):
        return "WARNING"


@app.callback()
def main(
    directory: Path = typer.Option(
        None,
        "--dir",
        "-d",
        help="Directory containing .compound-chat/ (defaults to the current directory)",
        envvar="COMPOUND_CHAT_DIR",
    ),
    log_level: str = typer.Option(
        None, "--log-level", "-l", help="Logging level (defaults to logging.level in the config)"
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Custodial wallet bot: supply, withdraw and send through text commands."""
    global _base_dir, _log_level
    _base_dir = directory
    _log_level = _resolve_log_level(directory, log_level)
    _configure_logging(_log_level)


def _run(coro):
    """Run an async function synchronously."""
    return asyncio.run(coro)


async def _load_bot():
    from compound_chat.bot import Bot
    from compound_chat.errors import ConfigError

    try:
        return await Bot.load(_base_dir)
    except (FileNotFoundError, ConfigError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)


# ------------------------------------------------------------------
# init
# ------------------------------------------------------------------


@app.command()
def init(
    network: str = typer.Option("sepolia", "--network", "-n", help="Network name (sepolia, ethereum)"),
    rpc_url: str = typer.Option(None, "--rpc-url", help="JSON-RPC endpoint (defaults per network)"),
    force: bool = typer.Option(False, "--force", help="Overwrite an existing config"),
):
    """Write a config to .compound-chat/config.yaml and print a fresh master key."""
    from compound_chat.chain.networks import list_network_names
    from compound_chat.config import (
        MASTER_KEY_ENV,
        BotConfig,
        ChainConfig,
        generate_master_key,
        get_data_dir,
        save_config,
    )

    if network not in list_network_names():
        console.print(f"[red]Unknown network '{network}'.[/red] Available: {list_network_names()}")
        raise typer.Exit(1)

    config_path = get_data_dir(_base_dir) / "config.yaml"
    if config_path.exists() and not force:
        console.print(f"[yellow]Config already exists at {config_path}.[/yellow] Use --force to overwrite.")
        raise typer.Exit(1)

    config = BotConfig(chain=ChainConfig(network=network, rpc_url=rpc_url))
    save_config(config, config_path)

    console.print(Panel(
        f"[bold green]Config written to {config_path}[/bold green]\n\n"
        f"Export the master encryption key before starting the bot:\n\n"
        f"  [cyan]export {MASTER_KEY_ENV}={generate_master_key()}[/cyan]\n\n"
        f"[dim]The key is not stored anywhere. Losing it makes every stored\n"
        f"wallet undecryptable.[/dim]",
        title="CompoundChat",
    ))


# ------------------------------------------------------------------
# chat
# ------------------------------------------------------------------


@app.command()
def chat(
    account: str = typer.Option(..., "--account", "-a", help="Account id to chat as (e.g. +254712345678)"),
):
    """Talk to the bot locally, as the given account."""

    async def _chat():
        bot = await _load_bot()
        bot.start()
        console.print(f"[bold]CompoundChat on {bot.network.display_name}[/bold]")
        console.print("[dim]Type 'exit' to end the conversation.[/dim]\n")

        try:
            while True:
                try:
                    user_input = await asyncio.to_thread(console.input, "[bold blue]You>[/bold blue] ")
                except (EOFError, KeyboardInterrupt):
                    break

                if user_input.strip().lower() in ("exit", "quit", "bye"):
                    break
                if not user_input.strip():
                    continue

                with console.status("Working..."):
                    reply = await bot.handle_message(account, user_input)

                console.print(f"[bold green]Bot>[/bold green] {reply}\n")
        finally:
            await bot.shutdown()
        console.print("[dim]Chat ended.[/dim]")

    _run(_chat())


# ------------------------------------------------------------------
# serve
# ------------------------------------------------------------------


@app.command()
def serve(
    port: int = typer.Option(None, "--port", "-p", help="Port to serve on (defaults to config)"),
    host: str = typer.Option(None, "--host", help="Host to bind to (defaults to config)"),
):
    """Serve the message endpoint for a transport adapter."""
    from compound_chat.config import get_data_dir, load_config
    from compound_chat.server import run_server

    config_path = get_data_dir(_base_dir, create=False) / "config.yaml"
    if not config_path.exists():
        console.print("[red]No config found.[/red] Run 'compound-chat init' first.")
        raise typer.Exit(1)
    config = load_config(config_path)
    host = host or config.server.host
    port = port or config.server.port

    console.print(f"[bold green]Serving at http://{host}:{port}[/bold green]")
    run_server(host=host, port=port, base_path=_base_dir, log_level=_log_level)


# ------------------------------------------------------------------
# networks
# ------------------------------------------------------------------


@app.command()
def networks():
    """List the bundled networks and their lending markets."""
    from compound_chat.chain.networks import NETWORKS

    table = Table(title="Networks")
    table.add_column("Name", style="cyan")
    table.add_column("Chain ID", justify="right")
    table.add_column("Market")
    table.add_column("Tokens")

    for net in NETWORKS.values():
        table.add_row(net.name, str(net.chain_id), net.market_address, ", ".join(net.tokens))
    console.print(table)


# ------------------------------------------------------------------
# wallet sub-commands
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Inspect stored wallets.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("address")
def wallet_address(
    account: str = typer.Option(..., "--account", "-a", help="Account id"),
):
    """Show the wallet address stored for an account."""

    async def _address():
        bot = await _load_bot()
        record = await bot.custody.get(account)
        await bot.shutdown()
        return record.address if record else None, bot.network

    addr, net = _run(_address())
    if addr is None:
        console.print("[yellow]No wallet found for that account.[/yellow]")
        raise typer.Exit(1)

    console.print(Panel(
        f"[cyan]{addr}[/cyan]\n\n[dim]{net.address_url(addr)}[/dim]",
        title="Wallet Address",
    ))


@wallet_app.command("history")
def wallet_history(
    account: str = typer.Option(..., "--account", "-a", help="Account id"),
    limit: int = typer.Option(10, "--limit", "-n", help="Number of transactions to show"),
):
    """Show recent confirmed transactions for an account."""

    async def _history():
        bot = await _load_bot()
        records = await bot.custody.store.list_transactions(account, limit=limit)
        await bot.shutdown()
        return records, bot.network

    records, net = _run(_history())
    if not records:
        console.print("[dim]No transactions yet.[/dim]")
        return

    table = Table(title="Transactions")
    table.add_column("When", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Amount", justify="right")
    table.add_column("Token")
    table.add_column("Tx")

    for r in records:
        table.add_row(
            r.created_at.strftime("%Y-%m-%d %H:%M"),
            r.kind.value,
            r.amount,
            r.token,
            net.tx_url(r.tx_hash),
        )
    console.print(table)


if __name__ == "__main__":
    app()
