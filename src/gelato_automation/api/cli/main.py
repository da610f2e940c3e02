"""Gelato automation CLI entry point."""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from gelato_automation.api.cli.commands import abi, provider, proxy, safe, trade
from gelato_automation.api.cli.runtime import configure_logging
from gelato_automation.application.settings import GelatoSettings

app = typer.Typer(
    name="gelato",
    help="Gelato automation - submit conditional tasks from your Gnosis Safe proxy",
    add_completion=True,
    no_args_is_help=True,
    rich_markup_mode="rich",
)

console = Console()

# Register command groups
app.add_typer(proxy.app, name="proxy", help="Proxy address derivation")
app.add_typer(safe.app, name="safe", help="Gnosis Safe proxy state")
app.add_typer(provider.app, name="provider", help="Provider and fee eligibility")
app.add_typer(abi.app, name="abi", help="Calldata encoding")
app.add_typer(trade.app, name="trade", help="Submit automated trades")


@app.callback()
def main(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="Network profile (default: GELATO_PROFILE)"),
    config_dir: Optional[str] = typer.Option(None, "--config-dir", help="Directory of network profile YAML files"),
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="Settings YAML file (keys as in GELATO_* variables)"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug logging"),
):
    """Gelato automation CLI."""
    settings = GelatoSettings.load_from_file(config) if config else GelatoSettings()
    configure_logging(debug, settings.log_level)
    # Store global options in context for subcommands
    ctx.obj = {
        "profile": profile,
        "config_dir": config_dir,
        "debug": debug,
        "settings": settings,
    }


@app.command()
def version():
    """Show gelato-automation version."""
    from gelato_automation import __version__

    console.print(f"[bold blue]gelato-automation[/bold blue] version [cyan]{__version__}[/cyan]")


if __name__ == "__main__":
    app()
