"""Proxy command - Derive the counterfactual CPK proxy address."""

from typing import Optional

import typer
from rich.console import Console

from gelato_automation.api.cli.runtime import cli_errors, create_factory, profile_of, run

app = typer.Typer(help="Proxy address derivation")
console = Console()


@app.command("address")
def proxy_address(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User address (default: GELATO_USER_PK account)"),
):
    """Print the address the CPK factory deploys the user's Safe proxy to.

    The address is known before deployment; the proxy may not exist yet.
    """
    with cli_errors():
        factory = create_factory(ctx)
        context = factory.create_context(profile_of(ctx), read_only=user is not None)
        orchestrator = factory.create_orchestrator(context)
        address = run(orchestrator.derive_proxy_address(user))

    console.print(f"[bold]Proxy address:[/bold] [cyan]{address}[/cyan]")
