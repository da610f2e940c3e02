"""Safe command - Inspect the user's Gnosis Safe proxy."""

from typing import Optional

import typer
from rich.console import Console

from gelato_automation.api.cli.runtime import cli_errors, create_factory, profile_of, run

app = typer.Typer(help="Gnosis Safe proxy state")
console = Console()


@app.command("deployed")
def safe_deployed(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User address (default: GELATO_USER_PK account)"),
):
    """Check whether the user's proxy is deployed."""
    with cli_errors():
        factory = create_factory(ctx)
        context = factory.create_context(profile_of(ctx), read_only=user is not None)
        orchestrator = factory.create_orchestrator(context)

        async def inspect():
            address = await orchestrator.derive_proxy_address(user)
            return address, await orchestrator.inspector.is_deployed(address)

        address, deployed = run(inspect())

    if deployed:
        console.print(f"[green]Proxy {address} is deployed[/green]")
    else:
        console.print(f"[yellow]Proxy {address} is not deployed yet[/yellow]")


@app.command("module-enabled")
def safe_module_enabled(
    ctx: typer.Context,
    user: Optional[str] = typer.Option(None, "--user", "-u", help="User address (default: GELATO_USER_PK account)"),
    module: Optional[str] = typer.Option(None, "--module", "-m", help="Module address (default: GelatoCore)"),
):
    """Check whether a module (GelatoCore by default) is enabled on the proxy."""
    with cli_errors():
        factory = create_factory(ctx)
        context = factory.create_context(profile_of(ctx), read_only=user is not None)
        orchestrator = factory.create_orchestrator(context)
        module = module or context.address_book.gelato_core

        async def inspect():
            address = await orchestrator.derive_proxy_address(user)
            return address, await orchestrator.inspector.is_module_enabled(address, module)

        address, enabled = run(inspect())

    if enabled:
        console.print(f"[green]Module {module} is enabled on {address}[/green]")
    else:
        console.print(f"[yellow]Module {module} is NOT enabled on {address}[/yellow]")
