"""Provider command - Check provider whitelisting and fee eligibility."""

from typing import Optional

import typer
from rich.console import Console

from gelato_automation.api.cli.commands.trade import (
    AMOUNT_OPTION,
    BUY_OPTION,
    DECIMALS_OPTION,
    SECONDS_OPTION,
    SELL_OPTION,
    strategy_for,
    trade_params,
)
from gelato_automation.api.cli.output_formatter import OutputFormatter
from gelato_automation.api.cli.runtime import cli_errors, create_factory, profile_of, run, to_base_units
from gelato_automation.application.orchestrator import SubmissionStage
from gelato_automation.core.domain.errors import NotProvidedError

app = typer.Typer(help="Provider and fee eligibility")
console = Console()


@app.command("check")
def provider_check(
    ctx: typer.Context,
    strategy: str = typer.Option("time", "--strategy", help="Task shape to check: time or withdraw"),
    spec: Optional[str] = typer.Option(None, "--spec", help="Named task spec from the profile's task_specs"),
    sell: str = SELL_OPTION,
    buy: str = BUY_OPTION,
    amount: str = AMOUNT_OPTION,
    decimals: int = DECIMALS_OPTION,
    seconds: int = SECONDS_OPTION,
):
    """Check that the default provider has whitelisted the task spec.

    Runs every pre-flight check of the submission without sending anything.
    With --spec, only the named task spec of the profile is checked.
    """
    if spec:
        check_named_spec(ctx, spec)
        return

    with cli_errors():
        params = trade_params(ctx, sell, buy, amount, "0", decimals, seconds)
        factory = create_factory(ctx)
        context = factory.create_context(profile_of(ctx))
        orchestrator = factory.create_orchestrator(context)
        result = run(orchestrator.submit(strategy_for(strategy, params), dry_run=True))

    provider = context.default_provider().addr
    if result.ok:
        console.print(f"[green]Task spec is provided by {provider}[/green]")
        return

    if result.stage == SubmissionStage.CHECK_ELIGIBILITY:
        console.print(f"[red]Task spec is NOT provided by {provider}[/red]")
    OutputFormatter.print_error(result.error)
    raise typer.Exit(1)


@app.command("fee")
def provider_fee(
    ctx: typer.Context,
    token: str = typer.Argument("dai", help="Fee token symbol or address"),
    amount: str = AMOUNT_OPTION,
    decimals: int = DECIMALS_OPTION,
):
    """Show the fee charged in TOKEN and whether AMOUNT covers it."""
    with cli_errors():
        factory = create_factory(ctx)
        profile = profile_of(ctx)
        context = factory.create_context(profile, read_only=True)
        orchestrator = factory.create_orchestrator(context)
        required_fee = run(
            orchestrator.eligibility.check_fee_eligibility(
                factory.resolve_token(token, profile), to_base_units(amount, decimals)
            )
        )

    console.print(f"[green]Required fee:[/green] {required_fee} base units, sell amount {amount} is sufficient")


def check_named_spec(ctx: typer.Context, name: str) -> None:
    with cli_errors():
        factory = create_factory(ctx)
        context = factory.create_context(profile_of(ctx), read_only=True)
        orchestrator = factory.create_orchestrator(context)
        provider = context.default_provider().addr
        try:
            spec_hash = run(orchestrator.eligibility.check_provided(name, provider))
        except NotProvidedError:
            console.print(f"[red]Task spec '{name}' is NOT provided by {provider}[/red]")
            raise

    console.print(f"[green]Task spec '{name}' is provided by {provider}[/green] (hash 0x{spec_hash.hex()})")
