"""Trade command - Submit automated BatchExchange trades."""

from typing import Optional

import typer
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn

from gelato_automation.api.cli.output_formatter import OutputFormat, OutputFormatter
from gelato_automation.api.cli.runtime import (
    cli_errors,
    create_factory,
    global_options,
    profile_of,
    run,
    to_base_units,
)
from gelato_automation.application.orchestrator import SubmissionResult
from gelato_automation.application.strategies import (
    BalanceTradeStrategy,
    KyberPriceTradeStrategy,
    PlaceOrderWithWithdrawStrategy,
    TaskStrategy,
    TimeTradeStrategy,
    TradeParams,
)

app = typer.Typer(help="Submit automated trades")
console = Console()

SELL_OPTION = typer.Option("dai", "--sell", help="Sell token symbol or address")
BUY_OPTION = typer.Option("weth", "--buy", help="Buy token symbol or address")
AMOUNT_OPTION = typer.Option("5", "--amount", "-a", help="Sell amount per order, in token units")
BUY_AMOUNT_OPTION = typer.Option("0", "--buy-amount", help="Minimum buy amount per order, in token units")
DECIMALS_OPTION = typer.Option(18, "--decimals", help="Decimals of sell and buy token")
SECONDS_OPTION = typer.Option(300, "--seconds", "-s", help="Seconds between trades/until withdraw (multiple of 300)")
DRY_RUN_OPTION = typer.Option(False, "--dry-run", help="Run all checks and compose the batch without sending")
FORMAT_OPTION = typer.Option(OutputFormat.TABLE, "--format", "-f", help="Output format")


def trade_params(
    ctx: typer.Context, sell: str, buy: str, amount: str, buy_amount: str, decimals: int, seconds: int
) -> TradeParams:
    factory = create_factory(ctx)
    profile = profile_of(ctx)
    return TradeParams(
        sell_token=factory.resolve_token(sell, profile),
        buy_token=factory.resolve_token(buy, profile),
        sell_amount=to_base_units(amount, decimals),
        buy_amount=to_base_units(buy_amount, decimals),
        seconds=seconds,
    )


def submit(ctx: typer.Context, strategy: TaskStrategy, dry_run: bool, output: OutputFormat) -> SubmissionResult:
    """Run the submission flow with a spinner and print the outcome."""
    debug = global_options(ctx).get("debug", False)

    with cli_errors():
        factory = create_factory(ctx)
        context = factory.create_context(profile_of(ctx))
        orchestrator = factory.create_orchestrator(context)

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task(f"[>] Submitting {strategy.name}...", total=None)

            def progress_callback(update):
                if debug:
                    progress.update(task, description=f"[>] {update.message}")
                else:
                    progress.update(task, description=f"[>] {update.stage.value}")

            result = run(orchestrator.submit(strategy, dry_run=dry_run, progress_callback=progress_callback))

    OutputFormatter.format_submission(result, output)
    if result.status == "submitted":
        console.print("[bold green]Task submission confirmed[/bold green]")
    elif result.status == "composed":
        console.print("[bold yellow]Dry run: batch composed, nothing sent[/bold yellow]")
    else:
        raise typer.Exit(1)
    return result


@app.command("time")
def trade_time(
    ctx: typer.Context,
    sell: str = SELL_OPTION,
    buy: str = BUY_OPTION,
    amount: str = AMOUNT_OPTION,
    buy_amount: str = BUY_AMOUNT_OPTION,
    decimals: int = DECIMALS_OPTION,
    seconds: int = SECONDS_OPTION,
    cycles: int = typer.Option(5, "--cycles", help="Number of repeated trades to pre-approve"),
    dry_run: bool = DRY_RUN_OPTION,
    output: OutputFormat = FORMAT_OPTION,
):
    """Sell AMOUNT every SECONDS on BatchExchange.

    Examples:
        gelato trade time --sell dai --buy weth --amount 5 --seconds 300
    """
    with cli_errors():
        params = trade_params(ctx, sell, buy, amount, buy_amount, decimals, seconds)
    submit(ctx, TimeTradeStrategy(params, cycles=cycles), dry_run, output)


@app.command("balance")
def trade_balance(
    ctx: typer.Context,
    increase: str = typer.Option(..., "--increase", help="Balance increase that triggers a sale, in token units"),
    sell: str = SELL_OPTION,
    buy: str = BUY_OPTION,
    amount: str = AMOUNT_OPTION,
    buy_amount: str = BUY_AMOUNT_OPTION,
    decimals: int = DECIMALS_OPTION,
    seconds: int = SECONDS_OPTION,
    cycles: int = typer.Option(5, "--cycles", help="Number of task cycles"),
    dry_run: bool = DRY_RUN_OPTION,
    output: OutputFormat = FORMAT_OPTION,
):
    """Sell AMOUNT whenever the sell token balance grew by INCREASE."""
    with cli_errors():
        params = trade_params(ctx, sell, buy, amount, buy_amount, decimals, seconds)
    strategy = BalanceTradeStrategy(params, increase_amount=to_base_units(increase, decimals), cycles=cycles)
    submit(ctx, strategy, dry_run, output)


@app.command("withdraw")
def trade_withdraw(
    ctx: typer.Context,
    sell: str = SELL_OPTION,
    buy: str = BUY_OPTION,
    amount: str = AMOUNT_OPTION,
    buy_amount: str = BUY_AMOUNT_OPTION,
    decimals: int = DECIMALS_OPTION,
    seconds: int = SECONDS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    output: OutputFormat = FORMAT_OPTION,
):
    """Place an order now and let Gelato withdraw the proceeds after SECONDS."""
    with cli_errors():
        params = trade_params(ctx, sell, buy, amount, buy_amount, decimals, seconds)
    submit(ctx, PlaceOrderWithWithdrawStrategy(params), dry_run, output)


@app.command("kyber")
def trade_kyber(
    ctx: typer.Context,
    price_difference: str = typer.Option(..., "--price-difference", help="Rate drop that triggers the sale (18 decimals)"),
    sell: str = SELL_OPTION,
    buy: str = BUY_OPTION,
    amount: str = AMOUNT_OPTION,
    decimals: int = DECIMALS_OPTION,
    seconds: int = SECONDS_OPTION,
    dry_run: bool = DRY_RUN_OPTION,
    output: OutputFormat = FORMAT_OPTION,
):
    """Market sell AMOUNT once the Kyber rate dropped by PRICE_DIFFERENCE, then withdraw."""
    with cli_errors():
        params = trade_params(ctx, sell, buy, amount, "0", decimals, seconds)
    strategy = KyberPriceTradeStrategy(params, price_difference=to_base_units(price_difference, 18))
    submit(ctx, strategy, dry_run, output)


def strategy_for(kind: str, params: TradeParams, cycles: Optional[int] = None) -> TaskStrategy:
    """Strategy without extra thresholds, used for eligibility checks."""
    if kind == "time":
        return TimeTradeStrategy(params, cycles=cycles or 5)
    if kind == "withdraw":
        return PlaceOrderWithWithdrawStrategy(params)
    raise typer.BadParameter(f"Unsupported strategy '{kind}', use 'time' or 'withdraw'")
