"""Shared plumbing for CLI commands: logging, factory wiring, error exit."""

import asyncio
import logging
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Any, Coroutine, Iterator

import structlog
import typer

from gelato_automation.api.cli.output_formatter import OutputFormatter
from gelato_automation.application.factory import ContextFactory
from gelato_automation.application.settings import GelatoSettings
from gelato_automation.core.domain.errors import GelatoAutomationError


def configure_logging(debug: bool, level: str = "WARNING") -> None:
    """Route structlog through a filtering logger (DEBUG with --debug)."""
    log_level = logging.DEBUG if debug else logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.WARNING
    logging.basicConfig(level=log_level, format="%(message)s")
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(log_level))


def global_options(ctx: typer.Context) -> dict:
    return ctx.obj or {}


def create_factory(ctx: typer.Context) -> ContextFactory:
    options = global_options(ctx)
    settings = options.get("settings") or GelatoSettings()
    return ContextFactory(settings=settings, config_dir=options.get("config_dir"))


def profile_of(ctx: typer.Context) -> str | None:
    return global_options(ctx).get("profile")


def run(coroutine: Coroutine[Any, Any, Any]) -> Any:
    return asyncio.run(coroutine)


@contextmanager
def cli_errors() -> Iterator[None]:
    """Print typed and configuration errors and exit with code 1."""
    try:
        yield
    except (GelatoAutomationError, FileNotFoundError, ValueError, KeyError) as e:
        OutputFormatter.print_error(e)
        raise typer.Exit(1)


def to_base_units(amount: str, decimals: int) -> int:
    """
    Convert a human token amount ("5", "0.25") into integer base units.

    Raises:
        typer.BadParameter: If the amount is not a non-negative number with at
            most ``decimals`` fractional digits
    """
    try:
        value = Decimal(amount) * (Decimal(10) ** decimals)
    except InvalidOperation:
        raise typer.BadParameter(f"Not a number: {amount}")
    if value < 0 or value != value.to_integral_value():
        raise typer.BadParameter(f"Amount {amount} is not representable with {decimals} decimals")
    return int(value)
