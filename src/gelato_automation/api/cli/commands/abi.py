"""ABI command - List bundled interfaces and encode calldata."""

import json
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from gelato_automation.api.cli.runtime import cli_errors
from gelato_automation.core.domain.calldata import function_signature
from gelato_automation.infrastructure.abi_registry import AbiRegistry

app = typer.Typer(help="Calldata encoding")
console = Console()


def parse_argument(raw: str):
    """JSON values (numbers, booleans, arrays for structs) are decoded, anything else stays a string."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


@app.command("list")
def list_contracts():
    """List bundled contract interfaces and their functions."""
    registry = AbiRegistry()

    table = Table(title="Bundled ABIs")
    table.add_column("Contract", style="cyan")
    table.add_column("Functions", style="white")

    for name in registry.available():
        functions = [
            function_signature(entry)
            for entry in registry.get(name)
            if entry.get("type", "function") == "function"
        ]
        table.add_row(name, "\n".join(functions))

    console.print(table)


@app.command("encode")
def encode(
    contract: str = typer.Argument(..., help="Contract interface name, e.g. GnosisSafe"),
    function: str = typer.Argument(..., help="Function name, e.g. enableModule"),
    args: List[str] = typer.Argument(None, help="Arguments; JSON literals are decoded"),
):
    """Encode selector-prefixed calldata for CONTRACT.FUNCTION(ARGS...).

    Examples:
        gelato abi encode GnosisSafe enableModule 0xe2f32a922dcd4a960be4f7f7624d42ca583f8ecc
        gelato abi encode ERC20 approve 0x29caa04fa05a046a05c85a50e8f2af8cf9a05bac 1000
    """
    with cli_errors():
        calldata = AbiRegistry().encode(contract, function, [parse_argument(a) for a in args or []])

    console.print("0x" + calldata.hex(), soft_wrap=True)
