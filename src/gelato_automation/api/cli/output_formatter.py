"""
Output formatting for the CLI.
"""

from enum import Enum
from typing import Any

import yaml
from rich.console import Console
from rich.json import JSON
from rich.markup import escape
from rich.table import Table

from gelato_automation.application.orchestrator import SubmissionResult
from gelato_automation.core.domain.errors import GelatoAutomationError

console = Console()


class OutputFormat(str, Enum):
    """Available output formats."""
    TABLE = "table"
    JSON = "json"
    YAML = "yaml"


class OutputFormatter:
    """Handles formatting output in different formats."""

    @staticmethod
    def format_data(data: Any, format_type: OutputFormat = OutputFormat.TABLE, title: str = None) -> None:
        """Format and display data in the specified format."""
        if format_type == OutputFormat.JSON:
            console.print(JSON.from_data(data))
        elif format_type == OutputFormat.YAML:
            console.print(yaml.dump(data, default_flow_style=False, indent=2, sort_keys=False))
        else:
            OutputFormatter._format_table(data, title)

    @staticmethod
    def _format_table(data: Any, title: str = None) -> None:
        """Format data as a Rich table."""
        if isinstance(data, list) and len(data) > 0 and isinstance(data[0], dict):
            table = Table(title=title)
            for key in data[0].keys():
                table.add_column(key.replace('_', ' ').title(), style="cyan")
            for item in data:
                table.add_row(*[str(value) if value is not None else "" for value in item.values()])
            console.print(table)

        elif isinstance(data, dict):
            table = Table(title=title, show_header=False)
            table.add_column("Property", style="cyan")
            table.add_column("Value", style="white")
            for key, value in data.items():
                table.add_row(key.replace('_', ' ').title(), str(value) if value is not None else "")
            console.print(table)

        else:
            console.print(str(data))

    @staticmethod
    def print_error(error: Exception) -> None:
        """Print a typed error with its context."""
        if isinstance(error, GelatoAutomationError):
            console.print(f"[bold red]{type(error).__name__}:[/bold red] {escape(error.message)}")
            for key, value in error.context.items():
                if value is not None:
                    console.print(f"  [dim]{key}:[/dim] {escape(str(value))}")
        else:
            console.print(f"[bold red]Error:[/bold red] {escape(str(error))}")

    @staticmethod
    def submission_summary(result: SubmissionResult) -> dict:
        """Flatten a SubmissionResult for display."""
        summary = {
            "status": result.status,
            "strategy": result.strategy,
            "stage": result.stage.value,
            "proxy_address": result.proxy_address,
            "variant": result.variant.value if result.variant else None,
            "required_fee": result.required_fee,
            "approval_tx_hash": result.approval_tx_hash,
        }
        if result.receipt:
            summary["transaction_hash"] = result.receipt.transaction_hash
            summary["block_number"] = result.receipt.block_number
            summary["gas_used"] = result.receipt.gas_used
            summary["events"] = result.receipt.details.get("logs")
        if result.calldata is not None:
            summary["calldata_bytes"] = len(result.calldata)
        return summary

    @staticmethod
    def format_submission(result: SubmissionResult, format_type: OutputFormat = OutputFormat.TABLE) -> None:
        """Display a submission outcome with its batch."""
        summary = OutputFormatter.submission_summary(result)
        batch = [
            {
                "label": entry.label,
                "operation": entry.operation.name,
                "to": entry.to,
                "value": entry.value,
                "data_bytes": len(entry.data),
            }
            for entry in result.batch
        ]

        if format_type != OutputFormat.TABLE:
            data = {**summary, "batch": batch}
            if result.error:
                data["error"] = result.error.to_dict()
            OutputFormatter.format_data(data, format_type)
            return

        OutputFormatter._format_table(summary, title="Submission")
        if batch:
            OutputFormatter._format_table(batch, title="MultiSend Batch")
        if result.error:
            OutputFormatter.print_error(result.error)
