"""Rich console output for the hed-lsp CLI."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from hed_lsp.validation.validation_types import Diagnostic

console = Console()
err_console = Console(stderr=True)

SEVERITY_STYLES = {"error": "bold red", "warning": "yellow", "information": "cyan"}


def print_error(message: str, hint: str | None = None) -> None:
    err_console.print(f"[bold red]Error:[/] {message}")
    if hint:
        err_console.print(f"[dim]Hint: {hint}[/]")


def print_success(message: str) -> None:
    console.print(f"[green]✓[/] {message}")


def print_info(message: str) -> None:
    console.print(f"[dim]{message}[/]")


def diagnostics_to_json(results: dict[str, list[Diagnostic]]) -> str:
    payload = [
        {"file": path, "diagnostics": [d.to_dict() for d in diagnostics]} for path, diagnostics in results.items()
    ]
    return json.dumps(payload, indent=2)


def print_diagnostics(results: dict[str, list[Diagnostic]], output_format: str = "text") -> None:
    """Print diagnostics per file.

    Args:
        results: File path -> diagnostics
        output_format: "text" (tables) or "json"
    """
    if output_format == "json":
        print(diagnostics_to_json(results))
        return

    for path, diagnostics in results.items():
        if not diagnostics:
            print_success(f"{path}: no problems")
            continue
        table = Table(title=path, title_justify="left", show_lines=False)
        table.add_column("Line:Col", style="dim", no_wrap=True)
        table.add_column("Severity", no_wrap=True)
        table.add_column("Code", style="bold")
        table.add_column("Message")
        for d in diagnostics:
            start = d.range.start
            style = SEVERITY_STYLES.get(d.severity, "")
            table.add_row(
                f"{start.line + 1}:{start.character + 1}",
                f"[{style}]{d.severity}[/]" if style else d.severity,
                d.code or "",
                d.message,
            )
        console.print(table)


def print_settings(settings: dict[str, Any]) -> None:
    table = Table(show_header=False, box=None)
    table.add_column("Option", style="bold")
    table.add_column("Value")
    for key, value in settings.items():
        table.add_row(key, "[dim]not set[/]" if value is None else str(value))
    console.print(table)
