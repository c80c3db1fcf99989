"""
Console output for ``dtsli get-sli`` built on rich.

Honors NO_COLOR and FORCE_COLOR. Logs go to stderr, so everything printed
here is the human-readable result of the run.
"""

from __future__ import annotations

import os
from typing import Mapping, Sequence

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.theme import Theme

from dtsli.slos.models import SLIResult

DTSLI_THEME = Theme(
    {
        "ok": "#A3BE8C",
        "failed": "#BF616A bold",
        "warning": "#EBCB8B",
        "label": "#88C0D0",
        "muted": "#D8DEE9",
    }
)

console = Console(
    theme=DTSLI_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def success(message: str) -> None:
    console.print(f"[ok]✓ {message}[/ok]")


def warning(message: str) -> None:
    console.print(f"[warning]⚠ {message}[/warning]")


def header(project: str, stage: str, service: str) -> None:
    """Panel naming the service under evaluation."""
    console.print()
    console.print(
        Panel(f"[bold]SLIs for {project}/{stage}/{service}[/bold]", border_style="label")
    )


def print_labels(labels: Mapping[str, str]) -> None:
    if not labels:
        return
    console.print("\n[bold]Labels[/bold]")
    for key, value in sorted(labels.items()):
        console.print(f"  [label]{key}:[/label] {value}")


def print_results(results: Sequence[SLIResult]) -> None:
    """Table of indicator values, failures with their message."""
    table = Table(title="SLI Results")
    table.add_column("Indicator")
    table.add_column("Value", justify="right")
    table.add_column("Status")
    table.add_column("Message", style="muted", overflow="fold")

    for result in sorted(results, key=lambda r: r.metric):
        if result.success:
            table.add_row(result.metric, f"{result.value:.4f}", "[ok]ok[/ok]", "")
        else:
            table.add_row(result.metric, "-", "[failed]failed[/failed]", result.message)

    console.print(table)
