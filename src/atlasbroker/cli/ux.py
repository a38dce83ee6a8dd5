"""
CLI output helpers built on rich.

Respects NO_COLOR and FORCE_COLOR, and stays plain when stdout is not a TTY.
"""

from __future__ import annotations

import os
from typing import Any

import yaml
from rich.console import Console
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table
from rich.theme import Theme

BROKER_THEME = Theme(
    {
        "info": "#88C0D0",
        "success": "#A3BE8C",
    }
)

console = Console(
    theme=BROKER_THEME,
    force_terminal=os.environ.get("FORCE_COLOR") is not None,
    no_color=os.environ.get("NO_COLOR") is not None,
)


def success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]✓ {message}[/success]")


def info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]ℹ {message}[/info]")


def header(title: str) -> None:
    """Print a section header."""
    console.print()
    console.print(Panel(f"[bold]{title}[/bold]", border_style="cyan"))


def print_table(
    title: str,
    columns: list[str],
    rows: list[list[str]],
    show_header: bool = True,
) -> None:
    """Print a formatted table."""
    table = Table(title=title, show_header=show_header)

    for col in columns:
        table.add_column(col)

    for row in rows:
        table.add_row(*row)

    console.print(table)


def print_key_value(items: dict[str, str], title: str | None = None) -> None:
    """Print key-value pairs in a nice format."""
    if title:
        console.print(f"\n[bold]{title}[/bold]")

    for key, value in items.items():
        console.print(f"  [cyan]{key}:[/cyan] {value}")


def print_document(document: dict[str, Any]) -> None:
    """Print a document as highlighted YAML."""
    text = yaml.safe_dump(document, sort_keys=False, default_flow_style=False)
    console.print(Syntax(text, "yaml", background_color="default"))
