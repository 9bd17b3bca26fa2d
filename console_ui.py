#!/usr/bin/env python3
"""
Console UI Module using Rich

Presentation layer for Ultra Cleaner: styled messages, per-target result
lines, the final results panel and interactive prompts. The cleanup core
never prints; it returns results that are rendered here.
"""

from typing import Any, Optional

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from auxiliary import format_bytes, format_path_for_display
from cleaner import OperationResult, RunReport
from cleanup_paths import CleanupTarget

AREA_TITLES = {
    "system": "System Temp Files",
    "user": "User Data Cache",
    "browsers": "Browser Cache",
    "apps": "Application Cache",
    "npm": "NPM Cache",
    "logs": "Log Files",
}

SKIP_MESSAGES = {
    "missing": "Not found",
    "empty": "Empty",
    "excluded": "Excluded",
    "cancelled": "Cancelled",
}


class ConsoleUI:
    """Console UI handler using Rich"""

    def __init__(self, no_color: bool = False, force_terminal: Optional[bool] = None):
        """Initialize console, optionally without colors"""
        self.console = Console(force_terminal=force_terminal, no_color=no_color, highlight=False)

    # Basic styled output methods
    def print_success(self, message: str):
        """Print success message in green"""
        self.console.print(message, style="green")

    def print_error(self, message: str):
        """Print error message in red"""
        self.console.print(message, style="red bold")

    def print_warning(self, message: str):
        """Print warning message in yellow"""
        self.console.print(message, style="yellow")

    def print_info(self, message: str):
        """Print info message in cyan"""
        self.console.print(message, style="cyan")

    def print_plain(self, message: str):
        """Print message in plain white"""
        self.console.print(message, style="white")

    def print_header(self, title: str, subtitle: Optional[str] = None):
        """Print a header with optional subtitle"""
        if subtitle:
            header_text = f"[bold]{title}[/bold]\n[dim]{subtitle}[/dim]"
        else:
            header_text = f"[bold]{title}[/bold]"

        panel = Panel(header_text, box=box.ROUNDED, padding=(0, 1))
        self.console.print(panel)

    # Configuration display
    def show_configuration(self, config: dict[str, Any]):
        """Display configuration in a formatted table"""
        table = Table(show_header=False, box=box.SIMPLE)
        table.add_column("Setting", style="cyan dim", min_width=20, justify="right")
        table.add_column("Value", style="cyan", min_width=30)

        for key, value in config.items():
            if isinstance(value, list):
                value = ", ".join(str(v) for v in value)
            table.add_row(key, str(value))

        self.console.print(table)

    # Cleanup output
    def show_area_header(self, area: str):
        self.console.print(f"\n[bold magenta]{AREA_TITLES.get(area, area).upper()}[/bold magenta]")

    def show_target_result(self, target: CleanupTarget, result: OperationResult, dry_run: bool = False):
        """One line per processed target"""
        if result.skipped:
            self.console.print(f"  [dim]{SKIP_MESSAGES.get(result.skipped, result.skipped)}: {target.label}[/dim]")
            return

        amount = f"{result.file_count:,} files, {format_bytes(result.bytes_freed)}"
        if not result.success:
            self.console.print(f"  [yellow]Partial cleanup: {target.label} - {result.error}[/yellow]")
            if result.bytes_freed:
                self.console.print(f"  [dim]  {amount} freed before the error[/dim]")
        elif dry_run:
            self.console.print(f"  [yellow][DRY RUN][/yellow] {target.label}: {amount}")
        else:
            self.console.print(f"  [green]{target.label}[/green]: {amount} freed")

    def show_results(self, report: RunReport, dry_run: bool = False):
        """Final results panel"""
        stats = report.stats
        duration = max(stats.duration, 0.001)
        speed = stats.total_cleaned / (1024 * 1024) / duration

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Metric", style="white")
        table.add_column("Value", style="cyan")
        table.add_row("Duration", f"{stats.duration:.1f} seconds")
        table.add_row("Files processed", f"{stats.total_files:,}")
        table.add_row("Data processed", format_bytes(stats.total_cleaned))
        table.add_row("Areas cleaned", str(stats.areas_processed))
        table.add_row("Speed", f"{speed:.1f} MB/s")
        if stats.errors:
            table.add_row("Errors", f"[red]{stats.errors}[/red]")

        if report.cancelled:
            title, style = "Cleanup interrupted", "yellow"
        elif dry_run:
            title, style = "Dry run complete - nothing was deleted", "yellow"
        else:
            title, style = "Cleanup completed", "green"

        self.console.print()
        self.console.print(Panel(table, title=f"[bold]{title}[/bold]", border_style=style, box=box.DOUBLE))

        backups = [r.backup_id for _t, r in report.results if r.backup_id]
        if backups:
            self.print_info(f"{len(backups)} backups created; restore one with --restore <id>")

    def show_backup_list(self, records: list):
        if not records:
            self.print_info("No backups available.")
            return
        table = Table(title="Backups", box=box.ROUNDED)
        table.add_column("Id", style="cyan")
        table.add_column("Original path")
        table.add_column("Kind", style="dim")
        table.add_column("Size", justify="right", style="yellow")
        for record in records:
            table.add_row(
                record.id, format_path_for_display(record.original_path), record.kind.value, format_bytes(record.size_bytes)
            )
        self.console.print(table)

    # Interactive prompts
    def confirm(self, question: str, default: bool = False) -> bool:
        """Ask for yes/no confirmation"""
        return Confirm.ask(question, default=default, console=self.console)

    def prompt(self, question: str, default: Optional[str] = None, choices: Optional[list[str]] = None) -> str:
        """Ask for text input with optional default and choices"""
        return Prompt.ask(question, default=default, choices=choices, console=self.console)

    def select_from_list(self, items: list[str], title: str = "Select items") -> list[str]:
        """Allow user to select multiple items from a list"""
        if not items:
            return []

        self.console.print(f"\n[cyan]{title}:[/cyan]")
        for i, item in enumerate(items, 1):
            self.console.print(f"  {i}. {item}")

        while True:
            response = self.prompt(
                "Enter numbers separated by commas (e.g., 1,3,5) or 'all' for all items", default="all"
            )

            if response.lower() == "all":
                return items.copy()

            try:
                indices = [int(x.strip()) - 1 for x in response.split(",")]
                selected = [items[i] for i in indices if 0 <= i < len(items)]
                return selected
            except (ValueError, IndexError):
                self.print_error("Invalid selection. Please try again.")
