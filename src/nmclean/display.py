"""Rich terminal display for nmclean."""

import os

from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table
from rich.text import Text

from nmclean.deletion import generate_deletion_preview
from nmclean.models import AgeCategory, DeletionResult, NodeModulesEntry, SizeCategory
from nmclean.utils import calculate_statistics, format_bytes

console = Console()

SIZE_COLORS = {
    SizeCategory.HUGE: "red",
    SizeCategory.LARGE: "yellow",
    SizeCategory.MEDIUM: "cyan",
    SizeCategory.SMALL: "green",
}

AGE_COLORS = {
    AgeCategory.STALE: "bright_black",
    AgeCategory.OLD: "yellow",
    AgeCategory.RECENT: "cyan",
    AgeCategory.FRESH: "green",
}


def size_cell(entry: NodeModulesEntry) -> str:
    """Size column, colored by size category."""
    if entry.pending:
        return "[yellow](...)[/yellow]"
    color = SIZE_COLORS.get(entry.size_category, "white")
    warning = " [red]⚠[/red]" if entry.size_category == SizeCategory.HUGE else ""
    return f"[{color}]{entry.size_human}[/{color}]{warning}"


def age_cell(entry: NodeModulesEntry) -> str:
    color = AGE_COLORS.get(entry.age_category, "white")
    return f"[{color}]{entry.last_modified_human}[/{color}]"


def show_entries(
    entries: list[NodeModulesEntry],
    limit: int | None = 20,
    title: str = "node_modules by size",
) -> None:
    """Display entries as a table."""
    if not entries:
        console.print("[yellow]No node_modules found.[/yellow]")
        return

    shown = entries[:limit] if limit else entries

    table = Table(title=title, show_header=True, header_style="bold")
    table.add_column("", width=2)
    table.add_column("Project", style="bold")
    table.add_column("Size", justify="right")
    table.add_column("Packages", justify="right")
    table.add_column("Modified", justify="right")
    table.add_column("Path")

    for entry in shown:
        table.add_row(
            "[yellow]★[/yellow]" if entry.is_favorite else "",
            entry.project_name,
            size_cell(entry),
            "" if entry.pending else str(entry.package_count),
            age_cell(entry),
            entry.path,
        )

    console.print(table)

    if len(entries) > len(shown):
        console.print(f"[dim]... and {len(entries) - len(shown)} more[/dim]")


def show_statistics(entries: list[NodeModulesEntry]) -> None:
    """Display totals panel."""
    stats = calculate_statistics(entries)
    console.print(
        Panel(
            f"[bold]Total:[/bold] {format_bytes(stats.total_size_bytes)} "
            f"across {stats.total_projects} projects\n"
            f"  Stale (>90 days): {stats.stale_count}\n"
            f"  Average age: {stats.average_age_days} days",
            title="Summary",
            border_style="blue",
        )
    )


def show_quick_results(results: list[dict]) -> None:
    """Display unsized discovery results."""
    if not results:
        console.print("[yellow]No node_modules found.[/yellow]")
        return

    table = Table(title="node_modules (not sized)", show_header=True, header_style="bold")
    table.add_column("Project", style="bold")
    table.add_column("Path")
    table.add_column("Repository", style="dim")

    for item in results:
        table.add_row(item["project_name"], item["path"], item["repo_path"])

    console.print(table)
    console.print(f"\n[bold]{len(results)}[/bold] node_modules found")


def show_errors(errors: list[str]) -> None:
    if not errors:
        return
    console.print(f"[yellow]{len(errors)} warnings during scan:[/yellow]")
    for error in errors[:10]:
        console.print(f"  [dim]{error}[/dim]")
    if len(errors) > 10:
        console.print(f"  [dim]... and {len(errors) - 10} more[/dim]")


def show_deletion_preview(entries: list[NodeModulesEntry], dry_run: bool = False) -> None:
    """Display what is about to be deleted."""
    if dry_run:
        console.print("[yellow]DRY RUN - No files will be deleted[/yellow]\n")

    # Text keeps brackets in paths from being read as markup
    preview = Text(generate_deletion_preview(entries, cwd=os.getcwd()))
    console.print(Panel(preview, title="Deletion Preview", border_style="yellow"))


def show_remaining(entries: list[NodeModulesEntry]) -> None:
    """One-line summary of what is left after a cleanup."""
    total = sum(e.size_bytes for e in entries)
    console.print(f"[dim]{len(entries)} node_modules remaining ({format_bytes(total)})[/dim]")


def show_deletion_result(result: DeletionResult, dry_run: bool = False) -> None:
    """Display deletion summary."""
    for detail in result.details:
        if detail.success:
            console.print(f"  [green]✓[/green] {detail.entry.path}")
        else:
            console.print(f"  [red]✗[/red] {detail.entry.path}: {detail.error}")

    console.print()
    title = "Dry Run Complete" if dry_run else "Cleanup Complete!"
    console.print(f"[bold green]{title}[/bold green]")

    table = Table(show_header=False)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Would free" if dry_run else "Space freed", result.bytes_freed_human)
    table.add_row("Deleted", f"{result.successful}/{result.total_attempted}")
    if result.failed:
        table.add_row("[red]Failed[/red]", str(result.failed))
    console.print(table)


def show_scanning_progress() -> Progress:
    """Create progress bar for scanning."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
        TimeElapsedColumn(),
        console=console,
    )


def show_deletion_progress() -> Progress:
    """Create progress bar for deletion."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.completed}/{task.total}"),
        TimeElapsedColumn(),
        console=console,
    )


def confirm_action(message: str) -> bool:
    """Ask for confirmation."""
    from rich.prompt import Confirm

    return Confirm.ask(message)
