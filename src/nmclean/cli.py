"""CLI interface for nmclean."""

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from nmclean import __version__
from nmclean.config import Config, load_favorites, load_ignore_patterns
from nmclean.deletion import (
    delete_selected_node_modules,
    generate_json_report,
    remove_deleted_entries,
)
from nmclean.display import (
    confirm_action,
    console,
    show_deletion_preview,
    show_deletion_progress,
    show_deletion_result,
    show_entries,
    show_errors,
    show_quick_results,
    show_remaining,
    show_scanning_progress,
    show_statistics,
)
from nmclean.errors import ScanError
from nmclean.models import DeleteOptions, NodeModulesEntry, ScanOptions, ScanOutcome, SortOption
from nmclean.scanner import calculate_pending_sizes, quick_scan, scan_for_node_modules
from nmclean.selection import (
    get_selected,
    select_all,
    select_by_age,
    select_by_predicate,
    select_by_size,
)
from nmclean.utils import filter_entries, parse_size, sort_by_cleanup_priority, sort_entries

app = typer.Typer(
    name="nmclean",
    help="Find and clean up node_modules directories",
    add_completion=False,
)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"nmclean version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: int = typer.Option(
        0,
        "--verbose",
        "-V",
        count=True,
        help="Increase log verbosity (-V info, -VV debug).",
    ),
) -> None:
    """nmclean - find node_modules and reclaim disk space."""
    _setup_logging(verbose)


def _run_scan(options: ScanOptions, lazy: bool, quiet: bool) -> ScanOutcome:
    """Scan with a progress bar, resolving lazy sizes afterwards."""
    if quiet:
        outcome = scan_for_node_modules(options, lazy=lazy)
        if lazy:
            outcome.entries = calculate_pending_sizes(outcome.entries)
        return outcome

    with show_scanning_progress() as progress:
        task = progress.add_task("Scanning for node_modules...", total=100)

        def update_scan(percent: int, found: int) -> None:
            progress.update(task, completed=percent, description=f"Scanning... found {found}")

        outcome = scan_for_node_modules(options, progress_callback=update_scan, lazy=lazy)

        if lazy and outcome.entries:
            size_task = progress.add_task("Calculating sizes...", total=len(outcome.entries))

            def update_sizes(completed: int, total: int) -> None:
                progress.update(size_task, completed=completed, total=total)

            outcome.entries = calculate_pending_sizes(outcome.entries, update_sizes)

    return outcome


def _build_scan_options(
    path: Path,
    max_depth: Optional[int],
    exclude: Optional[list[str]],
) -> ScanOptions:
    config = Config.from_environment()
    return ScanOptions(
        root_path=str(path),
        max_depth=max_depth,
        exclude_patterns=load_ignore_patterns(config) + list(exclude or []),
        follow_symlinks=False,
        favorites=load_favorites(config),
    )


def _entry_to_dict(entry: NodeModulesEntry) -> dict:
    data = entry.model_dump(mode="json", exclude={"size"})
    data.update(
        {
            "size_bytes": entry.size_bytes,
            "size_human": entry.size_human,
            "package_count": entry.package_count,
            "total_package_count": entry.total_package_count,
            "is_accelerated": entry.is_accelerated,
            "last_modified_human": entry.last_modified_human,
        }
    )
    return data


PRIORITY_SORT = "priority"
SORT_CHOICES = [option.value for option in SortOption] + [PRIORITY_SORT]


def _sort(entries: list[NodeModulesEntry], sort_by: str) -> list[NodeModulesEntry]:
    if sort_by == PRIORITY_SORT:
        return sort_by_cleanup_priority(entries)
    return sort_entries(entries, SortOption(sort_by))


def _select_matching(
    entries: list[NodeModulesEntry],
    min_bytes: Optional[int],
    older_than: Optional[int],
) -> list[NodeModulesEntry]:
    """Select non-favorite entries meeting every given criterion."""
    base = select_all(entries, False)
    selections = []
    if min_bytes is not None:
        selections.append(select_by_size(base, min_bytes, skip_favorites=True))
    if older_than is not None:
        selections.append(select_by_age(base, older_than, skip_favorites=True))

    picked = [{e.path for e in get_selected(s)} for s in selections]
    return select_by_predicate(
        base, lambda e: not e.is_favorite and all(e.path in p for p in picked)
    )


@app.command()
def scan(
    path: Path = typer.Argument(Path("."), help="Directory to scan"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    max_depth: Optional[int] = typer.Option(
        None, "--max-depth", "-d", min=0, help="Maximum project depth below PATH"
    ),
    exclude: Optional[list[str]] = typer.Option(
        None, "--exclude", "-e", help="Glob pattern to exclude (repeatable)"
    ),
    lazy: bool = typer.Option(False, "--lazy", help="List first, then calculate sizes"),
    limit: int = typer.Option(20, "--limit", "-n", help="Rows to show (0 = all)"),
    sort_by: str = typer.Option(
        SortOption.SIZE_DESC.value,
        "--sort",
        "-s",
        help=f"Sort order: {', '.join(SORT_CHOICES)}",
    ),
    query: Optional[str] = typer.Option(
        None, "--filter", "-f", help="Only show projects whose name or path contains TEXT"
    ),
    quick: bool = typer.Option(False, "--quick", help="List locations only, skip sizing"),
) -> None:
    """Scan for node_modules and report their sizes."""
    if sort_by not in SORT_CHOICES:
        console.print(f"[red]Invalid sort: {sort_by}[/red] (choose from {', '.join(SORT_CHOICES)})")
        raise typer.Exit(1)

    options = _build_scan_options(path, max_depth, exclude)

    if quick:
        try:
            results = quick_scan(options.root_path, options.max_depth, options.exclude_patterns)
        except ScanError as e:
            console.print(f"[red]{e}[/red]")
            raise typer.Exit(1)
        if query:
            needle = query.lower()
            results = [
                r
                for r in results
                if needle in r["project_name"].lower() or needle in r["path"].lower()
            ]
        if json_output:
            typer.echo(json.dumps(results, indent=2))
        else:
            console.print()
            show_quick_results(results)
        return

    try:
        outcome = _run_scan(options, lazy=lazy, quiet=json_output)
    except ScanError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    entries = _sort(filter_entries(outcome.entries, query or ""), sort_by)

    if json_output:
        typer.echo(json.dumps([_entry_to_dict(e) for e in entries], indent=2))
        return

    console.print()
    title = "node_modules by size"
    if sort_by != SortOption.SIZE_DESC.value:
        title = f"node_modules ({sort_by})"
    show_entries(entries, limit=limit or None, title=title)
    if entries:
        console.print()
        show_statistics(entries)
    show_errors(outcome.errors)


@app.command()
def clean(
    path: Path = typer.Argument(Path("."), help="Directory to scan"),
    min_size: Optional[str] = typer.Option(
        None, "--min-size", help="Select node_modules at least this large (e.g. 500mb)"
    ),
    older_than: Optional[int] = typer.Option(
        None, "--older-than", min=0, help="Select node_modules untouched for N days"
    ),
    select_everything: bool = typer.Option(
        False, "--all", help="Select every node_modules except favorites"
    ),
    max_depth: Optional[int] = typer.Option(None, "--max-depth", "-d", min=0),
    exclude: Optional[list[str]] = typer.Option(None, "--exclude", "-e"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Simulate without deleting"),
    yes: bool = typer.Option(False, "-y", "--yes", help="Skip confirmation prompts"),
    force: bool = typer.Option(False, "--force", help="Handle read-only files"),
    check_processes: bool = typer.Option(
        True,
        "--check-processes/--no-check-processes",
        help="Skip projects with recently modified lock files",
    ),
    json_output: bool = typer.Option(
        False, "--json", help="Output report as JSON (needs --yes or --dry-run)"
    ),
) -> None:
    """Delete node_modules matching the given criteria."""
    if min_size is None and older_than is None and not select_everything:
        console.print("[red]Error: Specify --min-size, --older-than or --all[/red]")
        console.print("  nmclean clean ~/code --min-size 500mb")
        console.print("  nmclean clean ~/code --older-than 90")
        raise typer.Exit(1)

    if json_output and not yes and not dry_run:
        # A confirmation prompt would interleave with the JSON report
        console.print("[red]Error: --json needs --yes or --dry-run[/red]")
        raise typer.Exit(1)

    min_bytes = None
    if min_size is not None:
        parsed = parse_size(min_size)
        if parsed is None:
            console.print(f"[red]Invalid size: {min_size}[/red] (try 500mb, 1gb)")
            raise typer.Exit(1)
        min_bytes = parsed

    options = _build_scan_options(path, max_depth, exclude)
    try:
        outcome = _run_scan(options, lazy=False, quiet=json_output)
    except ScanError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    entries = sort_entries(outcome.entries, SortOption.SIZE_DESC)
    if select_everything:
        entries = select_by_predicate(entries, lambda e: not e.is_favorite)
    else:
        entries = _select_matching(entries, min_bytes, older_than)

    selected = get_selected(entries)
    if not selected:
        if json_output:
            typer.echo(generate_json_report(delete_selected_node_modules([], DeleteOptions())))
        else:
            console.print("[yellow]No directories match the criteria.[/yellow]")
        return

    if not json_output:
        show_deletion_preview(entries, dry_run=dry_run)

    if not yes and not dry_run:
        if not confirm_action(f"Delete these {len(selected)} directories?"):
            console.print("[dim]Cancelled[/dim]")
            raise typer.Exit(0)

    delete_options = DeleteOptions(
        dry_run=dry_run,
        yes=yes,
        force=force,
        check_running_processes=check_processes,
        show_progress=not json_output,
    )

    if delete_options.show_progress:
        with show_deletion_progress() as progress:
            task = progress.add_task("Deleting...", total=len(selected))

            def update(current: int, total: int, name: str) -> None:
                progress.update(task, completed=current - 1, description=f"Deleting {name}")

            result = delete_selected_node_modules(entries, delete_options, update)
            progress.update(task, completed=len(selected))
    else:
        result = delete_selected_node_modules(entries, delete_options)

    if json_output:
        typer.echo(generate_json_report(result))
    else:
        console.print()
        show_deletion_result(result, dry_run=dry_run)
        if not dry_run:
            show_remaining(remove_deleted_entries(entries, result))


if __name__ == "__main__":
    app()
