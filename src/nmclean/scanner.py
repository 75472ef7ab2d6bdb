"""Scan orchestration: discovery, then bounded parallel analysis."""

import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Optional

from nmclean.analyzer import analyze_node_modules, find_repo_root, resolve_pending_size
from nmclean.discovery import discover_node_modules, iter_node_modules, resolve_root
from nmclean.models import DiscoveryResult, NodeModulesEntry, ScanOptions, ScanOutcome
from nmclean.sizing import SizeEstimator
from nmclean.utils import get_age_in_days, read_package_json

log = logging.getLogger(__name__)

# Filesystem calls are cheap relative to process spawns on Windows
SIZE_CALCULATION_CONCURRENCY = 8 if sys.platform == "win32" else 4


def _passes_filters(entry: NodeModulesEntry, options: ScanOptions) -> bool:
    if options.min_size_bytes and entry.size_bytes < options.min_size_bytes:
        return False
    if options.older_than_days and get_age_in_days(entry.last_modified) < options.older_than_days:
        return False
    return True


def scan_for_node_modules(
    options: ScanOptions,
    progress_callback: Optional[Callable[[int, int], None]] = None,
    lazy: bool = False,
    estimator: Optional[SizeEstimator] = None,
    max_workers: int = SIZE_CALCULATION_CONCURRENCY,
) -> ScanOutcome:
    """
    Find and analyze node_modules directories under options.root_path.

    Progress is reported as callback(percent, found) with percent
    non-decreasing and ending at exactly 100.

    Args:
        options: Scan options
        progress_callback: Optional callback(percent, found_so_far)
        lazy: Return entries with pending sizes (see calculate_pending_sizes)
        estimator: Size estimator shared by all analysis tasks
        max_workers: Concurrent analysis limit

    Returns:
        ScanOutcome with entries, directories scanned and non-fatal errors

    Raises:
        ScanError: If the root path does not exist or cannot be listed
    """
    if progress_callback:
        progress_callback(5, 0)

    discovery = discover_node_modules(options)
    outcome = ScanOutcome(
        directories_scanned=discovery.directories_scanned,
        errors=list(discovery.errors),
    )

    if progress_callback:
        progress_callback(10, 0)

    candidates = discovery.candidates
    total = len(candidates)
    estimator = estimator or SizeEstimator()

    if total:
        processed = 0
        last_percent = 10
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            future_to_candidate = {
                executor.submit(
                    analyze_node_modules,
                    c.node_modules_path,
                    c.project_path,
                    lazy,
                    estimator,
                    options.favorites,
                ): c
                for c in candidates
            }

            for future in as_completed(future_to_candidate):
                candidate = future_to_candidate[future]
                processed += 1

                try:
                    entry = future.result()
                except Exception as e:
                    log.debug("Analysis failed for %s", candidate.node_modules_path, exc_info=True)
                    outcome.errors.append(f"Error analyzing {candidate.node_modules_path}: {e}")
                else:
                    if lazy or _passes_filters(entry, options):
                        outcome.entries.append(entry)

                if progress_callback:
                    percent = max(last_percent, 10 + round(processed / total * 90))
                    last_percent = percent
                    if percent < 100:
                        progress_callback(percent, len(outcome.entries))

    if progress_callback:
        progress_callback(100, len(outcome.entries))

    log.info(
        "Scan of %s found %d node_modules (%d errors)",
        options.root_path,
        len(outcome.entries),
        len(outcome.errors),
    )
    return outcome


def calculate_pending_sizes(
    entries: list[NodeModulesEntry],
    progress_callback: Optional[Callable[[int, int], None]] = None,
    estimator: Optional[SizeEstimator] = None,
    max_workers: int = SIZE_CALCULATION_CONCURRENCY,
) -> list[NodeModulesEntry]:
    """
    Resolve sizes for every pending entry.

    Results are merged back by path; entries that were not updated are
    returned unchanged and in their original position.

    Args:
        entries: Entries from a lazy scan
        progress_callback: Optional callback(completed, total)
        estimator: Size estimator
        max_workers: Concurrent calculation limit

    Returns:
        New list of entries
    """
    pending = [e for e in entries if e.pending]
    if not pending:
        return entries

    estimator = estimator or SizeEstimator()
    total = len(pending)
    completed = 0
    updated: dict[str, NodeModulesEntry] = {}

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(resolve_pending_size, e, estimator) for e in pending]
        for future in as_completed(futures):
            # resolve_pending_size never raises
            item = future.result()
            updated[item.path] = item
            completed += 1
            if progress_callback:
                progress_callback(completed, total)

    return [updated.get(e.path, e) for e in entries]


def quick_scan(
    root_path: str,
    max_depth: Optional[int] = None,
    exclude_patterns: Optional[list[str]] = None,
) -> list[dict]:
    """
    Discovery with project metadata only, no sizing.

    Returns:
        List of dicts with path, project_path, project_name and repo_path

    Raises:
        ScanError: If the root path does not exist
    """
    root = resolve_root(root_path)
    stats = DiscoveryResult()
    results = []

    for candidate in iter_node_modules(
        root,
        ScanOptions(root_path=root, max_depth=max_depth, exclude_patterns=exclude_patterns or []),
        stats,
    ):
        manifest = read_package_json(candidate.project_path) or {}
        results.append(
            {
                "path": candidate.node_modules_path,
                "project_path": candidate.project_path,
                "project_name": manifest.get("name") or os.path.basename(candidate.project_path),
                "repo_path": find_repo_root(candidate.project_path),
            }
        )

    return results
