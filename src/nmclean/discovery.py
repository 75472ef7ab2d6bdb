"""Filesystem sweep that finds project-level node_modules directories.

Discovery only lists directories; sizing happens later in the analyzer so
the sweep stays fast even on large trees.
"""

import logging
import os
from collections import deque
from typing import Generator

from nmclean.classifier import is_reportable_node_modules
from nmclean.errors import ScanError
from nmclean.models import NODE_MODULES, Candidate, DiscoveryResult, ScanOptions

log = logging.getLogger(__name__)


def resolve_root(root_path: str) -> str:
    """
    Expand and validate the scan root.

    Raises:
        ScanError: If the root does not exist or is not a directory
    """
    root = os.path.abspath(os.path.expanduser(root_path))
    if not os.path.exists(root):
        raise ScanError(f"Error scanning {root}: path does not exist")
    if not os.path.isdir(root):
        raise ScanError(f"Error scanning {root}: not a directory")
    return root


def iter_node_modules(
    root: str,
    options: ScanOptions,
    stats: DiscoveryResult,
) -> Generator[Candidate, None, None]:
    """
    Breadth-first walk from root yielding reportable node_modules.

    Each visited directory is listed once. A child named node_modules is
    checked and reported but never descended into; hidden directories are
    skipped. Listing failures are recorded on stats and the walk continues.

    Args:
        root: Absolute, existing scan root
        options: Scan options (depth, exclusions, symlink policy)
        stats: Receives directories_scanned and errors

    Yields:
        Candidate node_modules locations
    """
    queue: deque[tuple[str, int]] = deque([(root, 0)])
    seen: set[str] = set()

    while queue:
        current, depth = queue.popleft()

        key = os.path.realpath(current) if options.follow_symlinks else current
        if key in seen:
            continue
        seen.add(key)
        stats.directories_scanned += 1

        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            if current == root:
                raise ScanError(f"Error scanning {current}: {e.strerror or e}") from e
            log.debug("Cannot list %s: %s", current, e)
            stats.errors.append(f"Error scanning {current}: {e.strerror or e}")
            continue

        for entry in entries:
            try:
                if not entry.is_dir(follow_symlinks=options.follow_symlinks):
                    continue
            except OSError:
                continue

            if entry.name == NODE_MODULES:
                if is_reportable_node_modules(
                    entry.path,
                    root,
                    max_depth=options.max_depth,
                    exclude_patterns=options.exclude_patterns,
                ):
                    yield Candidate(node_modules_path=entry.path, project_path=current)
                else:
                    log.debug("Excluded %s", entry.path)
                continue

            if entry.name.startswith("."):
                continue

            # A project deeper than max_depth can never be reported
            if options.max_depth is not None and depth + 1 > options.max_depth:
                continue

            queue.append((entry.path, depth + 1))


def discover_node_modules(options: ScanOptions) -> DiscoveryResult:
    """
    Find all reportable node_modules under options.root_path.

    Raises:
        ScanError: If the root is missing or cannot be listed
    """
    root = resolve_root(options.root_path)
    result = DiscoveryResult()
    result.candidates = list(iter_node_modules(root, options, result))

    log.info(
        "Discovered %d node_modules in %d directories under %s",
        len(result.candidates),
        result.directories_scanned,
        root,
    )
    return result
