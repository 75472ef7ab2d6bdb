"""Decide whether a node_modules directory is worth reporting."""

import os

from nmclean.models import NODE_MODULES
from nmclean.utils import should_exclude_path


def _split(path: str) -> list[str]:
    return [part for part in path.replace("\\", "/").split("/") if part]


def relative_parts(path: str, root: str) -> list[str]:
    """Path components of path below root (empty when path is root)."""
    try:
        rel = os.path.relpath(path, root)
    except ValueError:
        # Different drives on Windows
        return _split(path)
    if rel == os.curdir:
        return []
    return _split(rel)


def is_reportable_node_modules(
    candidate: str,
    root: str,
    max_depth: int | None = None,
    exclude_patterns: list[str] | None = None,
) -> bool:
    """
    Check whether a candidate node_modules directory is a project root.

    The name check is an exact, case-sensitive match. Exclusion globs are
    matched case-insensitively. Never raises.

    Args:
        candidate: Path to the candidate directory
        root: Scan root the candidate was found under
        max_depth: Maximum project depth below root (None = unlimited)
        exclude_patterns: User-supplied exclusion globs

    Returns:
        True if the candidate should be reported
    """
    parts = _split(candidate)
    if not parts or parts[-1] != NODE_MODULES:
        return False

    # Nested copies like node_modules/pkg/node_modules belong to a dependency
    if NODE_MODULES in parts[:-1]:
        return False

    project_parts = relative_parts(os.path.dirname(candidate.rstrip("/\\")), root)
    if any(part.startswith(".") and part not in (os.curdir, os.pardir) for part in project_parts):
        return False

    if max_depth is not None and len(project_parts) > max_depth:
        return False

    if exclude_patterns and should_exclude_path(candidate, exclude_patterns):
        return False

    return True
