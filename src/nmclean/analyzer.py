"""Turn a discovered node_modules path into a NodeModulesEntry."""

import logging
import os
from datetime import datetime
from typing import Optional

from nmclean.models import NodeModulesEntry, PendingSize, ResolvedSize
from nmclean.sizing import SizeEstimator
from nmclean.utils import get_age_category, get_size_category, read_package_json

log = logging.getLogger(__name__)

# Version-control markers that identify a repository root
VCS_MARKERS = (".git",)


def find_repo_root(start_path: str) -> str:
    """
    Walk up from start_path to the nearest directory containing .git.

    Args:
        start_path: Project directory

    Returns:
        Repo root, or start_path itself if no marker is found
    """
    current = os.path.abspath(start_path)
    while True:
        for marker in VCS_MARKERS:
            try:
                if os.path.exists(os.path.join(current, marker)):
                    return current
            except OSError:
                pass
        parent = os.path.dirname(current)
        if parent == current:
            return start_path
        current = parent


def analyze_node_modules(
    node_modules_path: str,
    project_path: str,
    lazy: bool = False,
    estimator: Optional[SizeEstimator] = None,
    favorites: Optional[set[str]] = None,
) -> NodeModulesEntry:
    """
    Build an entry for one node_modules directory.

    In lazy mode only cheap metadata is read and the size is left pending.

    Args:
        node_modules_path: Path to the node_modules directory
        project_path: Directory containing it
        lazy: Skip size calculation
        estimator: Size estimator (default: accelerated with fallback)
        favorites: Project paths marked as favorites

    Returns:
        NodeModulesEntry

    Raises:
        OSError: If the node_modules directory cannot be stat'ed
    """
    stat = os.stat(node_modules_path)
    last_modified = datetime.fromtimestamp(stat.st_mtime)

    manifest = read_package_json(project_path) or {}
    project_name = manifest.get("name") or os.path.basename(os.path.normpath(project_path))
    repo_path = find_repo_root(project_path)

    entry = NodeModulesEntry(
        path=node_modules_path,
        project_path=project_path,
        project_name=project_name,
        project_version=manifest.get("version"),
        repo_path=repo_path,
        size=PendingSize(),
        last_modified=last_modified,
        is_favorite=project_path in (favorites or set()),
        age_category=get_age_category(last_modified),
        size_category=None,
    )
    if lazy:
        return entry

    estimator = estimator or SizeEstimator()
    size = estimator.estimate(node_modules_path)
    return entry.model_copy(
        update={
            "size": size.to_state(),
            "size_category": get_size_category(size.total_size),
        }
    )


def resolve_pending_size(
    entry: NodeModulesEntry,
    estimator: Optional[SizeEstimator] = None,
) -> NodeModulesEntry:
    """
    Calculate the size of a pending entry.

    The calculation is submitted to the estimator and waited on. Never
    raises: on failure the entry is resolved with an error marker so batch
    progress still completes.

    Returns:
        Updated copy of the entry
    """
    estimator = estimator or SizeEstimator()
    try:
        size = estimator.submit(entry.path).result()
    except Exception as e:
        log.debug("Size calculation failed for %s: %s", entry.path, e)
        return entry.model_copy(update={"size": ResolvedSize(error=str(e))})

    return entry.model_copy(
        update={
            "size": size.to_state(),
            "size_category": get_size_category(size.total_size),
        }
    )
