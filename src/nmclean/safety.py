"""Pre-deletion safety checks for node_modules directories."""

import logging
import os
import time

from nmclean.models import NODE_MODULES, DeleteOptions, NodeModulesEntry, SafetyCheck

log = logging.getLogger(__name__)

# Lock files in the project directory that change during an install
LOCK_FILES = (".package-lock.json", "yarn.lock", "pnpm-lock.yaml")

# A lock file touched within this window suggests an install is running
IN_USE_WINDOW_SECONDS = 60


def is_node_modules_in_use(path: str, now: float | None = None) -> bool:
    """
    Best-effort check for an in-progress install.

    Looks at the lock files next to node_modules; any of them modified in
    the last minute counts as "in use". Not a real process or lock check.
    """
    project_path = os.path.dirname(os.path.normpath(path))
    cutoff = (now if now is not None else time.time()) - IN_USE_WINDOW_SECONDS

    for lock_file in LOCK_FILES:
        try:
            mtime = os.stat(os.path.join(project_path, lock_file)).st_mtime
        except OSError:
            continue
        if mtime > cutoff:
            log.debug("%s was modified recently", lock_file)
            return True

    return False


def looks_like_node_modules(path: str) -> bool:
    """
    Structural plausibility: has at least one subdirectory, or the parent
    has a package.json.
    """
    try:
        with os.scandir(path) as entries:
            for entry in entries:
                try:
                    if entry.is_dir():
                        return True
                except OSError:
                    continue
    except OSError:
        return False

    parent = os.path.dirname(os.path.normpath(path))
    return os.path.isfile(os.path.join(parent, "package.json"))


def verify_node_modules(entry: NodeModulesEntry, options: DeleteOptions) -> SafetyCheck:
    """
    Run all safety checks in order, stopping at the first failure.

    Never deletes or modifies anything.

    Returns:
        SafetyCheck with ok=False and a human-readable reason on failure
    """
    path = entry.path.rstrip("/\\")

    if not path.endswith(NODE_MODULES):
        return SafetyCheck(ok=False, reason="Path does not appear to be a node_modules directory")

    if not os.path.isdir(path):
        return SafetyCheck(ok=False, reason="Directory does not exist")

    if options.check_running_processes and is_node_modules_in_use(path):
        return SafetyCheck(
            ok=False, reason="Directory appears to be in use by a running process"
        )

    if not looks_like_node_modules(path):
        return SafetyCheck(
            ok=False, reason="Directory does not appear to be a valid node_modules"
        )

    return SafetyCheck(ok=True)
