"""Deletion of selected node_modules directories with safety checks."""

import errno
import json
import logging
import os
import shutil
import stat
import subprocess
import sys
import time
from typing import Callable, Optional

from nmclean.models import (
    DeleteOptions,
    DeletionErrorKind,
    DeletionOutcome,
    DeletionResult,
    NodeModulesEntry,
)
from nmclean.safety import verify_node_modules
from nmclean.utils import format_bytes

log = logging.getLogger(__name__)

# Timeout for the native bulk-removal command
NATIVE_REMOVE_TIMEOUT = 30

# Windows needs the extended-length prefix beyond this
WINDOWS_LONG_PATH = 240

RemovalStrategy = Callable[[str], None]


class PartialRemovalError(OSError):
    """The directory was moved aside but the moved copy is still on disk."""

    def __init__(self, leftover_path: str, cause: OSError):
        super().__init__(cause.errno, cause.strerror or str(cause), leftover_path)
        self.leftover_path = leftover_path
        self.cause = cause


# =============================================================================
# Removal strategies
# =============================================================================


def remove_tree(path: str) -> None:
    """Direct recursive removal."""
    shutil.rmtree(path)


def make_writable_recursive(path: str) -> None:
    """Give every file and directory under path full permissions."""
    for dirpath, dirnames, filenames in os.walk(path, topdown=True):
        for name in dirnames + filenames:
            full_path = os.path.join(dirpath, name)
            if os.path.islink(full_path):
                continue
            try:
                os.chmod(full_path, stat.S_IRWXU | stat.S_IRWXG | stat.S_IRWXO)
            except OSError as e:
                log.debug("Cannot chmod %s: %s", full_path, e)
    try:
        os.chmod(path, stat.S_IRWXU | stat.S_IRWXG | stat.S_IRWXO)
    except OSError as e:
        log.debug("Cannot chmod %s: %s", path, e)


def remove_after_chmod(path: str) -> None:
    """Clear read-only bits, then remove."""
    make_writable_recursive(path)
    shutil.rmtree(path)


def remove_with_native_command(path: str) -> None:
    """Remove with `rm -rf` (or `rd /s /q` on Windows)."""
    if sys.platform == "win32":
        target = path
        if len(path) > WINDOWS_LONG_PATH:
            target = "\\\\?\\" + os.path.abspath(path)
        command = ["cmd", "/c", "rd", "/s", "/q", target]
    else:
        command = ["rm", "-rf", path]

    try:
        subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=NATIVE_REMOVE_TIMEOUT,
            check=True,
        )
    except subprocess.CalledProcessError as e:
        raise OSError(errno.EIO, (e.stderr or "").strip() or "Native removal failed", path) from e
    except subprocess.TimeoutExpired as e:
        raise OSError(errno.ETIMEDOUT, "Native removal timed out", path) from e

    if os.path.exists(path):
        raise OSError(errno.ENOTEMPTY, "Directory not empty", path)


def rename_and_remove(path: str) -> None:
    """
    Move the directory aside, then remove the renamed copy.

    Raises:
        PartialRemovalError: If the renamed copy could not be removed. It is
            left in place for manual cleanup.
    """
    temp_path = f"{path}.old.{int(time.time() * 1000)}"
    os.rename(path, temp_path)
    try:
        shutil.rmtree(temp_path)
    except OSError as e:
        log.warning("Left %s for manual cleanup: %s", temp_path, e)
        raise PartialRemovalError(temp_path, e) from e


def get_removal_strategies(force: bool = False) -> list[RemovalStrategy]:
    """
    Ordered removal strategies, least invasive first.

    Without force only direct removal is attempted.
    """
    if not force:
        return [remove_tree]
    return [remove_tree, remove_after_chmod, remove_with_native_command, rename_and_remove]


def run_removal_strategies(path: str, strategies: list[RemovalStrategy]) -> None:
    """
    Try each strategy until one succeeds.

    Raises:
        PartialRemovalError: If the directory was moved aside but not removed
        OSError: The first strategy's error, if every strategy failed
    """
    first_error: Optional[OSError] = None
    for strategy in strategies:
        try:
            strategy(path)
            return
        except PartialRemovalError:
            # Nothing left at the original path for later strategies to try
            raise
        except OSError as e:
            log.debug("%s failed for %s: %s", strategy.__name__, path, e)
            if first_error is None:
                first_error = e

    if first_error is not None:
        raise first_error


def classify_error(error: BaseException) -> tuple[DeletionErrorKind, str]:
    """Map a removal error to a kind and an actionable message."""
    code = getattr(error, "errno", None)
    message = str(error)

    if isinstance(error, PermissionError) or code in (errno.EPERM, errno.EACCES):
        return (
            DeletionErrorKind.PERMISSION,
            "Permission denied - run with elevated privileges (sudo/Administrator) "
            "or check file permissions",
        )
    if code == errno.EBUSY:
        return (
            DeletionErrorKind.BUSY,
            "Directory in use - close any programs using these files",
        )
    if code == errno.ENOTEMPTY or "ENOTEMPTY" in message:
        return (
            DeletionErrorKind.NOT_EMPTY,
            "Directory not empty - may contain read-only files. Try using --force",
        )
    return DeletionErrorKind.OTHER, message or "Unknown error during deletion"


# =============================================================================
# Deletion
# =============================================================================


def delete_node_modules(entry: NodeModulesEntry, options: DeleteOptions) -> DeletionOutcome:
    """
    Delete (or simulate deleting) a single node_modules directory.

    Safety checks run first; nothing is touched if any fails.

    Returns:
        DeletionOutcome, never raises
    """
    start = time.monotonic()
    outcome = DeletionOutcome(entry=entry)

    check = verify_node_modules(entry, options)
    if not check.ok:
        outcome.error = check.reason
        outcome.error_kind = DeletionErrorKind.SAFETY
    elif options.dry_run:
        outcome.success = True
    else:
        try:
            run_removal_strategies(entry.path, get_removal_strategies(options.force))
            outcome.success = True
        except PartialRemovalError as e:
            outcome.error_kind, message = classify_error(e.cause)
            outcome.error = f"{message} (moved to {e.leftover_path})"
            log.debug("Deletion left %s behind: %s", e.leftover_path, e.cause)
        except OSError as e:
            outcome.error_kind, outcome.error = classify_error(e)
            log.debug("Deletion failed for %s: %s", entry.path, e)

    outcome.duration_ms = int((time.monotonic() - start) * 1000)
    return outcome


def delete_selected_node_modules(
    entries: list[NodeModulesEntry],
    options: DeleteOptions,
    progress_callback: Optional[Callable[[int, int, str], None]] = None,
) -> DeletionResult:
    """
    Delete every selected entry, in order.

    Failures are recorded per entry and never abort the batch.

    Args:
        entries: All entries (only selected ones are touched)
        options: Deletion options
        progress_callback: Optional callback(current, total, project_name)

    Returns:
        DeletionResult with totals and per-entry outcomes
    """
    selected = [e for e in entries if e.selected]
    result = DeletionResult(total_attempted=len(selected))

    for i, entry in enumerate(selected):
        if progress_callback:
            progress_callback(i + 1, len(selected), entry.project_name)

        outcome = delete_node_modules(entry, options)
        result.details.append(outcome)

        if outcome.success:
            result.successful += 1
            result.bytes_freed += entry.size_bytes
        else:
            result.failed += 1

    log.info(
        "%s %d/%d node_modules (%s)",
        "Would delete" if options.dry_run else "Deleted",
        result.successful,
        result.total_attempted,
        format_bytes(result.bytes_freed),
    )
    return result


def remove_deleted_entries(
    entries: list[NodeModulesEntry], result: DeletionResult
) -> list[NodeModulesEntry]:
    """Drop entries whose directories were successfully removed."""
    deleted = {d.entry.path for d in result.details if d.success}
    return [e for e in entries if e.path not in deleted]


def generate_deletion_preview(entries: list[NodeModulesEntry], cwd: Optional[str] = None) -> str:
    """Plain-text summary of what would be deleted."""
    selected = [e for e in entries if e.selected]
    if not selected:
        return "No node_modules selected for deletion."

    total_bytes = sum(e.size_bytes for e in selected)
    noun = "directory" if len(selected) == 1 else "directories"
    lines = [f"You are about to delete {len(selected)} node_modules {noun}:", ""]

    for entry in selected:
        path = entry.path
        if cwd and path.startswith(cwd):
            path = "." + path[len(cwd):]
        lines.append(f"   • {path} ({entry.size_human})")

    lines.extend(["", f"   Total space to reclaim: {format_bytes(total_bytes)}"])
    return "\n".join(lines)


def generate_json_report(result: DeletionResult) -> str:
    """JSON report of a deletion batch."""
    report = {
        "summary": {
            "total_attempted": result.total_attempted,
            "successful": result.successful,
            "failed": result.failed,
            "bytes_freed": result.bytes_freed,
            "bytes_freed_human": result.bytes_freed_human,
        },
        "details": [
            {
                "path": d.entry.path,
                "project_name": d.entry.project_name,
                "size_bytes": d.entry.size_bytes,
                "size_human": d.entry.size_human,
                "success": d.success,
                "error": d.error,
                "error_kind": d.error_kind.value if d.error_kind else None,
                "duration_ms": d.duration_ms,
            }
            for d in result.details
        ],
    }
    return json.dumps(report, indent=2)
