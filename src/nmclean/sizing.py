"""Directory size estimation for node_modules trees.

Two strategies are tried in order:

1. Accelerated: native `du` (or `dir /s` on Windows) for the byte total and
   `find` (or `dir /ad`) for package counts. Much faster on large trees, but
   `du -sk` reports allocated blocks rather than a sum of file sizes.
2. Portable: an iterative os.scandir walk that sums exact file sizes plus a
   fixed overhead per directory.

Callers should treat the result as "best available estimate".
"""

import errno
import logging
import os
import re
import shutil
import subprocess
import sys
from concurrent.futures import Executor, Future
from pathlib import Path
from typing import Optional

from nmclean.models import BIN_DIRECTORY, SizeResult

log = logging.getLogger(__name__)

# Added once per directory as a stand-in for its block usage
DIRECTORY_OVERHEAD = 4096

# Upper bound for any native command invocation
ACCELERATED_TIMEOUT = 30

_WINDOWS_TOTAL_RE = re.compile(r"File\(s\)\s+([\d,.]+)\s+bytes?", re.IGNORECASE)


def _is_windows() -> bool:
    return sys.platform == "win32"


def is_package_dir(name: str) -> bool:
    """Directories that count as packages: not hidden, not the bin wrapper dir."""
    return not name.startswith(".") and name != BIN_DIRECTORY


def _run_command(command: list[str], timeout: float) -> Optional[str]:
    """Run a command and return stdout, or None on any failure."""
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired:
        log.debug("Command timed out after %ss: %s", timeout, command[0])
        return None
    except (OSError, ValueError) as e:
        log.debug("Could not run %s: %s", command[0], e)
        return None

    if result.returncode != 0:
        log.debug("%s exited with %d", command[0], result.returncode)
        return None
    return result.stdout


def get_size_with_du(path: str, timeout: float = ACCELERATED_TIMEOUT) -> Optional[int]:
    """
    Total size via `du`.

    GNU du reports apparent bytes with -b; elsewhere fall back to -k blocks.
    """
    if sys.platform.startswith("linux"):
        command, multiplier = ["du", "-sb", path], 1
    else:
        command, multiplier = ["du", "-sk", path], 1024

    stdout = _run_command(command, timeout)
    if not stdout:
        return None

    match = re.match(r"^\s*(\d+)", stdout)
    if not match:
        return None
    return int(match.group(1)) * multiplier


def get_size_with_dir(path: str, timeout: float = ACCELERATED_TIMEOUT) -> Optional[int]:
    """Total size via `dir /s` on Windows (last "File(s)" line holds the total)."""
    stdout = _run_command(["cmd", "/c", "dir", "/s", "/-c", path], timeout)
    if not stdout:
        return None

    for line in reversed(stdout.splitlines()):
        match = _WINDOWS_TOTAL_RE.search(line)
        if match:
            return int(match.group(1).replace(",", "").replace(".", ""))
    return None


def count_packages_native(
    path: str, timeout: float = ACCELERATED_TIMEOUT
) -> Optional[tuple[int, int]]:
    """
    Count (top-level, total) package directories with native listing tools.

    Returns:
        Tuple of counts, or None if the commands are unavailable or fail
    """
    if _is_windows():
        top_out = _run_command(["cmd", "/c", "dir", "/b", "/ad", path], timeout)
        total_out = _run_command(["cmd", "/c", "dir", "/s", "/b", "/ad", path], timeout)
        if top_out is None or total_out is None:
            return None
        top = [line for line in top_out.splitlines() if line.strip()]
        total = [line for line in total_out.splitlines() if line.strip()]
        top_level = sum(1 for name in top if is_package_dir(name.strip()))
        all_levels = sum(1 for p in total if is_package_dir(os.path.basename(p.strip())))
        return top_level, all_levels

    top_out = _run_command(
        ["find", path, "-mindepth", "1", "-maxdepth", "1", "-type", "d", "!", "-name", ".*"],
        timeout,
    )
    total_out = _run_command(
        ["find", path, "-mindepth", "1", "-type", "d", "!", "-name", ".*"],
        timeout,
    )
    if top_out is None or total_out is None:
        return None

    top_level = sum(1 for line in top_out.splitlines() if line.strip())
    all_levels = sum(1 for line in total_out.splitlines() if line.strip())
    return top_level, all_levels


def is_native_size_available() -> bool:
    """Check if the native commands exist on this platform."""
    if _is_windows():
        return shutil.which("cmd") is not None
    return shutil.which("du") is not None and shutil.which("find") is not None


def calculate_size_native(
    path: str | Path, timeout: float = ACCELERATED_TIMEOUT
) -> Optional[SizeResult]:
    """
    Accelerated size calculation.

    Returns:
        SizeResult, or None when native commands are unavailable or return no data
    """
    if not is_native_size_available():
        return None

    path_str = str(path)
    if _is_windows():
        size = get_size_with_dir(path_str, timeout)
    else:
        size = get_size_with_du(path_str, timeout)
    if size is None:
        return None

    counts = count_packages_native(path_str, timeout)
    if counts is None:
        return None

    return SizeResult(
        total_size=size,
        package_count=counts[0],
        total_package_count=counts[1],
        is_accelerated=True,
    )


def calculate_size_portable(path: str | Path) -> SizeResult:
    """
    Exact-file-sum size calculation using an explicit stack.

    Symlinks are never followed. Unreadable subtrees are skipped.

    Raises:
        FileNotFoundError: If path is not an existing directory
    """
    root = str(path)
    if not os.path.isdir(root):
        raise FileNotFoundError(errno.ENOENT, "No such directory", root)

    total_size = 0
    package_count = 0
    total_package_count = 0
    stack: list[tuple[str, int]] = [(root, 0)]

    while stack:
        current, depth = stack.pop()
        total_size += DIRECTORY_OVERHEAD

        try:
            with os.scandir(current) as entries:
                for entry in entries:
                    try:
                        if entry.is_dir(follow_symlinks=False):
                            if is_package_dir(entry.name):
                                total_package_count += 1
                                if depth == 0:
                                    package_count += 1
                            stack.append((entry.path, depth + 1))
                        else:
                            total_size += entry.stat(follow_symlinks=False).st_size
                    except OSError as e:
                        log.debug("Skipping %s: %s", entry.path, e)
                        continue
        except OSError as e:
            # Permission denied etc. - undercount rather than fail
            log.debug("Cannot read %s: %s", current, e)

    return SizeResult(
        total_size=total_size,
        package_count=package_count,
        total_package_count=total_package_count,
        is_accelerated=False,
    )


class SizeEstimator:
    """
    Computes size and package counts for one directory tree.

    `estimate` is a single blocking unit of work. `submit` wraps it in a
    Future, running on the given executor or resolving synchronously when
    there is none.
    """

    def __init__(
        self,
        use_accelerated: bool = True,
        executor: Optional[Executor] = None,
        timeout: float = ACCELERATED_TIMEOUT,
    ):
        self.use_accelerated = use_accelerated
        self.executor = executor
        self.timeout = timeout

    def estimate(self, path: str | Path) -> SizeResult:
        if self.use_accelerated:
            result = calculate_size_native(path, self.timeout)
            if result is not None:
                return result
            log.debug("Native size unavailable for %s, using portable walk", path)
        return calculate_size_portable(path)

    def submit(self, path: str | Path) -> Future:
        if self.executor is not None:
            return self.executor.submit(self.estimate, path)

        future: Future = Future()
        try:
            future.set_result(self.estimate(path))
        except Exception as e:
            future.set_exception(e)
        return future
