"""Formatting, parsing and list helpers for nmclean."""

import json
import math
import re
from datetime import datetime
from pathlib import Path
from typing import Optional

from nmclean.models import (
    FRESH_DAYS,
    LARGE_THRESHOLD,
    MEDIUM_THRESHOLD,
    OLD_DAYS,
    RECENT_DAYS,
    SMALL_THRESHOLD,
    AgeCategory,
    NodeModulesEntry,
    ScanStatistics,
    SizeCategory,
    SortOption,
)

SECONDS_PER_DAY = 24 * 60 * 60

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]
_SIZE_MULTIPLIERS = {
    "b": 1,
    "kb": 1024,
    "mb": 1024**2,
    "gb": 1024**3,
    "tb": 1024**4,
}
_SIZE_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(b|kb|mb|gb|tb)?$")

# Matches any path component that starts with a dot, e.g. /home/me/.config
_HIDDEN_COMPONENT_RE = re.compile(r"(^|/)\.[^/]+($|/)")


def format_bytes(size_bytes: int) -> str:
    """
    Format bytes to human-readable string (binary units).

    Args:
        size_bytes: Size in bytes

    Returns:
        String like "456 KB" or "1.2 GB"
    """
    if size_bytes <= 0:
        return "0 B"

    exponent = 0
    value = float(size_bytes)
    while value >= 1024 and exponent < len(_SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    decimals = 1 if exponent >= 2 else 0
    return f"{value:.{decimals}f} {_SIZE_UNITS[exponent]}"


def parse_size(size_str: str) -> Optional[int]:
    """
    Parse a human-entered size such as "1gb", "500MB" or "10 kb".

    Args:
        size_str: Size string (case-insensitive, whitespace tolerant)

    Returns:
        Size in bytes, or None if the string is not parseable
    """
    match = _SIZE_RE.match(size_str.strip().lower())
    if not match:
        return None

    value = float(match.group(1))
    unit = match.group(2) or "b"
    return int(value * _SIZE_MULTIPLIERS[unit])


def get_age_in_days(date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days elapsed since date (floor)."""
    now = now or datetime.now()
    return math.floor((now - date).total_seconds() / SECONDS_PER_DAY)


def format_relative_time(date: datetime, now: Optional[datetime] = None) -> str:
    """Format a date as "30d ago", "2h ago", "just now"..."""
    now = now or datetime.now()
    diff_seconds = (now - date).total_seconds()
    diff_days = math.floor(diff_seconds / SECONDS_PER_DAY)

    if diff_days == 0:
        diff_hours = math.floor(diff_seconds / 3600)
        if diff_hours == 0:
            diff_minutes = math.floor(diff_seconds / 60)
            return "just now" if diff_minutes <= 1 else f"{diff_minutes}m ago"
        return f"{diff_hours}h ago"

    if diff_days < 30:
        return f"{diff_days}d ago"
    if diff_days < 365:
        return f"{diff_days // 30}mo ago"
    return f"{diff_days // 365}y ago"


def get_size_category(size_bytes: int) -> SizeCategory:
    """Bucket a size for display and smart selection."""
    if size_bytes > LARGE_THRESHOLD:
        return SizeCategory.HUGE
    if size_bytes > MEDIUM_THRESHOLD:
        return SizeCategory.LARGE
    if size_bytes > SMALL_THRESHOLD:
        return SizeCategory.MEDIUM
    return SizeCategory.SMALL


def get_age_category(last_modified: datetime, now: Optional[datetime] = None) -> AgeCategory:
    """Bucket a modification time by age."""
    days = get_age_in_days(last_modified, now)
    if days > OLD_DAYS:
        return AgeCategory.STALE
    if days > RECENT_DAYS:
        return AgeCategory.OLD
    if days > FRESH_DAYS:
        return AgeCategory.RECENT
    return AgeCategory.FRESH


def glob_to_regex(pattern: str) -> re.Pattern:
    """
    Compile an exclusion glob into a case-insensitive regex.

    `**` matches any run of characters including separators, `*` any run
    without separators and `?` a single character.
    """
    parts = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**", i):
            parts.append(".*")
            i += 2
        elif pattern[i] == "*":
            parts.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            parts.append(".")
            i += 1
        else:
            parts.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(parts), re.IGNORECASE)


def should_exclude_path(path: str, patterns: list[str]) -> bool:
    """
    Check if a path matches any exclusion pattern.

    Args:
        path: Path to check (any separator style)
        patterns: Glob patterns

    Returns:
        True if the path should be excluded
    """
    normalized = path.replace("\\", "/")
    for pattern in patterns:
        if pattern in ("**/.*", ".*"):
            if _HIDDEN_COMPONENT_RE.search(normalized):
                return True
            continue
        if glob_to_regex(pattern.replace("\\", "/")).search(normalized):
            return True
    return False


def read_package_json(project_path: str | Path) -> Optional[dict]:
    """
    Read name/version from a project's package.json.

    Returns:
        Dict with optional "name" and "version" keys, or None when the
        manifest is missing or unreadable
    """
    package_json = Path(project_path) / "package.json"
    try:
        with open(package_json, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError):
        return None

    if not isinstance(data, dict):
        return None

    manifest = {}
    for key in ("name", "version"):
        value = data.get(key)
        if isinstance(value, str) and value:
            manifest[key] = value
    return manifest


def sort_entries(entries: list[NodeModulesEntry], sort_by: SortOption) -> list[NodeModulesEntry]:
    """Return a new list ordered by the given option."""
    keys = {
        SortOption.SIZE_DESC: (lambda e: e.size_bytes, True),
        SortOption.SIZE_ASC: (lambda e: e.size_bytes, False),
        SortOption.DATE_DESC: (lambda e: e.last_modified, True),
        SortOption.DATE_ASC: (lambda e: e.last_modified, False),
        SortOption.NAME_ASC: (lambda e: e.project_name.lower(), False),
        SortOption.NAME_DESC: (lambda e: e.project_name.lower(), True),
        SortOption.PACKAGES_DESC: (lambda e: e.total_package_count, True),
        SortOption.PACKAGES_ASC: (lambda e: e.total_package_count, False),
    }
    key, reverse = keys[sort_by]
    return sorted(entries, key=key, reverse=reverse)


def filter_entries(entries: list[NodeModulesEntry], query: str) -> list[NodeModulesEntry]:
    """Case-insensitive match on project name and path."""
    if not query.strip():
        return entries

    needle = query.lower()
    return [e for e in entries if needle in e.project_name.lower() or needle in e.path.lower()]


def calculate_statistics(entries: list[NodeModulesEntry]) -> ScanStatistics:
    """Summary numbers for overview displays."""
    now = datetime.now()
    selected = [e for e in entries if e.selected]
    total_age = sum(get_age_in_days(e.last_modified, now) for e in entries)

    return ScanStatistics(
        total_projects=len({e.project_path for e in entries}),
        total_node_modules=len(entries),
        total_size_bytes=sum(e.size_bytes for e in entries),
        selected_count=len(selected),
        selected_size_bytes=sum(e.size_bytes for e in selected),
        average_age_days=round(total_age / len(entries)) if entries else 0,
        stale_count=sum(1 for e in entries if e.age_category == AgeCategory.STALE),
    )


def get_cleanup_priority(entry: NodeModulesEntry, now: Optional[datetime] = None) -> int:
    """Larger and older entries score higher."""
    size_score = math.log2(entry.size_bytes + 1) * 10
    age_score = get_age_in_days(entry.last_modified, now)
    return round(size_score + age_score / 3)


def sort_by_cleanup_priority(entries: list[NodeModulesEntry]) -> list[NodeModulesEntry]:
    now = datetime.now()
    return sorted(entries, key=lambda e: get_cleanup_priority(e, now), reverse=True)
