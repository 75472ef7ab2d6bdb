"""Selection helpers over lists of entries.

All functions return a new list and leave the input untouched. Entries
whose selection does not change are passed through as the same objects.
"""

from datetime import datetime
from typing import Callable, Optional

from nmclean.models import NodeModulesEntry
from nmclean.utils import get_age_in_days


def _with_selected(entry: NodeModulesEntry, selected: bool) -> NodeModulesEntry:
    if entry.selected == selected:
        return entry
    return entry.model_copy(update={"selected": selected})


def select_by_predicate(
    entries: list[NodeModulesEntry],
    predicate: Callable[[NodeModulesEntry], bool],
    selected: bool = True,
) -> list[NodeModulesEntry]:
    """Set selection on entries matching predicate; others are unchanged."""
    return [_with_selected(e, selected) if predicate(e) else e for e in entries]


def select_by_size(
    entries: list[NodeModulesEntry],
    min_size_bytes: int,
    skip_favorites: bool = False,
) -> list[NodeModulesEntry]:
    """
    Select entries with size_bytes >= min_size_bytes.

    Entries below the threshold keep their current selection.
    """
    return select_by_predicate(
        entries,
        lambda e: e.size_bytes >= min_size_bytes and not (skip_favorites and e.is_favorite),
    )


def select_by_age(
    entries: list[NodeModulesEntry],
    min_age_days: int,
    skip_favorites: bool = False,
    now: Optional[datetime] = None,
) -> list[NodeModulesEntry]:
    """Select entries last modified at least min_age_days ago."""
    now = now or datetime.now()
    return select_by_predicate(
        entries,
        lambda e: get_age_in_days(e.last_modified, now) >= min_age_days
        and not (skip_favorites and e.is_favorite),
    )


def select_all(entries: list[NodeModulesEntry], selected: bool = True) -> list[NodeModulesEntry]:
    return [_with_selected(e, selected) for e in entries]


def invert_selection(entries: list[NodeModulesEntry]) -> list[NodeModulesEntry]:
    return [_with_selected(e, not e.selected) for e in entries]


def toggle_one(entries: list[NodeModulesEntry], index: int) -> list[NodeModulesEntry]:
    """Flip one entry; an out-of-range index returns the input unchanged."""
    if index < 0 or index >= len(entries):
        return entries
    return [_with_selected(e, not e.selected) if i == index else e for i, e in enumerate(entries)]


def get_selected(entries: list[NodeModulesEntry]) -> list[NodeModulesEntry]:
    return [e for e in entries if e.selected]
