"""nmclean - find node_modules directories and reclaim disk space."""

__version__ = "1.0.0"

from nmclean.deletion import (
    delete_selected_node_modules,
    generate_deletion_preview,
    generate_json_report,
)
from nmclean.errors import NmcleanError, ScanError
from nmclean.models import (
    DeleteOptions,
    DeletionResult,
    NodeModulesEntry,
    ScanOptions,
    ScanOutcome,
)
from nmclean.safety import is_node_modules_in_use, verify_node_modules
from nmclean.scanner import calculate_pending_sizes, quick_scan, scan_for_node_modules
from nmclean.selection import (
    invert_selection,
    select_all,
    select_by_age,
    select_by_size,
    toggle_one,
)
from nmclean.utils import parse_size

__all__ = [
    "__version__",
    "DeleteOptions",
    "DeletionResult",
    "NmcleanError",
    "NodeModulesEntry",
    "ScanError",
    "ScanOptions",
    "ScanOutcome",
    "calculate_pending_sizes",
    "delete_selected_node_modules",
    "generate_deletion_preview",
    "generate_json_report",
    "invert_selection",
    "is_node_modules_in_use",
    "parse_size",
    "quick_scan",
    "scan_for_node_modules",
    "select_all",
    "select_by_age",
    "select_by_size",
    "toggle_one",
    "verify_node_modules",
]
