"""Data models for nmclean."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field

# Name of the directory we look for and the one package managers use for bin wrappers
NODE_MODULES = "node_modules"
BIN_DIRECTORY = ".bin"

# Size thresholds (binary units)
SMALL_THRESHOLD = 100 * 1024 * 1024  # 100 MB
MEDIUM_THRESHOLD = 500 * 1024 * 1024  # 500 MB
LARGE_THRESHOLD = 1024 * 1024 * 1024  # 1 GB

# Age thresholds in days
FRESH_DAYS = 7
RECENT_DAYS = 30
OLD_DAYS = 90


class AgeCategory(str, Enum):
    """How long ago a node_modules directory was last touched."""

    FRESH = "fresh"  # <= 7 days
    RECENT = "recent"  # <= 30 days
    OLD = "old"  # <= 90 days
    STALE = "stale"  # > 90 days


class SizeCategory(str, Enum):
    """Coarse size bucket used for coloring and smart selection."""

    SMALL = "small"
    MEDIUM = "medium"
    LARGE = "large"
    HUGE = "huge"


class SortOption(str, Enum):
    """Ways to order a list of entries."""

    SIZE_DESC = "size-desc"
    SIZE_ASC = "size-asc"
    DATE_DESC = "date-desc"
    DATE_ASC = "date-asc"
    NAME_ASC = "name-asc"
    NAME_DESC = "name-desc"
    PACKAGES_DESC = "packages-desc"
    PACKAGES_ASC = "packages-asc"


class DeletionErrorKind(str, Enum):
    """Classification of a failed deletion, used for user messaging."""

    SAFETY = "safety"
    PERMISSION = "permission"
    BUSY = "busy"
    NOT_EMPTY = "not_empty"
    OTHER = "other"


class PendingSize(BaseModel):
    """Size not computed yet (lazy scan)."""

    state: Literal["pending"] = "pending"


class ResolvedSize(BaseModel):
    """Size computed by one of the estimator strategies."""

    state: Literal["resolved"] = "resolved"
    bytes: int = Field(0, ge=0, description="Total size in bytes (method dependent)")
    package_count: int = Field(0, ge=0, description="Top-level packages")
    total_package_count: int = Field(0, ge=0, description="Packages at any depth")
    is_accelerated: bool = Field(False, description="Whether a native command produced the size")
    error: Optional[str] = Field(None, description="Set when the size could not be computed")


SizeState = Annotated[Union[PendingSize, ResolvedSize], Field(discriminator="state")]


class SizeResult(BaseModel):
    """Output of a single size estimation."""

    total_size: int = Field(0, ge=0)
    package_count: int = Field(0, ge=0)
    total_package_count: int = Field(0, ge=0)
    is_accelerated: bool = False

    def to_state(self) -> ResolvedSize:
        return ResolvedSize(
            bytes=self.total_size,
            package_count=self.package_count,
            total_package_count=self.total_package_count,
            is_accelerated=self.is_accelerated,
        )


class NodeModulesEntry(BaseModel):
    """A discovered node_modules directory and its metadata."""

    path: str = Field(..., description="Absolute path to the node_modules directory")
    project_path: str = Field(..., description="Directory containing node_modules")
    project_name: str = Field(..., description="Name from package.json or directory name")
    project_version: Optional[str] = Field(None, description="Version from package.json")
    repo_path: str = Field(..., description="Nearest ancestor holding a .git marker")
    size: SizeState = Field(default_factory=PendingSize)
    last_modified: datetime = Field(..., description="mtime of the node_modules directory")
    selected: bool = False
    is_favorite: bool = False
    age_category: AgeCategory = AgeCategory.FRESH
    size_category: Optional[SizeCategory] = Field(
        None, description="None while the size is pending"
    )

    @property
    def pending(self) -> bool:
        return isinstance(self.size, PendingSize)

    @property
    def size_bytes(self) -> int:
        if isinstance(self.size, ResolvedSize):
            return self.size.bytes
        return 0

    @property
    def package_count(self) -> int:
        if isinstance(self.size, ResolvedSize):
            return self.size.package_count
        return 0

    @property
    def total_package_count(self) -> int:
        if isinstance(self.size, ResolvedSize):
            return self.size.total_package_count
        return 0

    @property
    def is_accelerated(self) -> bool:
        return isinstance(self.size, ResolvedSize) and self.size.is_accelerated

    @property
    def size_human(self) -> str:
        """Human-readable size, or a placeholder while pending/failed."""
        from nmclean.utils import format_bytes

        if isinstance(self.size, PendingSize):
            return "calculating..."
        if self.size.error:
            return "error"
        return format_bytes(self.size.bytes)

    @property
    def last_modified_human(self) -> str:
        from nmclean.utils import format_relative_time

        return format_relative_time(self.last_modified)


class Candidate(BaseModel):
    """A node_modules location found by discovery, before analysis."""

    node_modules_path: str
    project_path: str


class DiscoveryResult(BaseModel):
    """Output of the directory sweep."""

    candidates: list[Candidate] = Field(default_factory=list)
    directories_scanned: int = 0
    errors: list[str] = Field(default_factory=list)


class ScanOptions(BaseModel):
    """Controls what gets scanned and how results are filtered."""

    root_path: str = Field(..., description="Root directory to scan")
    max_depth: Optional[int] = Field(None, ge=0, description="Project depth below root")
    exclude_patterns: list[str] = Field(default_factory=list)
    follow_symlinks: bool = False
    min_size_bytes: Optional[int] = Field(None, ge=0)
    older_than_days: Optional[int] = Field(None, ge=0)
    favorites: set[str] = Field(default_factory=set, description="Favorite project paths")


class ScanOutcome(BaseModel):
    """Aggregate result of a scan."""

    entries: list[NodeModulesEntry] = Field(default_factory=list)
    directories_scanned: int = 0
    errors: list[str] = Field(default_factory=list)


class DeleteOptions(BaseModel):
    """Safety and behavior switches for deletion."""

    dry_run: bool = False
    yes: bool = False
    force: bool = False
    check_running_processes: bool = True
    show_progress: bool = False


class SafetyCheck(BaseModel):
    """Verdict of the pre-deletion safety checks."""

    ok: bool
    reason: Optional[str] = None


class DeletionOutcome(BaseModel):
    """Result of a single deletion attempt."""

    entry: NodeModulesEntry
    success: bool = False
    error: Optional[str] = None
    error_kind: Optional[DeletionErrorKind] = None
    duration_ms: int = 0


class DeletionResult(BaseModel):
    """Results of a deletion batch."""

    total_attempted: int = 0
    successful: int = 0
    failed: int = 0
    bytes_freed: int = 0
    details: list[DeletionOutcome] = Field(default_factory=list)

    @property
    def bytes_freed_human(self) -> str:
        from nmclean.utils import format_bytes

        return format_bytes(self.bytes_freed)


class ScanStatistics(BaseModel):
    """Summary numbers for a list of entries."""

    total_projects: int = 0
    total_node_modules: int = 0
    total_size_bytes: int = 0
    selected_count: int = 0
    selected_size_bytes: int = 0
    average_age_days: int = 0
    stale_count: int = 0
