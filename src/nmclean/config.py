"""User configuration: ignore patterns and favorite projects.

Both files are plain text, one entry per line. Blank lines and lines
starting with "#" are skipped. Missing or unreadable files yield empty
results.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field

log = logging.getLogger(__name__)

IGNORE_FILENAME = ".onmignore"
FAVORITES_FILENAME = ".onmfavorites"


class Config(BaseModel):
    """Resolved locations of the user's configuration files."""

    ignore_files: list[Path] = Field(
        default_factory=list,
        description="Ignore-pattern files, read in order",
    )
    favorites_file: Optional[Path] = Field(None, description="Favorites file")

    @classmethod
    def from_environment(
        cls,
        cwd: Optional[Path] = None,
        home: Optional[Path] = None,
    ) -> "Config":
        """
        Build the default configuration.

        Looks for .onmignore in the working directory and the home
        directory, and .onmfavorites in the home directory.
        """
        cwd = Path(cwd or os.getcwd()).resolve()
        home = Path(home or Path.home()).resolve()

        ignore_files = [cwd / IGNORE_FILENAME]
        if home / IGNORE_FILENAME not in ignore_files:
            ignore_files.append(home / IGNORE_FILENAME)

        return cls(ignore_files=ignore_files, favorites_file=home / FAVORITES_FILENAME)


def read_list_file(path: Path) -> list[str]:
    """Read non-blank, non-comment lines from a file."""
    if not path.exists():
        return []

    try:
        with open(path, encoding="utf-8") as f:
            lines = [line.strip() for line in f]
    except (OSError, UnicodeDecodeError) as e:
        log.warning("Could not read %s: %s", path, e)
        return []

    return [line for line in lines if line and not line.startswith("#")]


def load_ignore_patterns(config: Config) -> list[str]:
    """Exclusion globs from every configured ignore file."""
    patterns: list[str] = []
    for ignore_file in config.ignore_files:
        for pattern in read_list_file(ignore_file):
            if pattern not in patterns:
                patterns.append(pattern)
    return patterns


def load_favorites(config: Config) -> set[str]:
    """Favorite project paths (absolute, ~ expanded)."""
    if config.favorites_file is None:
        return set()
    return {
        os.path.abspath(os.path.expanduser(line)) for line in read_list_file(config.favorites_file)
    }
