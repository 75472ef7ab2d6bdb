"""Shared fixtures for nmclean tests."""

import json
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from nmclean.models import NodeModulesEntry, PendingSize, ResolvedSize
from nmclean.utils import get_age_category, get_size_category


def build_entry(
    path: str = "/projects/app/node_modules",
    size_bytes: int | None = 0,
    selected: bool = False,
    days_old: int = 0,
    is_favorite: bool = False,
    project_name: str | None = None,
) -> NodeModulesEntry:
    """Build an entry without touching the filesystem. size_bytes=None means pending."""
    project_path = str(Path(path).parent)
    last_modified = datetime.now() - timedelta(days=days_old)
    if size_bytes is None:
        size = PendingSize()
        size_category = None
    else:
        size = ResolvedSize(bytes=size_bytes, package_count=1, total_package_count=3)
        size_category = get_size_category(size_bytes)

    return NodeModulesEntry(
        path=path,
        project_path=project_path,
        project_name=project_name or Path(project_path).name,
        repo_path=project_path,
        size=size,
        last_modified=last_modified,
        selected=selected,
        is_favorite=is_favorite,
        age_category=get_age_category(last_modified),
        size_category=size_category,
    )


@pytest.fixture
def make_entry():
    return build_entry


@pytest.fixture
def make_project():
    """Create a project directory with node_modules and optional packages."""

    def _make(
        parent: Path,
        name: str,
        packages: dict[str, int] | None = None,
        manifest: dict | None = None,
    ) -> Path:
        project = parent / name
        node_modules = project / "node_modules"
        node_modules.mkdir(parents=True)
        for package, size in (packages or {}).items():
            pkg_dir = node_modules / package
            pkg_dir.mkdir(parents=True, exist_ok=True)
            (pkg_dir / "index.js").write_bytes(b"x" * size)
        if manifest is not None:
            (project / "package.json").write_text(json.dumps(manifest))
        return node_modules

    return _make
