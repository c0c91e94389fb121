"""Helpers for inspecting a cloned working tree."""

import os
from pathlib import Path

from auto_heal.ledger.models import DEPENDENCY_DIRS

MAX_SOURCE_HINTS = 200

SKIPPED_DIRS = DEPENDENCY_DIRS | {"dist", "build", "coverage", ".pytest_cache", ".mypy_cache"}


def repo_name_from_url(url: str) -> str:
    """Derive a directory-friendly repository name from a remote URL.

    Args:
        url: Remote URL (e.g. https://github.com/org/project.git)

    Returns:
        Repository name (e.g. "project")
    """
    name = url.rstrip("/").split("/")[-1].split(":")[-1]
    if name.endswith(".git"):
        name = name[: -len(".git")]
    return name or "repository"


def list_source_files(root: Path, limit: int = MAX_SOURCE_HINTS) -> list[str]:
    """List repository-relative files to help the oracle target the right ones.

    Only ``src/`` is listed when it exists; otherwise the whole tree is.
    Hidden, dependency and build directories are skipped.

    Args:
        root: Working tree root
        limit: Maximum number of paths returned

    Returns:
        POSIX paths relative to root, directories walked in sorted order
    """
    base = root / "src" if (root / "src").is_dir() else root
    files: list[str] = []

    for dirpath, dirnames, filenames in os.walk(base):
        dirnames[:] = sorted(d for d in dirnames if d not in SKIPPED_DIRS and not d.startswith("."))
        for filename in sorted(filenames):
            if filename.startswith("."):
                continue
            files.append((Path(dirpath) / filename).relative_to(root).as_posix())
            if len(files) >= limit:
                return files

    return files
