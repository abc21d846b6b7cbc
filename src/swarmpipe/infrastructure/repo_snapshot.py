"""
Textual repository overview for agents that cannot browse files.

Lists the tree (skipping VCS, dependency and build directories) up to a
depth and entry budget, then appends excerpts of the files that usually
describe a project: README, manifests and build configuration.
"""

import logging
import os
from pathlib import Path

from swarmpipe.domain.interfaces import RepositorySnapshotInterface
from swarmpipe.domain.parsing import truncate

logger = logging.getLogger(__name__)

SKIPPED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".swarm",
        ".venv",
        "venv",
        "node_modules",
        "__pycache__",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
        "dist",
        "build",
        "target",
    }
)

KEY_FILES = (
    "README.md",
    "README.rst",
    "README",
    "package.json",
    "pyproject.toml",
    "setup.cfg",
    "Cargo.toml",
    "go.mod",
    "pom.xml",
    "build.gradle",
    "build.gradle.kts",
    "Makefile",
)


class FilesystemRepositorySnapshot(RepositorySnapshotInterface):
    """Walks the repository on disk."""

    def __init__(self, max_depth: int = 3, max_entries: int = 400, excerpt_chars: int = 4000):
        self._max_depth = max_depth
        self._max_entries = max_entries
        self._excerpt_chars = excerpt_chars

    def list_tree(self, repo_root: Path) -> list[str]:
        """Relative paths, directories suffixed with ``/``, in walk order."""
        entries: list[str] = []
        for current, dirs, files in os.walk(repo_root):
            rel = Path(current).relative_to(repo_root)
            depth = len(rel.parts)
            dirs[:] = sorted(d for d in dirs if d not in SKIPPED_DIRS)
            for name in dirs:
                entries.append(f"{(rel / name).as_posix()}/")
            if depth + 1 >= self._max_depth:
                dirs[:] = []
            for name in sorted(files):
                entries.append((rel / name).as_posix())
            if len(entries) >= self._max_entries:
                logger.debug("Repository listing capped at %d entries", self._max_entries)
                return entries[: self._max_entries]
        return entries

    def describe(self, repo_root: Path) -> str:
        repo_root = Path(repo_root)
        parts = ["Files:\n" + "\n".join(self.list_tree(repo_root))]
        for name in KEY_FILES:
            path = repo_root / name
            if not path.is_file():
                continue
            try:
                text = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning("Could not read %s: %s", path, e)
                continue
            parts.append(f"--- {name} ---\n{truncate(text, self._excerpt_chars)}")
        return "\n\n".join(parts)
