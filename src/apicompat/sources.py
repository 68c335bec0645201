"""Source trees the Go loader reads from.

A source exposes the files of one module at one revision, with paths
relative to the module root and slash-separated.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Protocol

from apicompat import git
from apicompat.errors import GitError


class Source(Protocol):
    def list_files(self) -> list[str]: ...

    def read(self, path: str) -> str | None: ...


class DirectorySource:
    """A module checked out on disk."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = Path(root)

    def __repr__(self) -> str:
        return f"DirectorySource({str(self.root)!r})"

    def list_files(self) -> list[str]:
        files: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self.root):
            dirnames[:] = sorted(d for d in dirnames if d != ".git")
            rel = Path(dirpath).relative_to(self.root).as_posix()
            for name in filenames:
                files.append(name if rel == "." else f"{rel}/{name}")
        return sorted(files)

    def read(self, path: str) -> str | None:
        try:
            return (self.root / path).read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return None


class GitRevisionSource:
    """A module as committed at *rev*, read straight from the object store."""

    def __init__(self, repo: str | os.PathLike[str], rev: str, subdir: str = "") -> None:
        self.repo = Path(repo)
        self.rev = rev
        self.subdir = subdir.strip("/")
        self._files: list[str] | None = None

    def __repr__(self) -> str:
        return f"GitRevisionSource({str(self.repo)!r}, {self.rev!r}, {self.subdir!r})"

    def _prefix(self) -> str:
        return self.subdir + "/" if self.subdir else ""

    def list_files(self) -> list[str]:
        if self._files is None:
            prefix = self._prefix()
            tracked = git.list_files_at_ref(self.rev, self.subdir, self.repo)
            self._files = [p[len(prefix) :] for p in tracked if p.startswith(prefix)]
        return self._files

    def read(self, path: str) -> str | None:
        return git.get_file_at_ref(self.rev, self._prefix() + path, self.repo)

    def verify(self) -> None:
        """Raise :class:`GitError` if the revision does not exist."""
        try:
            git.resolve_ref(self.rev, self.repo)
        except GitError as e:
            raise GitError(f"could not find revision {self.rev}: {e}", e.git_args) from e
