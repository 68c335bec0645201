"""Shared test fixtures."""

from __future__ import annotations

import shutil
import subprocess
import textwrap
from pathlib import Path
from typing import Any

import pytest

from apicompat.config import LoadConfig
from apicompat.engine._types import PackageSnapshot

MODULE = "example.com/m"

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


class MemorySource:
    """Module files held in a dict, for loader tests."""

    def __init__(self, files: dict[str, str]) -> None:
        self.files = {name: textwrap.dedent(text) for name, text in files.items()}

    def list_files(self) -> list[str]:
        return sorted(self.files)

    def read(self, path: str) -> str | None:
        return self.files.get(path)


@pytest.fixture
def load_go() -> Any:
    """Load Go sources given as ``{relative path: text}`` into snapshots keyed by path."""
    from apicompat.languages.go import load_module

    def _load(
        files: dict[str, str],
        module_path: str = MODULE,
        config: LoadConfig | None = None,
        declared_path: str = "",
    ) -> dict[str, PackageSnapshot]:
        pkgs = load_module(MemorySource(files), module_path, config, declared_path=declared_path)
        return {p.path: p for p in pkgs}

    return _load


def write_files(root: Path, files: dict[str, str]) -> None:
    for name, text in files.items():
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(text))


def _git(repo: Path, *args: str) -> None:
    subprocess.run(["git", *args], cwd=str(repo), capture_output=True, check=True)


class GitRepo:
    """A throwaway repository with helpers to commit and tag file sets."""

    def __init__(self, root: Path) -> None:
        self.root = root
        _git(root, "init")
        _git(root, "config", "user.email", "t@t.com")
        _git(root, "config", "user.name", "T")
        _git(root, "config", "commit.gpgsign", "false")

    def commit(self, files: dict[str, str], message: str = "commit", tag: str | None = None) -> None:
        write_files(self.root, files)
        _git(self.root, "add", "-A")
        _git(self.root, "commit", "-m", message)
        if tag:
            _git(self.root, "tag", tag)

    def remove(self, *names: str) -> None:
        for name in names:
            (self.root / name).unlink()


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    return GitRepo(tmp_path)
