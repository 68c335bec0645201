"""End-to-end pipeline: two revisions of a module → Report."""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path

from apicompat import git, semver
from apicompat.config import LoadConfig
from apicompat.engine._types import PackageSnapshot
from apicompat.engine.differ import diff_packages
from apicompat.engine.policy import likely_first_version
from apicompat.engine.report import Report
from apicompat.errors import ModulePathError, ModuleRootError, VersionError
from apicompat.languages.go import load_module
from apicompat.modpath import (
    check_mod_path,
    find_module_root,
    has_requirements,
    read_module_path,
    split_path_version,
    tag_prefix_for,
)
from apicompat.sources import DirectorySource, GitRevisionSource, Source

logger = logging.getLogger(__name__)

GO_SUM_DIAGNOSTIC = "go.sum is not committed to version control."


def check_versions(base: str, release: str) -> None:
    """Reject non-canonical versions and a base that is not older than the release."""
    for flag, version in (("base", base), ("version", release)):
        if version and semver.canonical(version) != version:
            raise VersionError(f"--{flag}={version} is not a canonical semantic version", version)
    if base and release and semver.compare(base, release) >= 0:
        raise VersionError(
            f"base version ({base}) must be lower than release version ({release})", release
        )


def compare_snapshots(
    old_pkgs: list[PackageSnapshot],
    new_pkgs: list[PackageSnapshot],
    module_path: str,
    *,
    base: str = "",
    release: str = "",
    tag_prefix: str = "",
    should_compare: bool = True,
    diagnostics: list[str] | None = None,
) -> Report:
    """Pair two loaded revisions by package path and aggregate the results."""
    report = Report(
        module_path=module_path,
        base_version=base,
        release_version=release,
        tag_prefix=tag_prefix,
        diagnostics=list(diagnostics or []),
    )
    for pr in diff_packages(old_pkgs, new_pkgs, module_path, should_compare=should_compare):
        report.add_package(pr)
    return report


def _load(source: Source, module_path: str, config: LoadConfig, declared_path: str = "") -> list[PackageSnapshot]:
    t0 = time.monotonic()
    pkgs = load_module(source, module_path, config, declared_path=declared_path)
    elapsed_ms = (time.monotonic() - t0) * 1000
    logger.debug("Loaded %d packages from %r in %.1f ms", len(pkgs), source, elapsed_ms)
    return pkgs


def _base_module_path(go_mod: str | None, release_path: str, base: str) -> str:
    """Module path declared at the base revision, checked against the release's."""
    if go_mod is None:
        return release_path
    base_path = read_module_path(go_mod, f"go.mod at {base}")
    if base_path != release_path and split_path_version(base_path)[0] != split_path_version(release_path)[0]:
        raise ModulePathError(
            f"module path changed from {base_path} in {base} to {release_path} in the release",
            release_path,
        )
    return base_path


def _detect_base(repo_root: Path, module_path: str, tag_prefix: str) -> str:
    """Highest tagged version reachable from HEAD for the module's major version."""
    _, path_major, _ = split_path_version(module_path)
    if path_major:
        tag = git.recent_tag(tag_prefix, "v" + path_major.lstrip("/.v"), repo_root)
    else:
        tag = git.recent_tag(tag_prefix, "v1", repo_root) or git.recent_tag(tag_prefix, "v0", repo_root)
    return tag[len(tag_prefix) :] if tag else ""


def make_release_report(
    repo_dir: str | os.PathLike[str] = ".",
    *,
    base: str = "",
    release: str = "",
    config: LoadConfig | None = None,
) -> Report:
    """Compare the committed HEAD of the module in *repo_dir* against a base version.

    Without *base*, the most recent reachable tag for the module's major
    version is used. Raises :class:`~apicompat.errors.UsageError` or
    :class:`~apicompat.errors.GitError` on bad input; package problems end
    up in the report.
    """
    t0 = time.monotonic()
    config = config or LoadConfig()
    check_versions(base, release)

    module_root = find_module_root(repo_dir)
    repo_root = git.find_repo_root(module_root)
    git.ensure_no_pending_changes(repo_root)
    code_dir = module_root.relative_to(repo_root).as_posix()
    if code_dir == ".":
        code_dir = ""

    go_mod = (module_root / "go.mod").read_text(encoding="utf-8")
    module_path = read_module_path(go_mod)
    check_mod_path(module_path)
    _, tag_prefix = tag_prefix_for(module_path, code_dir)

    if not base:
        base = _detect_base(repo_root, module_path, tag_prefix)
        if base:
            logger.debug("Using base version %s", base)
            check_versions(base, release)
        elif not likely_first_version(release):
            raise VersionError(
                "could not detect base version. Use --base to set it explicitly.", release
            )
    should_compare = bool(base)

    head = GitRevisionSource(repo_root, "HEAD", code_dir)
    diagnostics: list[str] = []
    if has_requirements(go_mod) and "go.sum" not in head.list_files():
        diagnostics.append(GO_SUM_DIAGNOSTIC)

    old_pkgs: list[PackageSnapshot] = []
    if base:
        base_src = GitRevisionSource(repo_root, tag_prefix + base, code_dir)
        base_src.verify()
        declared = _base_module_path(base_src.read("go.mod"), module_path, base)
        old_pkgs = _load(base_src, module_path, config, declared)
    new_pkgs = _load(head, module_path, config)

    report = compare_snapshots(
        old_pkgs,
        new_pkgs,
        module_path,
        base=base,
        release=release,
        tag_prefix=tag_prefix,
        should_compare=should_compare,
        diagnostics=diagnostics,
    )
    logger.debug("Release report for %s built in %.1f ms", module_path, (time.monotonic() - t0) * 1000)
    return report


def _read_go_mod(root: Path) -> str:
    go_mod = root / "go.mod"
    if not go_mod.is_file():
        raise ModuleRootError(str(root))
    return go_mod.read_text(encoding="utf-8")


def compare_directories(
    old_dir: str | os.PathLike[str],
    new_dir: str | os.PathLike[str],
    *,
    base: str = "",
    release: str = "",
    config: LoadConfig | None = None,
) -> Report:
    """Compare two module checkouts on disk, without git."""
    config = config or LoadConfig()
    check_versions(base, release)
    old_root, new_root = Path(old_dir), Path(new_dir)
    module_path = read_module_path(_read_go_mod(new_root))
    check_mod_path(module_path)
    declared = _base_module_path(_read_go_mod(old_root), module_path, base or str(old_root))

    old_pkgs = _load(DirectorySource(old_root), module_path, config, declared)
    new_pkgs = _load(DirectorySource(new_root), module_path, config)
    return compare_snapshots(old_pkgs, new_pkgs, module_path, base=base, release=release)
