"""Git repository access.

All git subprocess calls live here. Nothing else touches git.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from apicompat import semver
from apicompat.errors import GitError, PendingChangesError

logger = logging.getLogger(__name__)


def _run_git(args: list[str], repo_path: str | Path = ".") -> str:
    """Run a git command and return its stdout, raising GitError on failure."""
    result = subprocess.run(
        ["git", *args],
        capture_output=True,
        text=True,
        cwd=str(repo_path),
        check=False,
    )
    if result.returncode != 0:
        stderr = result.stderr.strip()
        # Extract just the first meaningful line from git's stderr
        first_line = stderr.split("\n")[0] if stderr else "unknown error"
        if "not a git repository" in stderr.lower():
            msg = f"Not a git repository: {repo_path}"
        elif "unknown revision" in stderr.lower() or "bad revision" in stderr.lower():
            msg = f"Invalid revision: {first_line}"
        else:
            msg = f"git {args[0]} failed: {first_line}"
        logger.error(msg)
        raise GitError(msg, tuple(args))
    return result.stdout


def find_repo_root(start: str | Path) -> Path:
    """Return the nearest directory at or above *start* that contains ``.git``."""
    start = Path(start).resolve()
    for d in (start, *start.parents):
        if (d / ".git").exists():
            return d
    msg = f"could not locate repository root for directory {start}"
    logger.error(msg)
    raise GitError(msg)


def has_pending_changes(root: str | Path) -> bool:
    """Return True if the working tree at *root* has uncommitted changes."""
    try:
        out = _run_git(["status", "--porcelain"], root)
    except GitError as e:
        raise GitError(
            f"could not determine if there were uncommitted changes in the current repository: {e}",
            e.git_args,
        ) from e
    return bool(out.strip())


def ensure_no_pending_changes(root: str | Path) -> None:
    """Raise :class:`PendingChangesError` if *root* has uncommitted changes."""
    if has_pending_changes(root):
        raise PendingChangesError(str(root))


def resolve_ref(ref: str, repo_path: str | Path = ".") -> str:
    """Return the commit hash *ref* points to."""
    return _run_git(["rev-parse", "--verify", f"{ref}^{{commit}}"], repo_path).strip()


def list_files_at_ref(ref: str, subdir: str = "", repo_path: str | Path = ".") -> list[str]:
    """List files tracked at *ref*, optionally below *subdir*, repository-relative."""
    args = ["ls-tree", "-r", "--name-only", "-z", ref]
    if subdir:
        args.extend(["--", subdir.rstrip("/") + "/"])
    out = _run_git(args, repo_path)
    return sorted(p for p in out.split("\0") if p)


def get_file_at_ref(
    ref: str,
    file_path: str,
    repo_path: str | Path = ".",
) -> str | None:
    """Retrieve file contents at a specific git ref. Returns None if missing."""
    result = subprocess.run(
        ["git", "show", f"{ref}:{file_path}"],
        capture_output=True,
        text=True,
        cwd=str(repo_path),
        check=False,
    )
    if result.returncode != 0:
        return None
    return result.stdout


def list_tags(prefix: str = "", repo_path: str | Path = ".", *, merged: str | None = None) -> list[str]:
    """List tag names starting with *prefix*, optionally only those reachable from *merged*."""
    args = ["tag", "--list"]
    if merged:
        args.extend(["--merged", merged])
    args.append(f"{prefix}*")
    out = _run_git(args, repo_path)
    return [t for t in out.splitlines() if t]


def recent_tag(prefix: str, major: str, repo_path: str | Path = ".", rev: str = "HEAD") -> str:
    """Return the highest ``prefix + version`` tag reachable from *rev*.

    Only canonical versions with major version *major* count. Returns ``""``
    when there is none.
    """
    candidates = []
    for tag in list_tags(prefix, repo_path, merged=rev):
        version = tag[len(prefix) :]
        if semver.canonical(version) == version and semver.major(version) == major:
            candidates.append(version)
    best = semver.max_version(candidates)
    logger.debug("recent tag for %s%s.*: %s", prefix, major, best or "<none>")
    return prefix + best if best else ""
