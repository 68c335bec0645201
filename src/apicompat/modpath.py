"""Module path checks and go.mod helpers."""

from __future__ import annotations

import logging
import os
import posixpath
import re
from pathlib import Path

from apicompat.errors import ModulePathError, ModuleRootError

logger = logging.getLogger(__name__)

_ELEM_RE = re.compile(r"^[A-Za-z0-9._~-]+$")
_HOST_RE = re.compile(r"^[a-z0-9.-]+$")
_MODULE_RE = re.compile(r"^\s*module\s+(\"[^\"]*\"|`[^`]*`|\S+)", re.MULTILINE)
_REQUIRE_RE = re.compile(r"^\s*require\b", re.MULTILINE)


def dir_major_suffix(path: str) -> str:
    """Return a trailing ``vN`` path element, loosely.

    Looser than :func:`split_path_version` so that bad suffixes such as
    ``v0``, ``v02`` or ``v1.2`` can be reported. ``gopkg.in`` is not handled.
    """
    i = len(path)
    while i > 0 and (path[i - 1].isdigit() or path[i - 1] == "."):
        i -= 1
    if i <= 1 or i == len(path) or path[i - 1] != "v" or path[i - 2] != "/":
        return ""
    return path[i - 1 :]


def _split_gopkg_in(path: str) -> tuple[str, str, bool]:
    i = len(path)
    if path.endswith("-unstable"):
        i -= len("-unstable")
    while i > 0 and path[i - 1].isdigit():
        i -= 1
    if i <= 1 or path[i - 1] != "v" or path[i - 2] != ".":
        return path, "", False
    prefix, path_major = path[: i - 2], path[i - 2 :]
    if len(path_major) <= 2 or (path_major[2] == "0" and path_major != ".v0"):
        return path, "", False
    return prefix, path_major, True


def split_path_version(path: str) -> tuple[str, str, bool]:
    """Split *path* into ``(prefix, major_suffix, ok)``.

    ``major_suffix`` is ``"/vN"`` (N >= 2), ``".vN"`` for gopkg.in paths, or
    ``""``. ``ok`` is False for suffixes that are never valid (``/v1``,
    ``/v0``, leading zeros, dots).
    """
    if path.startswith("gopkg.in/"):
        return _split_gopkg_in(path)
    i = len(path)
    dot = False
    while i > 0 and (path[i - 1].isdigit() or path[i - 1] == "."):
        if path[i - 1] == ".":
            dot = True
        i -= 1
    if i <= 1 or i == len(path) or path[i - 1] != "v" or path[i - 2] != "/":
        return path, "", True
    prefix, path_major = path[: i - 2], path[i - 2 :]
    if dot or len(path_major) <= 2 or path_major[2] == "0" or path_major == "/v1":
        return path, "", False
    return prefix, path_major, True


def check_mod_path(mod_path: str) -> None:
    """Raise :class:`ModulePathError` if *mod_path* cannot name a module."""
    if mod_path.startswith("/") or os.path.isabs(mod_path):
        raise ModulePathError(
            f"module path {mod_path!r} may not be an absolute path.\n"
            "It must be an address where your module may be found.",
            mod_path,
        )
    suffix = dir_major_suffix(mod_path)
    if suffix in ("v0", "v1"):
        raise ModulePathError(
            f"module path {mod_path!r} has major version suffix {suffix!r}.\n"
            "A major version suffix is only allowed for v2 or later.",
            mod_path,
        )
    if suffix.startswith("v0"):
        raise ModulePathError(
            f"module path {mod_path!r} has major version suffix {suffix!r}.\n"
            "A major version may not have a leading zero.",
            mod_path,
        )
    if "." in suffix:
        raise ModulePathError(
            f"module path {mod_path!r} has major version suffix {suffix!r}.\n"
            "A major version may not contain dots.",
            mod_path,
        )

    if not mod_path:
        raise ModulePathError("malformed module path \"\": empty string", mod_path)
    elems = mod_path.split("/")
    for elem in elems:
        if not elem:
            raise ModulePathError(
                f"malformed module path {mod_path!r}: empty path element", mod_path
            )
        if not _ELEM_RE.match(elem):
            raise ModulePathError(
                f"malformed module path {mod_path!r}: invalid char in path element {elem!r}",
                mod_path,
            )
        if elem.startswith(".") or elem.endswith("."):
            raise ModulePathError(
                f"malformed module path {mod_path!r}: leading or trailing dot in path element",
                mod_path,
            )
    host = elems[0]
    if "." not in host or not _HOST_RE.match(host) or host.startswith("-"):
        raise ModulePathError(
            f"malformed module path {mod_path!r}: missing dot in first path element",
            mod_path,
        )
    if not split_path_version(mod_path)[2]:
        raise ModulePathError(
            f"{mod_path}: could not find version suffix in module path", mod_path
        )


def tag_prefix_for(mod_path: str, code_dir: str) -> tuple[str, str]:
    """Return ``(code_root, tag_prefix)`` for a module in *code_dir*.

    *code_dir* is the slash-separated module directory relative to the
    repository root, ``""`` for the root itself. For ``github.com/a/b/c/v2``
    declared in ``c/v2/go.mod`` the code root is ``github.com/a/b`` and the
    tag prefix is ``c/``.
    """
    prefix, path_major, ok = split_path_version(mod_path)
    if not ok:
        raise ModulePathError(f"{mod_path}: could not find version suffix in module path", mod_path)
    if not code_dir:
        return prefix, ""

    if path_major.startswith("."):
        raise ModulePathError(
            f"{mod_path}: module path starts with gopkg.in and must be declared "
            "in the root directory of the repository",
            mod_path,
        )
    if not path_major:
        if not mod_path.endswith("/" + code_dir):
            raise ModulePathError(
                f"{mod_path}: module path must end with {code_dir!r}, "
                f"since it is in subdirectory {code_dir!r}",
                mod_path,
            )
        suffix = "/" + code_dir
        tag_prefix = code_dir + "/"
    elif mod_path.endswith("/" + code_dir):
        # Major version subdirectory: the tag prefix excludes the vN element.
        suffix = "/" + code_dir
        tag_prefix = code_dir[: len(code_dir) - len(path_major) + 1]
    elif mod_path.endswith("/" + code_dir + path_major):
        suffix = "/" + code_dir + path_major
        tag_prefix = code_dir + "/"
    else:
        raise ModulePathError(
            f"{mod_path}: module path must end with {code_dir!r} or "
            f"{code_dir + path_major!r}, since it is in subdirectory {code_dir!r}",
            mod_path,
        )
    return mod_path[: len(mod_path) - len(suffix)], tag_prefix


def package_path_for(mod_path: str, rel_dir: str) -> str:
    """Import path of the package in *rel_dir* (slash-separated) of the module."""
    rel_dir = rel_dir.strip("/")
    if not rel_dir or rel_dir == ".":
        return mod_path
    return posixpath.join(mod_path, rel_dir)


def find_module_root(start: str | os.PathLike[str]) -> Path:
    """Walk up from *start* to the nearest directory holding a go.mod file."""
    d = Path(start).resolve()
    for candidate in (d, *d.parents):
        if (candidate / "go.mod").is_file():
            logger.debug("module root: %s", candidate)
            return candidate
    raise ModuleRootError(str(start))


def read_module_path(go_mod: str, filename: str = "go.mod") -> str:
    """Return the path from the ``module`` directive of go.mod text."""
    m = _MODULE_RE.search(_strip_comments(go_mod))
    if m is None:
        raise ModulePathError(f"no module statement in {filename}")
    path = m.group(1)
    if path[:1] in ('"', "`"):
        path = path[1:-1]
    return path


def has_requirements(go_mod: str) -> bool:
    """Return True if go.mod text declares any ``require`` directive."""
    return _REQUIRE_RE.search(_strip_comments(go_mod)) is not None


def _strip_comments(text: str) -> str:
    return "\n".join(line.split("//", 1)[0] for line in text.splitlines())
