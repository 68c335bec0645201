"""Go-style semantic versions: ``vMAJOR[.MINOR[.PATCH]][-PRERELEASE][+BUILD]``.

The shorthands ``v1`` and ``v1.2`` are valid and expand to ``v1.0.0`` and
``v1.2.0``. Invalid versions compare lower than every valid one and have an
empty canonical form, so callers can test ``canonical(v) == v``.
"""

from __future__ import annotations

import re
from functools import cmp_to_key

_NUM = r"0|[1-9][0-9]*"
_IDENT = r"[0-9A-Za-z-]+"

_VERSION_RE = re.compile(
    rf"^v(?P<major>{_NUM})"
    rf"(?:\.(?P<minor>{_NUM})(?:\.(?P<patch>{_NUM})"
    rf"(?:-(?P<prerelease>{_IDENT}(?:\.{_IDENT})*))?"
    rf"(?:\+(?P<build>{_IDENT}(?:\.{_IDENT})*))?)?)?$"
)


def _parse(v: str) -> dict[str, str] | None:
    m = _VERSION_RE.match(v)
    if m is None:
        return None
    parts = m.groupdict()
    if parts["prerelease"]:
        for ident in parts["prerelease"].split("."):
            # Numeric prerelease identifiers must not have leading zeros.
            if ident.isdigit() and len(ident) > 1 and ident[0] == "0":
                return None
    return {
        "major": parts["major"],
        "minor": parts["minor"] or "0",
        "patch": parts["patch"] or "0",
        "prerelease": parts["prerelease"] or "",
        "build": parts["build"] or "",
    }


def is_valid(v: str) -> bool:
    return _parse(v) is not None


def canonical(v: str) -> str:
    """Return ``vX.Y.Z[-pre]`` for *v*, dropping build metadata, or ``""``."""
    p = _parse(v)
    if p is None:
        return ""
    out = f"v{p['major']}.{p['minor']}.{p['patch']}"
    if p["prerelease"]:
        out += "-" + p["prerelease"]
    return out


def major(v: str) -> str:
    """Return ``vX`` for *v*, or ``""`` when invalid."""
    p = _parse(v)
    return f"v{p['major']}" if p else ""


def major_minor(v: str) -> str:
    """Return ``vX.Y`` for *v*, or ``""`` when invalid."""
    p = _parse(v)
    return f"v{p['major']}.{p['minor']}" if p else ""


def prerelease(v: str) -> str:
    p = _parse(v)
    return "-" + p["prerelease"] if p and p["prerelease"] else ""


def _cmp_num(a: str, b: str) -> int:
    if len(a) != len(b):
        return -1 if len(a) < len(b) else 1
    return (a > b) - (a < b)


def _cmp_prerelease(a: str, b: str) -> int:
    if a == b:
        return 0
    # A version without prerelease has higher precedence.
    if not a:
        return 1
    if not b:
        return -1
    xs, ys = a.split("."), b.split(".")
    for x, y in zip(xs, ys):
        if x == y:
            continue
        x_num, y_num = x.isdigit(), y.isdigit()
        if x_num and y_num:
            return _cmp_num(x, y)
        if x_num != y_num:
            return -1 if x_num else 1
        return -1 if x < y else 1
    return (len(xs) > len(ys)) - (len(xs) < len(ys))


def compare(v: str, w: str) -> int:
    """Return -1, 0 or 1. Build metadata is ignored."""
    pv, pw = _parse(v), _parse(w)
    if pv is None and pw is None:
        return 0
    if pv is None:
        return -1
    if pw is None:
        return 1
    for key in ("major", "minor", "patch"):
        c = _cmp_num(pv[key], pw[key])
        if c:
            return c
    return _cmp_prerelease(pv["prerelease"], pw["prerelease"])


def max_version(versions: list[str]) -> str:
    """Return the highest valid version in *versions*, or ``""``."""
    valid = [v for v in versions if is_valid(v)]
    if not valid:
        return ""
    return max(valid, key=cmp_to_key(compare))
