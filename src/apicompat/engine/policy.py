"""Version policy: suggest the next release version, or validate a proposed one."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

from apicompat import semver
from apicompat.errors import VersionError
from apicompat.modpath import split_path_version

logger = logging.getLogger(__name__)

PolicyMode = Literal["suggest", "validate"]


@dataclass(frozen=True)
class PolicyViolation:
    """Why a proposed release version was rejected."""

    version: str
    reason: str

    @property
    def message(self) -> str:
        return f"{self.version} is not a valid semantic version for this release.\n{self.reason}"

    def __str__(self) -> str:
        return self.message


def inc_decimal(decimal: str) -> str:
    """Return the decimal string *decimal* incremented by one."""
    digits = list(decimal)
    i = len(digits) - 1
    while i >= 0 and digits[i] == "9":
        digits[i] = "0"
        i -= 1
    if i >= 0:
        digits[i] = str(int(digits[i]) + 1)
    else:
        digits.insert(0, "1")
    return "".join(digits)


def split_version_numbers(version: str) -> tuple[str, str, str]:
    """Return the major, minor and patch numbers of *version* as strings."""
    if not version.startswith("v"):
        raise VersionError(f"version {version!r} does not start with 'v'", version)
    core = version[1:].split("+", 1)[0].split("-", 1)[0]
    parts = core.split(".")
    if len(parts) != 3:
        raise VersionError(f"version {version!r} should have three numbers", version)
    return parts[0], parts[1], parts[2]


def likely_first_version(version: str) -> bool:
    """Return True if *version* looks like the first release of its major version."""
    try:
        _, minor, patch = split_version_numbers(version)
    except VersionError:
        return False
    return (minor == "0" and patch == "0") or version in ("v0.1.0", "v0.0.1")


def suggest_version(base: str, has_compatible: bool, has_incompatible: bool) -> str:
    """Next version after *base* consistent with the observed changes.

    Incompatible changes bump the major version, except below v1 where
    anything goes and the minor version is bumped instead.
    """
    major, minor, patch = split_version_numbers(base)
    if has_incompatible and major != "0":
        major, minor, patch = inc_decimal(major), "0", "0"
    elif has_compatible or (has_incompatible and major == "0"):
        minor, patch = inc_decimal(minor), "0"
    else:
        patch = inc_decimal(patch)
    return f"v{major}.{minor}.{patch}"


def validate_version(
    release: str,
    base: str,
    module_path: str,
    *,
    has_compatible: bool,
    has_incompatible: bool,
    has_errors: bool = False,
) -> PolicyViolation | None:
    """Check *release* against the module path and the observed changes.

    Returns None when the version is acceptable. An empty *base* means there
    is nothing to compare with, so only the module path rules apply.
    """
    if has_errors:
        return PolicyViolation(release, "Errors were found in one or more packages.")

    _, suffix, ok = split_path_version(module_path)
    if not ok:
        return PolicyViolation(release, f"{module_path}: could not find version suffix in module path")
    release_major = semver.major(release)
    if suffix:
        path_major = suffix[1:]
        if path_major != release_major:
            return PolicyViolation(
                release,
                f"The major version {release_major} does not match the major version suffix\n"
                f"in the module path: {module_path}",
            )
    elif release_major not in ("v0", "v1"):
        return PolicyViolation(
            release,
            f"The module path does not end with the major version suffix /{release_major},\n"
            "which is required for major versions v2 or greater.",
        )

    if not base or semver.major(base) == "v0":
        return None
    if has_incompatible and release_major == semver.major(base):
        return PolicyViolation(release, "There are incompatible changes.")
    if has_compatible and semver.major_minor(base) == semver.major_minor(release):
        return PolicyViolation(
            release,
            "There are compatible changes, but the major and minor version numbers\n"
            f"are the same as the base version {base}.",
        )
    return None


class VersionPolicy:
    """Turns change flags plus versions into a verdict.

    In ``validate`` mode a release version was proposed and is checked; in
    ``suggest`` mode the next version is computed from the base.
    """

    def __init__(self, module_path: str, base: str = "", release: str = "") -> None:
        self.module_path = module_path
        self.base = base
        self.release = release

    @property
    def mode(self) -> PolicyMode:
        return "validate" if self.release else "suggest"

    def validate(
        self, *, has_compatible: bool, has_incompatible: bool, has_errors: bool = False
    ) -> PolicyViolation | None:
        if not self.release:
            raise VersionError("no release version to validate")
        violation = validate_version(
            self.release,
            self.base,
            self.module_path,
            has_compatible=has_compatible,
            has_incompatible=has_incompatible,
            has_errors=has_errors,
        )
        if violation is not None:
            logger.debug("%s rejected: %s", self.release, violation.reason.splitlines()[0])
        return violation

    def suggest(self, *, has_compatible: bool, has_incompatible: bool) -> str:
        """Return the suggested version, or ``""`` without a base version."""
        if not self.base:
            return ""
        return suggest_version(self.base, has_compatible, has_incompatible)

    def is_acceptable(self, *, has_compatible: bool, has_incompatible: bool) -> bool:
        """Success criterion once errors and diagnostics are ruled out."""
        if self.release:
            return self.validate(has_compatible=has_compatible, has_incompatible=has_incompatible) is None
        return not has_incompatible or not self.base or semver.major(self.base) == "v0"
