"""Loader configuration.

The loader never reads the process environment itself. The CLI builds a
:class:`LoadConfig` (with ``GOOS`` / ``GOARCH`` fallbacks) and passes it down.
"""

from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_GOOS = "linux"
DEFAULT_GOARCH = "amd64"


@dataclass(frozen=True)
class LoadConfig:
    """Build context used to select which Go files belong to a package."""

    goos: str = DEFAULT_GOOS
    goarch: str = DEFAULT_GOARCH
    tags: frozenset[str] = field(default_factory=frozenset)
    cgo: bool = False

    @classmethod
    def from_options(
        cls,
        goos: str | None = None,
        goarch: str | None = None,
        tags: str | None = None,
        *,
        cgo: bool = False,
    ) -> LoadConfig:
        """Build a config from CLI-style values. ``tags`` is comma separated."""
        tag_set = frozenset(t.strip() for t in (tags or "").split(",") if t.strip())
        return cls(
            goos=goos or DEFAULT_GOOS,
            goarch=goarch or DEFAULT_GOARCH,
            tags=tag_set,
            cgo=cgo,
        )
