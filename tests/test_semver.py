"""Tests for Go-style semantic version helpers."""

from __future__ import annotations

import pytest

from apicompat import semver


class TestValidity:
    @pytest.mark.parametrize("v", ["v1.2.3", "v0.0.0", "v1.2.3-pre", "v1.2.3-rc.1+build.5", "v1", "v1.2"])
    def test_valid(self, v: str) -> None:
        assert semver.is_valid(v)

    @pytest.mark.parametrize("v", ["1.2.3", "v01.2.3", "v1.2.3.4", "v1.2-pre", "v1.2.3-01", "", "vx"])
    def test_invalid(self, v: str) -> None:
        assert not semver.is_valid(v)


class TestCanonical:
    def test_shorthand(self) -> None:
        assert semver.canonical("v1") == "v1.0.0"
        assert semver.canonical("v1.2") == "v1.2.0"

    def test_drops_build(self) -> None:
        assert semver.canonical("v1.2.3-pre+meta") == "v1.2.3-pre"

    def test_invalid(self) -> None:
        assert semver.canonical("1.2.3") == ""

    def test_major_minor(self) -> None:
        assert semver.major("v2.3.4") == "v2"
        assert semver.major_minor("v2.3.4") == "v2.3"
        assert semver.major("bad") == ""

    def test_prerelease(self) -> None:
        assert semver.prerelease("v1.0.0-rc.1") == "-rc.1"
        assert semver.prerelease("v1.0.0") == ""


class TestCompare:
    @pytest.mark.parametrize(
        ("a", "b"),
        [
            ("v1.0.0", "v1.0.1"),
            ("v1.9.0", "v1.10.0"),
            ("v1.0.0-alpha", "v1.0.0"),
            ("v1.0.0-alpha", "v1.0.0-alpha.1"),
            ("v1.0.0-alpha.1", "v1.0.0-alpha.beta"),
            ("v1.0.0-beta.2", "v1.0.0-beta.11"),
            ("bad", "v0.0.0"),
        ],
    )
    def test_ordering(self, a: str, b: str) -> None:
        assert semver.compare(a, b) == -1
        assert semver.compare(b, a) == 1

    def test_build_ignored(self) -> None:
        assert semver.compare("v1.0.0+a", "v1.0.0+b") == 0

    def test_shorthand_equal(self) -> None:
        assert semver.compare("v1", "v1.0.0") == 0

    def test_max_version(self) -> None:
        assert semver.max_version(["v1.2.0", "v1.10.0", "junk", "v1.9.9"]) == "v1.10.0"
        assert semver.max_version(["junk"]) == ""
