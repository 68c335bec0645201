"""Tests for Go build constraint evaluation."""

from __future__ import annotations

import pytest

from apicompat.config import LoadConfig
from apicompat.languages.go.build import (
    ConstraintSyntaxError,
    eval_go_build,
    match_constraints,
    match_file,
    match_file_name,
    match_tag,
)

LINUX = LoadConfig()
WINDOWS = LoadConfig(goos="windows", goarch="arm64")


class TestMatchTag:
    def test_os_and_arch(self) -> None:
        assert match_tag("linux", LINUX)
        assert match_tag("amd64", LINUX)
        assert not match_tag("windows", LINUX)

    def test_unix(self) -> None:
        assert match_tag("unix", LINUX)
        assert not match_tag("unix", WINDOWS)

    def test_custom_tags(self) -> None:
        assert not match_tag("integration", LINUX)
        assert match_tag("integration", LoadConfig(tags=frozenset({"integration"})))

    def test_cgo(self) -> None:
        assert not match_tag("cgo", LINUX)
        assert match_tag("cgo", LoadConfig(cgo=True))

    def test_release_tags(self) -> None:
        assert match_tag("go1.21", LINUX)
        assert not match_tag("go2", LINUX)


class TestFileName:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("a.go", True),
            ("a_linux.go", True),
            ("a_windows.go", False),
            ("a_linux_amd64.go", True),
            ("a_linux_arm64.go", False),
            ("a_arm64.go", False),
            ("sub/zz_generated.go", True),
            ("linux.go", True),
        ],
    )
    def test_suffixes(self, name: str, expected: bool) -> None:
        assert match_file_name(name, LINUX) is expected


class TestGoBuild:
    def test_expressions(self) -> None:
        assert eval_go_build(" linux && amd64", LINUX)
        assert eval_go_build(" windows || linux", LINUX)
        assert eval_go_build(" !windows", LINUX)
        assert not eval_go_build(" (linux || darwin) && !amd64", LINUX)

    def test_syntax_error(self) -> None:
        with pytest.raises(ConstraintSyntaxError):
            eval_go_build(" linux &&", LINUX)

    def test_unbalanced(self) -> None:
        with pytest.raises(ConstraintSyntaxError):
            eval_go_build(" (linux", LINUX)


class TestConstraints:
    def test_go_build_line(self) -> None:
        assert not match_constraints("//go:build windows\n\npackage a\n", LINUX)

    def test_plus_build_lines(self) -> None:
        src = "// +build linux darwin\n// +build !386\n\npackage a\n"
        assert match_constraints(src, LINUX)
        assert not match_constraints(src, WINDOWS)

    def test_go_build_wins(self) -> None:
        src = "//go:build linux\n// +build windows\n\npackage a\n"
        assert match_constraints(src, LINUX)

    def test_after_package_ignored(self) -> None:
        assert match_constraints("package a\n\n//go:build windows\n", LINUX)

    def test_block_comment_skipped(self) -> None:
        src = "/* license\n   text */\n//go:build ignore\n\npackage a\n"
        assert not match_constraints(src, LINUX)

    def test_match_file(self) -> None:
        assert match_file("a.go", "package a\n", LINUX)
        assert not match_file("a_windows.go", "package a\n", LINUX)
