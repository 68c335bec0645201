"""Tests for the front-end registry."""

import pytest

from apicompat.languages import FRONT_ENDS, get_language_module, get_parser, is_source_file


def test_registered_front_ends() -> None:
    assert set(FRONT_ENDS) == {"go"}


class TestIsSourceFile:
    def test_go_sources(self) -> None:
        assert is_source_file("a.go", "go")
        assert is_source_file("pkg/a_linux.go", "go")

    def test_tests_excluded(self) -> None:
        assert not is_source_file("a_test.go", "go")
        assert not is_source_file("pkg/a_test.go", "go")

    def test_other_files(self) -> None:
        assert not is_source_file("go.sum", "go")
        assert not is_source_file("a.go", "rust")


def test_unsupported_language() -> None:
    with pytest.raises(ValueError, match="Unsupported language: rust"):
        get_language_module("rust")


def test_go_parser() -> None:
    tree = get_parser("go").parse(b"package m\n")
    assert tree.root_node.type == "source_file"
