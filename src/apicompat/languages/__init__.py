"""Tree-sitter front ends, keyed by language name."""

from __future__ import annotations

import functools
import importlib
import posixpath
from dataclasses import dataclass
from types import ModuleType

import tree_sitter


@dataclass(frozen=True)
class FrontEnd:
    """Which files belong to a language and where its loader lives."""

    name: str
    module: str
    extensions: tuple[str, ...]
    test_suffixes: tuple[str, ...] = ()

    def owns(self, filename: str) -> bool:
        return posixpath.splitext(filename)[1] in self.extensions

    def is_test(self, filename: str) -> bool:
        return posixpath.basename(filename).endswith(self.test_suffixes) if self.test_suffixes else False


FRONT_ENDS: dict[str, FrontEnd] = {
    "go": FrontEnd("go", "apicompat.languages.go", (".go",), ("_test.go",)),
}


def is_source_file(filename: str, language: str) -> bool:
    """True for non-test source files of *language*."""
    front_end = FRONT_ENDS.get(language)
    return front_end is not None and front_end.owns(filename) and not front_end.is_test(filename)


def get_language_module(language: str) -> ModuleType:
    front_end = FRONT_ENDS.get(language)
    if front_end is None:
        msg = f"Unsupported language: {language}"
        raise ValueError(msg)
    return importlib.import_module(front_end.module)


@functools.lru_cache(maxsize=None)
def _language(name: str) -> tree_sitter.Language:
    return get_language_module(name).get_language()


def get_parser(language: str) -> tree_sitter.Parser:
    """Return a fresh parser; the compiled grammar is loaded once per language."""
    return tree_sitter.Parser(_language(language))
