"""Tests for the declaration differ and package pairing."""

from __future__ import annotations

from apicompat.engine._types import (
    Basic,
    Field,
    Interface,
    InterfaceMethod,
    Method,
    Named,
    PackageSnapshot,
    Signature,
    Struct,
    Symbol,
)
from apicompat.engine.differ import compare_symbols, diff_package, diff_packages, diff_symbols
from apicompat.engine.extractor import extract_symbols

MOD = "example.com/m"
INT = Basic("int")
STRING = Basic("string")


def _pkg(path: str = MOD, *symbols: Symbol, errors: list[str] | None = None) -> PackageSnapshot:
    return PackageSnapshot(
        path=path,
        name=path.rsplit("/", 1)[-1],
        symbols={s.name: s for s in symbols},
        errors=errors or [],
    )


def _messages(changes) -> list[str]:
    return [c.message for c in changes]


class TestDiffSymbols:
    def test_added_and_removed_in_name_order(self) -> None:
        old = _pkg(MOD, Symbol(MOD, "A", "var", INT), Symbol(MOD, "C", "var", INT))
        new = _pkg(MOD, Symbol(MOD, "B", "var", INT), Symbol(MOD, "C", "var", INT))
        changes = diff_symbols(extract_symbols(old), extract_symbols(new))
        assert _messages(changes) == ["A: removed", "B: added"]
        assert [c.compatible for c in changes] == [False, True]
        assert changes[0].path == "A"

    def test_unexported_ignored(self) -> None:
        old = _pkg(MOD, Symbol(MOD, "helper", "func", Signature()))
        new = _pkg(MOD)
        assert diff_symbols(extract_symbols(old), extract_symbols(new)) == []


class TestCompareSymbols:
    def test_kind_change(self) -> None:
        changes = compare_symbols(Symbol(MOD, "X", "var", INT), Symbol(MOD, "X", "const", INT, value="1"))
        assert _messages(changes) == ["X: changed from var to const"]
        assert not changes[0].compatible

    def test_const_value_change(self) -> None:
        changes = compare_symbols(
            Symbol(MOD, "Max", "const", INT, value="1"),
            Symbol(MOD, "Max", "const", INT, value="2"),
        )
        assert _messages(changes) == ["Max: value changed from 1 to 2"]
        assert not changes[0].compatible

    def test_const_unchanged(self) -> None:
        old = Symbol(MOD, "Max", "const", INT, value="1")
        assert compare_symbols(old, Symbol(MOD, "Max", "const", INT, value="1")) == []

    def test_func_param_type(self) -> None:
        changes = compare_symbols(
            Symbol(MOD, "F", "func", Signature((INT,), ())),
            Symbol(MOD, "F", "func", Signature((STRING,), ())),
        )
        assert _messages(changes) == ["F(param 0): changed from int to string"]
        assert changes[0].path == "F(param 0)"

    def test_var_type(self) -> None:
        changes = compare_symbols(Symbol(MOD, "V", "var", INT), Symbol(MOD, "V", "var", STRING))
        assert _messages(changes) == ["V: changed from int to string"]

    def test_struct_field_added(self) -> None:
        old = Named(MOD, "T", Struct((Field("X", INT),)))
        new = Named(MOD, "T", Struct((Field("X", INT), Field("Y", INT))))
        changes = compare_symbols(Symbol(MOD, "T", "type", old), Symbol(MOD, "T", "type", new))
        assert _messages(changes) == ["T.Y: added"]
        assert changes[0].compatible

    def test_struct_field_removed(self) -> None:
        old = Named(MOD, "T", Struct((Field("X", INT), Field("Y", INT))))
        new = Named(MOD, "T", Struct((Field("X", INT),)))
        changes = compare_symbols(Symbol(MOD, "T", "type", old), Symbol(MOD, "T", "type", new))
        assert _messages(changes) == ["T.Y: removed"]
        assert not changes[0].compatible

    def test_method_removed(self) -> None:
        old = Named(MOD, "T", Struct())
        old.methods["Close"] = Method("Close", Signature((), (Basic("error"),)))
        new = Named(MOD, "T", Struct())
        changes = compare_symbols(Symbol(MOD, "T", "type", old), Symbol(MOD, "T", "type", new))
        assert _messages(changes) == ["T.Close: removed"]

    def test_interface_method_added(self) -> None:
        old = Named(MOD, "I", Interface())
        new = Named(MOD, "I", Interface((InterfaceMethod("M", Signature()),)))
        changes = compare_symbols(Symbol(MOD, "I", "type", old), Symbol(MOD, "I", "type", new))
        assert _messages(changes) == ["I.M: added"]
        assert not changes[0].compatible


class TestDiffPackage:
    def test_errors_suppress_comparison(self) -> None:
        old = _pkg(MOD, Symbol(MOD, "A", "var", INT))
        new = _pkg(MOD, errors=["a.go:1:1: undefined: x"])
        pr = diff_package(old, new)
        assert pr.changes == []
        assert pr.new_errors == ["a.go:1:1: undefined: x"]

    def test_changes(self) -> None:
        pr = diff_package(_pkg(MOD, Symbol(MOD, "A", "var", INT)), _pkg(MOD))
        assert pr.path == MOD
        assert _messages(pr.changes) == ["A: removed"]


class TestDiffPackages:
    def test_removed_and_added(self) -> None:
        reports = diff_packages([_pkg(MOD + "/a")], [_pkg(MOD + "/b")], MOD)
        assert [(r.path, _messages(r.changes)) for r in reports] == [
            (MOD + "/a", ["package removed"]),
            (MOD + "/b", ["package added"]),
        ]
        assert not reports[0].changes[0].compatible
        assert reports[1].changes[0].compatible

    def test_internal_packages_skipped(self) -> None:
        old = [_pkg(MOD + "/internal/x", Symbol(MOD + "/internal/x", "A", "var", INT))]
        new = [_pkg(MOD + "/internal/x"), _pkg(MOD + "/internal/y")]
        assert diff_packages(old, new, MOD) == []

    def test_internal_errors_reported(self) -> None:
        new = [_pkg(MOD + "/internal/x", errors=["x.go:1:1: bad"])]
        reports = diff_packages([_pkg(MOD + "/internal/x")], new, MOD)
        assert len(reports) == 1
        assert reports[0].changes == []
        assert reports[0].new_errors == ["x.go:1:1: bad"]

    def test_without_base_only_errors(self) -> None:
        new = [_pkg(MOD), _pkg(MOD + "/bad", errors=["b.go:1:1: bad"])]
        reports = diff_packages([], new, MOD, should_compare=False)
        assert [r.path for r in reports] == [MOD + "/bad"]
        assert reports[0].changes == []

    def test_unchanged_package_has_empty_report(self) -> None:
        sym = Symbol(MOD, "A", "var", INT)
        reports = diff_packages([_pkg(MOD, sym)], [_pkg(MOD, sym)], MOD)
        assert len(reports) == 1
        assert reports[0].empty

    def test_sorted_by_path(self) -> None:
        new = [_pkg(MOD + "/z"), _pkg(MOD + "/a")]
        reports = diff_packages([], new, MOD)
        assert [r.path for r in reports] == [MOD + "/a", MOD + "/z"]
