"""Tests for the type equivalence engine."""

from __future__ import annotations

from apicompat.engine._types import (
    Array,
    Basic,
    Chan,
    Field,
    Interface,
    InterfaceMethod,
    Map,
    Method,
    Named,
    Opaque,
    Pointer,
    Signature,
    Slice,
    Struct,
    TypeDesc,
)
from apicompat.engine.equivalence import (
    Comparison,
    Direction,
    Verdict,
    compare,
    compare_declared,
    implements,
    method_set,
)

PKG = "example.com/m"
INT = Basic("int")
STRING = Basic("string")
ERROR = Basic("error")


def _named(name: str, underlying: TypeDesc | None = None, pkg: str = PKG) -> Named:
    return Named(pkg, name, underlying, pkg_name=pkg.rsplit("/", 1)[-1])


def _messages(comparison: Comparison) -> list[tuple[str, str, bool]]:
    return [(d.path, d.message, d.compatible) for d in comparison.deltas]


class TestBasics:
    def test_reflexive(self) -> None:
        for t in (INT, Slice(INT), Map(STRING, INT), Chan(INT), Array(INT, "3"), Opaque("x")):
            assert compare(t, t).verdict is Verdict.IDENTICAL

    def test_same_basic(self) -> None:
        assert compare(Basic("int"), Basic("int")).identical

    def test_different_basic(self) -> None:
        c = compare(INT, STRING)
        assert c.verdict is Verdict.INCOMPATIBLE
        assert _messages(c) == [("", "changed from int to string", False)]

    def test_category_change(self) -> None:
        c = compare(INT, Slice(INT))
        assert _messages(c) == [("", "changed from int to []int", False)]

    def test_container_restates_replacement(self) -> None:
        c = compare(Slice(INT), Slice(STRING))
        assert _messages(c) == [("", "changed from []int to []string", False)]

    def test_array_length(self) -> None:
        c = compare(Array(INT, "3"), Array(INT, "4"))
        assert _messages(c) == [("", "changed from [3]int to [4]int", False)]

    def test_channel_direction(self) -> None:
        c = compare(Chan(INT), Chan(INT, "recv"))
        assert c.verdict is Verdict.INCOMPATIBLE

    def test_map_key(self) -> None:
        assert compare(Map(STRING, INT), Map(INT, INT)).verdict is Verdict.INCOMPATIBLE

    def test_opaque_by_text(self) -> None:
        assert compare(Opaque("List[T]"), Opaque("List[T]")).identical
        assert not compare(Opaque("List[T]"), Opaque("List[U]")).identical


class TestNamed:
    def test_same_exported_name_is_identical(self) -> None:
        old = _named("T", Struct((Field("X", INT),)))
        new = _named("T", Struct((Field("X", STRING),)))
        # Internal changes are reported at the declaration, not at usage sites.
        assert compare(old, new).identical

    def test_different_names(self) -> None:
        c = compare(_named("A", INT), _named("B", INT))
        assert _messages(c) == [("", "changed from m.A to m.B", False)]

    def test_unexported_unfolded(self) -> None:
        old = _named("t", Struct((Field("X", INT),)))
        new = _named("t", Struct((Field("X", STRING),)))
        c = compare(old, new)
        assert _messages(c) == [(".X", "changed from int to string", False)]

    def test_unexported_matches_literal(self) -> None:
        old = _named("t", Struct((Field("X", INT),)))
        assert compare(old, Struct((Field("X", INT),))).identical

    def test_internal_package_unfolded(self) -> None:
        old = _named("T", INT, pkg=PKG + "/internal/x")
        new = _named("T", STRING, pkg=PKG + "/internal/x")
        assert compare(old, new).verdict is Verdict.INCOMPATIBLE

    def test_external_compared_by_name(self) -> None:
        old = Named("io", "Reader", pkg_name="io")
        new = Named("io", "Reader", pkg_name="io")
        assert compare(old, new).identical

    def test_cycle_terminates(self) -> None:
        old = _named("node")
        old.underlying = Struct((Field("Next", Pointer(old)), Field("V", INT)))
        new = _named("node")
        new.underlying = Struct((Field("Next", Pointer(new)), Field("V", INT)))
        assert compare(old, new).identical

    def test_cycle_reports_real_difference(self) -> None:
        old = _named("node")
        old.underlying = Struct((Field("Next", Pointer(old)), Field("V", INT)))
        new = _named("node")
        new.underlying = Struct((Field("Next", Pointer(new)), Field("V", STRING)))
        assert _messages(compare(old, new)) == [(".V", "changed from int to string", False)]

    def test_mutual_recursion(self) -> None:
        def build(value: TypeDesc) -> Named:
            a, b = _named("a"), _named("b")
            a.underlying = Struct((Field("B", Pointer(b)),))
            b.underlying = Struct((Field("A", Pointer(a)), Field("V", value)))
            return a

        assert compare(build(INT), build(INT)).identical
        assert not compare(build(INT), build(STRING)).identical


class TestStruct:
    def test_field_added(self) -> None:
        c = compare(Struct((Field("X", INT),)), Struct((Field("X", INT), Field("Y", INT))))
        assert _messages(c) == [(".Y", "added", True)]

    def test_field_removed(self) -> None:
        c = compare(Struct((Field("X", INT), Field("Y", INT))), Struct((Field("X", INT),)))
        assert _messages(c) == [(".Y", "removed", False)]

    def test_unexported_fields_ignored(self) -> None:
        c = compare(Struct((Field("x", INT),)), Struct((Field("x", STRING), Field("y", INT))))
        assert c.identical

    def test_field_order_ignored(self) -> None:
        c = compare(Struct((Field("X", INT), Field("Y", INT))), Struct((Field("Y", INT), Field("X", INT))))
        assert c.identical

    def test_embedding_change(self) -> None:
        base = _named("Base", Struct())
        c = compare(Struct((Field("Base", base, embedded=True),)), Struct((Field("Base", base),)))
        assert _messages(c) == [(".Base", "changed from embedded to named field", False)]


class TestInterface:
    READ = InterfaceMethod("Read", Signature((Slice(Basic("uint8")),), (INT, ERROR)))
    CLOSE = InterfaceMethod("Close", Signature((), (ERROR,)))

    def test_added_method_input(self) -> None:
        c = compare(Interface((self.READ,)), Interface((self.CLOSE, self.READ)), Direction.INPUT)
        assert _messages(c) == [(".Close", "added", False)]

    def test_added_method_output(self) -> None:
        c = compare(Interface((self.READ,)), Interface((self.CLOSE, self.READ)), Direction.OUTPUT)
        assert c.verdict is Verdict.COMPATIBLE

    def test_removed_method_input(self) -> None:
        c = compare(Interface((self.CLOSE, self.READ)), Interface((self.READ,)), Direction.INPUT)
        assert c.verdict is Verdict.COMPATIBLE

    def test_removed_method_output(self) -> None:
        c = compare(Interface((self.CLOSE, self.READ)), Interface((self.READ,)), Direction.OUTPUT)
        assert _messages(c) == [(".Close", "removed", False)]

    def test_both_direction_is_strict(self) -> None:
        assert not compare(Interface((self.READ,)), Interface((self.CLOSE, self.READ))).deltas[0].compatible
        assert not compare(Interface((self.CLOSE, self.READ)), Interface((self.READ,))).deltas[0].compatible

    def test_changed_method_signature(self) -> None:
        new = InterfaceMethod("Close", Signature((INT,), (ERROR,)))
        c = compare(Interface((self.CLOSE,)), Interface((new,)), Direction.OUTPUT)
        assert _messages(c) == [(".Close", "changed from func() error to func(int) error", False)]

    def test_named_interface_usage_directional(self) -> None:
        old = _named("Closer", Interface((self.CLOSE,)))
        new = _named("Closer", Interface((self.CLOSE, self.READ)))
        param = compare(Signature((old,)), Signature((new,)), Direction.OUTPUT)
        assert _messages(param) == [("(param 0)", "method Read added to m.Closer", False)]
        result = compare(Signature((), (old,)), Signature((), (new,)), Direction.OUTPUT)
        assert result.identical

    def test_same_interface_as_param_and_result(self) -> None:
        write = InterfaceMethod("Write", Signature((Slice(Basic("uint8")),), (INT, ERROR)))
        old = _named("I", Interface((self.CLOSE, self.READ)))
        new = _named("I", Interface((self.READ, write)))
        c = compare(Signature((old,), (old,)), Signature((new,), (new,)), Direction.OUTPUT)
        assert _messages(c) == [
            ("(param 0)", "method Write added to m.I", False),
            ("(result 0)", "method Close removed from m.I", False),
        ]


class TestSignature:
    def test_param_type_change(self) -> None:
        c = compare(Signature((INT,)), Signature((STRING,)), Direction.OUTPUT)
        assert _messages(c) == [("(param 0)", "changed from int to string", False)]

    def test_param_added(self) -> None:
        c = compare(Signature((INT,)), Signature((INT, INT)), Direction.OUTPUT)
        assert _messages(c) == [("(param 1)", "added", False)]

    def test_trailing_variadic_is_compatible(self) -> None:
        c = compare(Signature((INT,)), Signature((INT, Slice(STRING)), variadic=True), Direction.OUTPUT)
        assert _messages(c) == [("(param 1)", "added variadic parameter", True)]

    def test_variadic_toggle(self) -> None:
        c = compare(Signature((Slice(INT),)), Signature((Slice(INT),), variadic=True), Direction.OUTPUT)
        assert _messages(c) == [("(param 0)", "changed to variadic", False)]

    def test_result_added(self) -> None:
        c = compare(Signature((), (INT,)), Signature((), (INT, ERROR)), Direction.OUTPUT)
        assert _messages(c) == [("(result 1)", "added", False)]

    def test_result_removed(self) -> None:
        c = compare(Signature((), (INT, ERROR)), Signature((), (INT,)), Direction.OUTPUT)
        assert _messages(c) == [("(result 1)", "removed", False)]

    def test_parameter_direction_flips(self) -> None:
        # A callback parameter receives values from the library.
        old_cb = Signature((Interface((TestInterface.READ,)),))
        new_cb = Signature((Interface((TestInterface.CLOSE, TestInterface.READ)),))
        c = compare(Signature((old_cb,)), Signature((new_cb,)), Direction.OUTPUT)
        assert c.verdict is Verdict.COMPATIBLE


class TestImplements:
    def _file(self) -> Named:
        f = _named("File", Struct())
        f.methods["Close"] = Method("Close", Signature((), (ERROR,)), pointer_receiver=True)
        f.methods["Name"] = Method("Name", Signature((), (STRING,)))
        return f

    def test_method_sets(self) -> None:
        f = self._file()
        assert set(method_set(f)) == {"Name"}
        assert set(method_set(Pointer(f))) == {"Close", "Name"}

    def test_implements(self) -> None:
        closer = Interface((TestInterface.CLOSE,))
        assert implements(Pointer(self._file()), closer)
        assert not implements(self._file(), closer)

    def test_interface_to_implementer_in_result(self) -> None:
        closer = _named("Closer", Interface((TestInterface.CLOSE,)))
        f = self._file()
        c = compare(Signature((), (closer,)), Signature((), (Pointer(f),)), Direction.OUTPUT)
        assert _messages(c) == [("(result 0)", "changed from m.Closer to *m.File, which implements it", True)]

    def test_interface_to_implementer_in_param(self) -> None:
        closer = _named("Closer", Interface((TestInterface.CLOSE,)))
        c = compare(Signature((closer,)), Signature((Pointer(self._file()),)), Direction.OUTPUT)
        assert c.verdict is Verdict.INCOMPATIBLE

    def test_implementer_in_slice_result(self) -> None:
        closer = _named("Closer", Interface((TestInterface.CLOSE,)))
        old = Signature((), (Slice(closer),))
        new = Signature((), (Slice(Pointer(self._file())),))
        c = compare(old, new, Direction.OUTPUT)
        assert _messages(c) == [("(result 0)", "changed from []m.Closer to []*m.File", False)]

    def test_implementer_in_map_result(self) -> None:
        closer = _named("Closer", Interface((TestInterface.CLOSE,)))
        old = Signature((), (Map(STRING, closer),))
        new = Signature((), (Map(STRING, Pointer(self._file())),))
        c = compare(old, new, Direction.OUTPUT)
        assert _messages(c) == [
            ("(result 0)", "changed from map[string]m.Closer to map[string]*m.File", False)
        ]

    def test_implementer_in_nested_func_result(self) -> None:
        closer = _named("Closer", Interface((TestInterface.CLOSE,)))
        old = Signature((), (Signature((), (closer,)),))
        new = Signature((), (Signature((), (Pointer(self._file()),)),))
        assert compare(old, new, Direction.OUTPUT).verdict is Verdict.INCOMPATIBLE

    def test_implementer_in_method_result(self) -> None:
        closer = _named("Closer", Interface((TestInterface.CLOSE,)))
        old = _named("Opener", Struct())
        old.methods["Open"] = Method("Open", Signature((), (closer,)))
        new = _named("Opener", Struct())
        new.methods["Open"] = Method("Open", Signature((), (Pointer(self._file()),)))
        c = compare_declared(old, new)
        assert _messages(c) == [
            (".Open(result 0)", "changed from m.Closer to *m.File, which implements it", True)
        ]


class TestDeclared:
    def test_method_added(self) -> None:
        old = _named("T", Struct())
        new = _named("T", Struct())
        new.methods["M"] = Method("M", Signature())
        assert _messages(compare_declared(old, new)) == [(".M", "added", True)]

    def test_method_removed(self) -> None:
        old = _named("T", Struct())
        old.methods["M"] = Method("M", Signature())
        assert _messages(compare_declared(old, _named("T", Struct()))) == [(".M", "removed", False)]

    def test_unexported_method_ignored(self) -> None:
        old = _named("T", Struct())
        old.methods["m"] = Method("m", Signature())
        assert compare_declared(old, _named("T", Struct())).identical

    def test_receiver_value_to_pointer(self) -> None:
        old = _named("T", Struct())
        old.methods["M"] = Method("M", Signature())
        new = _named("T", Struct())
        new.methods["M"] = Method("M", Signature(), pointer_receiver=True)
        assert _messages(compare_declared(old, new)) == [
            (".M", "changed from value receiver to pointer receiver", False)
        ]

    def test_receiver_pointer_to_value(self) -> None:
        old = _named("T", Struct())
        old.methods["M"] = Method("M", Signature(), pointer_receiver=True)
        new = _named("T", Struct())
        new.methods["M"] = Method("M", Signature())
        assert compare_declared(old, new).verdict is Verdict.COMPATIBLE

    def test_interface_declaration_method_added(self) -> None:
        old = _named("I", Interface((TestInterface.READ,)))
        new = _named("I", Interface((TestInterface.CLOSE, TestInterface.READ)))
        assert _messages(compare_declared(old, new)) == [(".Close", "added", False)]

    def test_interface_declaration_method_removed(self) -> None:
        old = _named("I", Interface((TestInterface.CLOSE, TestInterface.READ)))
        new = _named("I", Interface((TestInterface.READ,)))
        assert _messages(compare_declared(old, new)) == [(".Close", "removed", True)]

    def test_alias_to_same_structure(self) -> None:
        old = _named("T", Struct((Field("X", INT),)))
        assert compare_declared(old, Struct((Field("X", INT),))).identical

    def test_underlying_change(self) -> None:
        c = compare_declared(_named("T", INT), _named("T", STRING))
        assert _messages(c) == [("", "changed from int to string", False)]

    def test_self_referential_declaration(self) -> None:
        old = _named("List")
        old.underlying = Struct((Field("Next", Pointer(old)),))
        new = _named("List")
        new.underlying = Struct((Field("Next", Pointer(new)),))
        assert compare_declared(old, new).identical
