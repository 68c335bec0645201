"""Type equivalence: decides whether two type descriptions differ, and how.

Standalone module: no loader or report imports, only the type model.

Comparisons are directional. A value that flows from the caller into the
library (a parameter) tolerates different changes than one that flows back
out (a result). The direction is tracked per occurrence and flips at every
function parameter list.

Named types terminate recursion. Exported named types compare by qualified
name; their internals are compared once, at their declaration. Unexported
and internal-package named types are unfolded wherever they appear, guarded
by the set of (old uid, new uid) pairs currently being compared.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from apicompat.engine._types import (
    Array,
    Basic,
    Chan,
    Interface,
    Map,
    Named,
    Opaque,
    Pointer,
    Signature,
    Slice,
    Struct,
    TypeDesc,
    format_type,
    is_exported,
)
from apicompat.engine.extractor import is_inlined


class Direction(enum.Enum):
    """Which way values of a type flow across the API boundary."""

    INPUT = "input"  # caller -> library: parameters
    OUTPUT = "output"  # library -> caller: results, constants
    BOTH = "both"  # read and written by callers: fields, variables

    def flip(self) -> Direction:
        if self is Direction.INPUT:
            return Direction.OUTPUT
        if self is Direction.OUTPUT:
            return Direction.INPUT
        return self


class Verdict(enum.Enum):
    IDENTICAL = "identical"
    COMPATIBLE = "compatible"
    INCOMPATIBLE = "incompatible"


@dataclass(frozen=True)
class Delta:
    """One difference found inside a type.

    ``path`` is relative to the compared type: ``.X`` for a member,
    ``(param 1)`` / ``(result 0)`` for signature positions, ``""`` for the
    type itself.
    """

    path: str
    message: str
    compatible: bool
    mismatch: bool = False  # whole-type replacement; containers restate it


@dataclass(frozen=True)
class Comparison:
    deltas: tuple[Delta, ...] = ()

    @property
    def verdict(self) -> Verdict:
        if not self.deltas:
            return Verdict.IDENTICAL
        if all(d.compatible for d in self.deltas):
            return Verdict.COMPATIBLE
        return Verdict.INCOMPATIBLE

    @property
    def identical(self) -> bool:
        return not self.deltas


def compare(old: TypeDesc, new: TypeDesc, direction: Direction = Direction.BOTH) -> Comparison:
    """Compare two type descriptions occurring at a site with *direction*."""
    return Comparison(tuple(_Comparer().top(old, new, direction)))


def compare_declared(old: TypeDesc, new: TypeDesc) -> Comparison:
    """Compare two type declarations, unfolding named types on both sides.

    Either side may be an alias target rather than a :class:`Named`; then
    only its structure (and no methods) is compared.
    """
    return Comparison(tuple(_Comparer().declared(old, new)))


# ---------------------------------------------------------------------------
# Method sets
# ---------------------------------------------------------------------------


def method_set(t: TypeDesc) -> dict[str, Signature]:
    """Return the methods callable on a value of type *t*."""
    if isinstance(t, Interface):
        return {m.name: m.signature for m in t.methods}
    if isinstance(t, Named):
        if isinstance(t.underlying, Interface):
            return method_set(t.underlying)
        return {m.name: m.signature for m in t.methods.values() if not m.pointer_receiver}
    if isinstance(t, Pointer) and isinstance(t.elem, Named):
        if isinstance(t.elem.underlying, Interface):
            return {}
        return {m.name: m.signature for m in t.elem.methods.values()}
    return {}


def _as_interface(t: TypeDesc) -> Interface | None:
    if isinstance(t, Interface):
        return t
    if isinstance(t, Named) and isinstance(t.underlying, Interface):
        return t.underlying
    return None


def implements(t: TypeDesc, iface: Interface) -> bool:
    """Return True if *t* has every method of *iface* with an identical signature."""
    if iface.embedded:
        return False
    methods = method_set(t)
    for m in iface.methods:
        sig = methods.get(m.name)
        if sig is None or not compare(m.signature, sig).identical:
            return False
    return True


# ---------------------------------------------------------------------------
# Comparison
# ---------------------------------------------------------------------------


class _Comparer:
    """Compares type pairs. One instance per top-level comparison call."""

    def __init__(self) -> None:
        self._visiting: set[tuple[int, int]] = set()

    def top(self, old: TypeDesc, new: TypeDesc, direction: Direction) -> list[Delta]:
        """Compare a declaration's own type; only here may results widen."""
        if isinstance(old, Signature) and isinstance(new, Signature):
            return self._signature(old, new, direction, "", top=True)
        return self.compare(old, new, direction, "")

    def compare(self, old: TypeDesc, new: TypeDesc, direction: Direction, path: str) -> list[Delta]:
        if old is new:
            return []

        if isinstance(old, Named) and isinstance(new, Named):
            if is_inlined(old) and is_inlined(new):
                return self._unfold(old, new, direction, path)
            if old.qualified_name == new.qualified_name:
                return self._named_usage(old, new, direction, path)
            return [self._mismatch(old, new, path)]

        # An unexported named type and a literal of the same structure are
        # indistinguishable to callers.
        if isinstance(old, Named) and is_inlined(old) and not isinstance(new, Named):
            return self._unfold(old, new, direction, path)
        if isinstance(new, Named) and is_inlined(new) and not isinstance(old, Named):
            return self._unfold(old, new, direction, path)

        if type(old) is not type(new):
            return [self._mismatch(old, new, path)]

        if isinstance(old, Basic):
            return [] if old.name == new.name else [self._mismatch(old, new, path)]
        if isinstance(old, Opaque):
            return [] if old.text == new.text else [self._mismatch(old, new, path)]
        if isinstance(old, (Pointer, Slice)):
            return self._container(old, new, [(old.elem, new.elem)], direction, path)
        if isinstance(old, Array):
            if old.length != new.length:
                return [self._mismatch(old, new, path)]
            return self._container(old, new, [(old.elem, new.elem)], direction, path)
        if isinstance(old, Map):
            return self._container(
                old, new, [(old.key, new.key), (old.value, new.value)], direction, path
            )
        if isinstance(old, Chan):
            if old.direction != new.direction:
                return [self._mismatch(old, new, path)]
            return self._container(old, new, [(old.elem, new.elem)], Direction.BOTH, path)
        if isinstance(old, Struct):
            return self._struct(old, new, path)
        if isinstance(old, Interface):
            return self._interface(old, new, direction, path)
        if isinstance(old, Signature):
            return self._signature(old, new, direction, path)

        # Unknown category: report rather than guess.
        return [self._mismatch(old, new, path)]

    # -- declarations -----------------------------------------------------

    def declared(self, old: TypeDesc, new: TypeDesc) -> list[Delta]:
        old_under, old_methods = _declaration_parts(old)
        new_under, new_methods = _declaration_parts(new)
        key = (getattr(old, "uid", 0), getattr(new, "uid", 0))
        self._visiting.add(key)
        try:
            if old_under is None or new_under is None:
                if isinstance(old, Named) and isinstance(new, Named):
                    if old.qualified_name == new.qualified_name:
                        return []
                return [self._mismatch(old, new, "")]
            if isinstance(old_under, Interface) and isinstance(new_under, Interface):
                # Implementers must provide every method: additions break them.
                deltas = self._interface(old_under, new_under, Direction.INPUT, "")
            else:
                deltas = self.compare(old_under, new_under, Direction.BOTH, "")
            deltas.extend(self._methods(old_methods, new_methods, ""))
            return deltas
        finally:
            self._visiting.discard(key)

    # -- named types ------------------------------------------------------

    def _unfold(self, old: TypeDesc, new: TypeDesc, direction: Direction, path: str) -> list[Delta]:
        key = (getattr(old, "uid", 0), getattr(new, "uid", 0))
        if key in self._visiting:
            # Already being compared further up: assume equal here; a real
            # difference surfaces on the non-recursive path.
            return []
        self._visiting.add(key)
        try:
            old_under, old_methods = _declaration_parts(old)
            new_under, new_methods = _declaration_parts(new)
            assert old_under is not None and new_under is not None
            deltas = self.compare(old_under, new_under, direction, path)
            deltas.extend(self._methods(old_methods, new_methods, path))
            return deltas
        finally:
            self._visiting.discard(key)

    def _named_usage(self, old: Named, new: Named, direction: Direction, path: str) -> list[Delta]:
        """Same exported named type at a usage site.

        The declaration reports what changed inside the type. For interfaces
        the usage site also applies the directional rule: an added method
        breaks callers who pass their own implementation in, a removed method
        breaks callers who call it on a value they got back.
        """
        old_iface, new_iface = _as_interface(old), _as_interface(new)
        if old_iface is None or new_iface is None:
            return []
        old_names, new_names = old_iface.member_names(), new_iface.member_names()
        deltas: list[Delta] = []
        name = format_type(new)
        if direction in (Direction.INPUT, Direction.BOTH):
            for m in sorted(new_names - old_names):
                deltas.append(Delta(path, f"method {m} added to {name}", False))
        if direction in (Direction.OUTPUT, Direction.BOTH):
            for m in sorted(old_names - new_names):
                deltas.append(Delta(path, f"method {m} removed from {name}", False))
        return deltas

    def _methods(
        self,
        old_methods: dict,
        new_methods: dict,
        path: str,
    ) -> list[Delta]:
        deltas: list[Delta] = []
        for name in sorted(old_methods):
            if not is_exported(name):
                continue
            om = old_methods[name]
            mpath = f"{path}.{name}"
            nm = new_methods.get(name)
            if nm is None:
                deltas.append(Delta(mpath, "removed", False))
                continue
            if not om.pointer_receiver and nm.pointer_receiver:
                deltas.append(
                    Delta(mpath, "changed from value receiver to pointer receiver", False)
                )
            elif om.pointer_receiver and not nm.pointer_receiver:
                deltas.append(Delta(mpath, "changed from pointer receiver to value receiver", True))
            deltas.extend(
                self._signature(om.signature, nm.signature, Direction.OUTPUT, mpath, top=True)
            )
        for name in sorted(new_methods):
            if is_exported(name) and name not in old_methods:
                deltas.append(Delta(f"{path}.{name}", "added", True))
        return deltas

    # -- composite types --------------------------------------------------

    def _container(
        self,
        old: TypeDesc,
        new: TypeDesc,
        pairs: list[tuple[TypeDesc, TypeDesc]],
        direction: Direction,
        path: str,
    ) -> list[Delta]:
        deltas: list[Delta] = []
        for o, n in pairs:
            deltas.extend(self.compare(o, n, direction, path))
        replaced = [d for d in deltas if d.mismatch and d.path == path]
        if not replaced:
            return deltas
        rest = [d for d in deltas if not (d.mismatch and d.path == path)]
        return [self._mismatch(old, new, path), *rest]

    def _struct(self, old: Struct, new: Struct, path: str) -> list[Delta]:
        deltas: list[Delta] = []
        new_fields = {f.name: f for f in new.fields}
        old_names = set()
        for of in old.fields:
            old_names.add(of.name)
            if not (of.exported or of.embedded):
                continue
            fpath = f"{path}.{of.name}"
            nf = new_fields.get(of.name)
            if nf is None or not (nf.exported or nf.embedded):
                deltas.append(Delta(fpath, "removed", False))
                continue
            if of.embedded != nf.embedded:
                if of.embedded:
                    msg = "changed from embedded to named field"
                else:
                    msg = "changed from named to embedded field"
                deltas.append(Delta(fpath, msg, False))
                continue
            deltas.extend(self.compare(of.type, nf.type, Direction.BOTH, fpath))
        for nf in new.fields:
            if nf.name not in old_names and (nf.exported or nf.embedded):
                deltas.append(Delta(f"{path}.{nf.name}", "added", True))
        return deltas

    def _interface(
        self,
        old: Interface,
        new: Interface,
        direction: Direction,
        path: str,
    ) -> list[Delta]:
        deltas: list[Delta] = []
        for m in old.methods:
            mpath = f"{path}.{m.name}"
            nm = new.method(m.name)
            if nm is None:
                deltas.append(Delta(mpath, "removed", direction is Direction.INPUT))
                continue
            if self.compare(m.signature, nm.signature, Direction.BOTH, mpath):
                deltas.append(
                    Delta(
                        mpath,
                        f"changed from {format_type(m.signature)} to {format_type(nm.signature)}",
                        False,
                    )
                )
        for e in old.embedded:
            if e not in new.embedded:
                deltas.append(
                    Delta(path, f"embedded {e} removed", direction is Direction.INPUT)
                )
        for nm in new.methods:
            if old.method(nm.name) is None:
                deltas.append(Delta(f"{path}.{nm.name}", "added", direction is Direction.OUTPUT))
        for e in new.embedded:
            if e not in old.embedded:
                deltas.append(Delta(path, f"embedded {e} added", direction is Direction.OUTPUT))
        return deltas

    def _signature(
        self,
        old: Signature,
        new: Signature,
        direction: Direction,
        path: str,
        *,
        top: bool = False,
    ) -> list[Delta]:
        """Compare two signatures.

        With *top* the signature is that of a function or method itself, so a
        result may be narrowed to a type implementing the old interface.
        Element and nested function types are invariant and never widen.
        """
        deltas: list[Delta] = []
        param_dir = direction.flip()
        old_n, new_n = len(old.params), len(new.params)

        if old_n == new_n and old.variadic != new.variadic:
            msg = "changed to variadic" if new.variadic else "changed from variadic"
            deltas.append(Delta(f"{path}(param {old_n - 1})", msg, False))

        for i in range(min(old_n, new_n)):
            deltas.extend(self.compare(old.params[i], new.params[i], param_dir, f"{path}(param {i})"))

        if new_n == old_n + 1 and new.variadic and not old.variadic:
            # A trailing variadic parameter keeps every existing call valid.
            deltas.append(Delta(f"{path}(param {old_n})", "added variadic parameter", True))
        else:
            for i in range(new_n, old_n):
                deltas.append(Delta(f"{path}(param {i})", "removed", False))
            for i in range(old_n, new_n):
                deltas.append(Delta(f"{path}(param {i})", "added", False))

        for i in range(min(len(old.results), len(new.results))):
            rpath = f"{path}(result {i})"
            narrowed = None
            if top and direction is Direction.OUTPUT:
                narrowed = self._implementer(old.results[i], new.results[i], rpath)
            if narrowed is not None:
                deltas.append(narrowed)
            else:
                deltas.extend(self.compare(old.results[i], new.results[i], direction, rpath))
        for i in range(len(new.results), len(old.results)):
            deltas.append(Delta(f"{path}(result {i})", "removed", False))
        for i in range(len(old.results), len(new.results)):
            deltas.append(Delta(f"{path}(result {i})", "added", False))
        return deltas

    # -- helpers ----------------------------------------------------------

    @staticmethod
    def _implementer(old: TypeDesc, new: TypeDesc, path: str) -> Delta | None:
        """A concrete result type that still implements the old interface result.

        Every caller that used the result through the interface keeps working.
        """
        iface = _as_interface(old)
        if iface is None or _as_interface(new) is not None or not implements(new, iface):
            return None
        message = f"changed from {format_type(old)} to {format_type(new)}, which implements it"
        return Delta(path, message, True)

    @staticmethod
    def _mismatch(old: TypeDesc, new: TypeDesc, path: str) -> Delta:
        before, after = format_type(old), format_type(new)
        if before == after:
            before, after = format_type(_expand(old)), format_type(_expand(new))
        return Delta(path, f"changed from {before} to {after}", False, mismatch=True)


def _expand(t: TypeDesc) -> TypeDesc:
    """Replace the outermost named type in *t* by its structure, for display."""
    if isinstance(t, Named) and t.underlying is not None:
        return t.underlying
    if isinstance(t, Pointer):
        return Pointer(_expand(t.elem))
    if isinstance(t, Slice):
        return Slice(_expand(t.elem))
    return t


def _declaration_parts(t: TypeDesc) -> tuple[TypeDesc | None, dict]:
    """Split a declared type into its structure and its method set."""
    if isinstance(t, Named):
        return t.underlying, t.methods
    return t, {}


__all__ = [
    "Comparison",
    "Delta",
    "Direction",
    "Verdict",
    "compare",
    "compare_declared",
    "implements",
    "method_set",
]
