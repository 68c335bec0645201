"""Shared types for the apicompat engine.

Type descriptions form a tagged union. Every category is a frozen dataclass
except :class:`Named`, whose underlying type is filled in after construction
so that recursive declarations can refer to themselves. Named types are the
only point where a type graph can loop back on itself.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass, field
from typing import Literal, Union

_uids = itertools.count(1)

SymbolKind = Literal["type", "func", "var", "const"]
ChanDir = Literal["both", "send", "recv"]


def is_exported(name: str) -> bool:
    """Return True if *name* is visible outside its package."""
    return name[:1].isupper()


@dataclass(frozen=True)
class Basic:
    """A predeclared type such as ``int``, ``string`` or ``error``."""

    name: str


@dataclass(frozen=True)
class Pointer:
    elem: TypeDesc


@dataclass(frozen=True)
class Array:
    elem: TypeDesc
    length: str  # evaluated length, or the source text when not constant


@dataclass(frozen=True)
class Slice:
    elem: TypeDesc


@dataclass(frozen=True)
class Map:
    key: TypeDesc
    value: TypeDesc


@dataclass(frozen=True)
class Chan:
    elem: TypeDesc
    direction: ChanDir = "both"


@dataclass(frozen=True)
class Field:
    """A struct field. Embedded fields are named after their type."""

    name: str
    type: TypeDesc
    embedded: bool = False

    @property
    def exported(self) -> bool:
        return is_exported(self.name)


@dataclass(frozen=True)
class Struct:
    fields: tuple[Field, ...] = ()

    def field(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


@dataclass(frozen=True)
class Signature:
    """A function signature. The last parameter of a variadic signature is a Slice."""

    params: tuple[TypeDesc, ...] = ()
    results: tuple[TypeDesc, ...] = ()
    variadic: bool = False


@dataclass(frozen=True)
class InterfaceMethod:
    name: str
    signature: Signature


@dataclass(frozen=True)
class Interface:
    """An interface with embedded interfaces already flattened into ``methods``.

    ``embedded`` lists embedded types that could not be flattened (interfaces
    from outside the module, constraint unions); they take part in
    comparisons by name.
    """

    methods: tuple[InterfaceMethod, ...] = ()
    embedded: tuple[str, ...] = ()

    def method(self, name: str) -> InterfaceMethod | None:
        for m in self.methods:
            if m.name == name:
                return m
        return None

    def member_names(self) -> set[str]:
        return {m.name for m in self.methods} | set(self.embedded)


@dataclass(frozen=True)
class Opaque:
    """A type expression that could not be resolved. Compared by text."""

    text: str


@dataclass(frozen=True)
class Method:
    """A method declared on a named type."""

    name: str
    signature: Signature
    pointer_receiver: bool = False


@dataclass(eq=False)
class Named:
    """A defined type.

    ``underlying`` is None for types declared outside the loaded module; those
    are compared by qualified name only. Equality and hashing are by identity;
    ``uid`` is the stable key used by the comparison cycle guard.
    """

    pkg: str
    name: str
    underlying: TypeDesc | None = field(default=None, repr=False)
    methods: dict[str, Method] = field(default_factory=dict, repr=False)
    pkg_name: str = ""
    uid: int = field(default_factory=lambda: next(_uids))

    @property
    def qualified_name(self) -> str:
        return f"{self.pkg}.{self.name}" if self.pkg else self.name

    @property
    def exported(self) -> bool:
        return is_exported(self.name)


TypeDesc = Union[Basic, Named, Pointer, Array, Slice, Map, Chan, Struct, Interface, Signature, Opaque]


@dataclass(frozen=True)
class Symbol:
    """A top-level declaration of a package."""

    pkg: str
    name: str
    kind: SymbolKind
    type: TypeDesc
    value: str | None = None  # constants only
    alias: bool = False  # type symbols declared as ``type A = B``

    @property
    def exported(self) -> bool:
        return is_exported(self.name)


@dataclass
class PackageSnapshot:
    """One loaded package: every top-level declaration plus load errors."""

    path: str
    name: str = ""
    symbols: dict[str, Symbol] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Change:
    """A single API difference. ``compatible`` is False for breaking changes."""

    message: str
    compatible: bool
    path: str | None = None


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def _package_name(t: Named) -> str:
    if t.pkg_name:
        return t.pkg_name
    return t.pkg.rsplit("/", 1)[-1]


def format_type(t: TypeDesc | None, relative_to: str | None = None) -> str:
    """Render *t* in Go syntax.

    Named types are qualified by their package name unless they belong to the
    package *relative_to*.
    """
    if t is None:
        return "<nil>"
    if isinstance(t, Basic):
        return t.name
    if isinstance(t, Named):
        if not t.pkg or t.pkg == relative_to:
            return t.name
        return f"{_package_name(t)}.{t.name}"
    if isinstance(t, Pointer):
        return "*" + format_type(t.elem, relative_to)
    if isinstance(t, Array):
        return f"[{t.length}]{format_type(t.elem, relative_to)}"
    if isinstance(t, Slice):
        return "[]" + format_type(t.elem, relative_to)
    if isinstance(t, Map):
        return f"map[{format_type(t.key, relative_to)}]{format_type(t.value, relative_to)}"
    if isinstance(t, Chan):
        elem = format_type(t.elem, relative_to)
        if t.direction == "send":
            return f"chan<- {elem}"
        if t.direction == "recv":
            return f"<-chan {elem}"
        return f"chan {elem}"
    if isinstance(t, Struct):
        parts = []
        for f in t.fields:
            ft = format_type(f.type, relative_to)
            parts.append(ft if f.embedded else f"{f.name} {ft}")
        return "struct{" + "; ".join(parts) + "}"
    if isinstance(t, Interface):
        parts = list(t.embedded)
        parts.extend(m.name + format_signature(m.signature, relative_to) for m in t.methods)
        return "interface{" + "; ".join(parts) + "}"
    if isinstance(t, Signature):
        return "func" + format_signature(t, relative_to)
    if isinstance(t, Opaque):
        return t.text
    raise TypeError(f"unknown type description: {t!r}")


def format_signature(sig: Signature, relative_to: str | None = None) -> str:
    """Render the parameter and result lists of *sig*, without ``func``."""
    params = [format_type(p, relative_to) for p in sig.params]
    if sig.variadic and sig.params:
        last = sig.params[-1]
        elem = last.elem if isinstance(last, Slice) else last
        params[-1] = "..." + format_type(elem, relative_to)
    out = "(" + ", ".join(params) + ")"
    results = [format_type(r, relative_to) for r in sig.results]
    if len(results) == 1:
        out += " " + results[0]
    elif results:
        out += " (" + ", ".join(results) + ")"
    return out
