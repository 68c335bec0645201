"""Symbol table extraction: the exported surface of a loaded package."""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field

from apicompat.engine._types import (
    Array,
    Chan,
    Interface,
    Map,
    Named,
    PackageSnapshot,
    Pointer,
    Signature,
    Slice,
    Struct,
    Symbol,
    TypeDesc,
    is_exported,
)
from apicompat.errors import PackageLoadError

logger = logging.getLogger(__name__)

__all__ = ["SymbolTable", "extract_symbols", "is_exported", "is_inlined", "is_internal"]


@dataclass
class SymbolTable:
    """Exported symbols of one package, keyed and sorted by name.

    ``inlined`` holds the unexported (or internal-package) named types that
    exported declarations reach. They are compared structurally wherever
    they are referenced and never appear as top-level keys.
    """

    path: str
    exported: dict[str, Symbol] = field(default_factory=dict)
    inlined: dict[str, Named] = field(default_factory=dict)

    def names(self) -> list[str]:
        return sorted(self.exported)


def is_internal(pkg_path: str, module_path: str) -> bool:
    """Return True if *pkg_path* sits below an ``internal`` directory of the module."""
    if pkg_path != module_path and not pkg_path.startswith(module_path + "/"):
        msg = f"package {pkg_path} not in module {module_path}"
        raise ValueError(msg)
    while pkg_path != module_path:
        if posixpath.basename(pkg_path) == "internal":
            return True
        pkg_path = posixpath.dirname(pkg_path)
    return False


def _has_internal_element(pkg_path: str) -> bool:
    return "internal" in pkg_path.split("/")


def is_inlined(t: Named) -> bool:
    """Named types callers cannot refer to by name are compared by structure."""
    if t.underlying is None:
        return False
    return not is_exported(t.name) or _has_internal_element(t.pkg)


def extract_symbols(pkg: PackageSnapshot) -> SymbolTable:
    """Return the exported symbols of *pkg*.

    Raises :class:`PackageLoadError` when the package did not load cleanly;
    a broken package has no meaningful symbol set.
    """
    if pkg.errors:
        raise PackageLoadError(pkg.path, pkg.errors)

    table = SymbolTable(path=pkg.path)
    for name in sorted(pkg.symbols):
        sym = pkg.symbols[name]
        if sym.exported:
            table.exported[name] = sym

    seen: set[int] = set()
    for sym in table.exported.values():
        if sym.kind == "type" and isinstance(sym.type, Named) and not sym.alias:
            _walk_named_body(sym.type, table.inlined, seen)
        else:
            _walk(sym.type, table.inlined, seen)

    logger.debug(
        "%s: %d exported symbols, %d inlined types",
        pkg.path,
        len(table.exported),
        len(table.inlined),
    )
    return table


def _walk_named_body(t: Named, inlined: dict[str, Named], seen: set[int]) -> None:
    if t.uid in seen:
        return
    seen.add(t.uid)
    if t.underlying is not None:
        _walk(t.underlying, inlined, seen)
    for m in t.methods.values():
        if is_exported(m.name):
            _walk(m.signature, inlined, seen)


def _walk(t: TypeDesc, inlined: dict[str, Named], seen: set[int]) -> None:
    """Collect inlined named types reachable from *t*."""
    if isinstance(t, Named):
        if is_inlined(t):
            inlined.setdefault(t.qualified_name, t)
            _walk_named_body(t, inlined, seen)
    elif isinstance(t, (Pointer, Slice, Array, Chan)):
        _walk(t.elem, inlined, seen)
    elif isinstance(t, Map):
        _walk(t.key, inlined, seen)
        _walk(t.value, inlined, seen)
    elif isinstance(t, Struct):
        for f in t.fields:
            if f.exported or f.embedded:
                _walk(f.type, inlined, seen)
    elif isinstance(t, Interface):
        for m in t.methods:
            _walk(m.signature, inlined, seen)
    elif isinstance(t, Signature):
        for p in t.params:
            _walk(p, inlined, seen)
        for r in t.results:
            _walk(r, inlined, seen)
