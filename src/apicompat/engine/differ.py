"""Declaration differ: old/new symbol tables -> ordered Change records."""

from __future__ import annotations

import logging

from apicompat.engine._types import Change, PackageSnapshot, Symbol
from apicompat.engine.equivalence import Delta, Direction, compare, compare_declared
from apicompat.engine.extractor import SymbolTable, extract_symbols, is_internal
from apicompat.engine.report import PackageReport

logger = logging.getLogger(__name__)

# How a value of each symbol kind is used by callers.
_KIND_DIRECTION: dict[str, Direction] = {
    "func": Direction.OUTPUT,  # called: parameters flow in, results flow out
    "var": Direction.BOTH,
    "const": Direction.OUTPUT,
}


def diff_symbols(old: SymbolTable, new: SymbolTable) -> list[Change]:
    """Merge-join two symbol tables in name order and compare each pair."""
    old_names = old.names()
    new_names = new.names()
    changes: list[Change] = []
    i = j = 0
    while i < len(old_names) or j < len(new_names):
        if j == len(new_names) or (i < len(old_names) and old_names[i] < new_names[j]):
            name = old_names[i]
            i += 1
            changes.append(Change(f"{name}: removed", False, name))
        elif i == len(old_names) or new_names[j] < old_names[i]:
            name = new_names[j]
            j += 1
            changes.append(Change(f"{name}: added", True, name))
        else:
            name = old_names[i]
            i += 1
            j += 1
            changes.extend(compare_symbols(old.exported[name], new.exported[name]))
    return changes


def compare_symbols(old: Symbol, new: Symbol) -> list[Change]:
    """Compare two declarations of the same name."""
    name = new.name
    if old.kind != new.kind:
        return [Change(f"{name}: changed from {old.kind} to {new.kind}", False, name)]

    deltas: list[Delta]
    if old.kind == "type":
        if old.alias and new.alias:
            deltas = list(compare(old.type, new.type, Direction.BOTH).deltas)
        else:
            deltas = list(compare_declared(old.type, new.type).deltas)
    else:
        deltas = list(compare(old.type, new.type, _KIND_DIRECTION[old.kind]).deltas)

    if old.kind == "const" and old.value != new.value:
        deltas.append(Delta("", f"value changed from {old.value} to {new.value}", False))

    return [_to_change(name, d) for d in deltas]


def _to_change(name: str, delta: Delta) -> Change:
    path = name + delta.path
    return Change(f"{path}: {delta.message}", delta.compatible, path)


def diff_package(old: PackageSnapshot, new: PackageSnapshot) -> PackageReport:
    """Compare one package present in both snapshots.

    Load errors on either side suppress the structural comparison; the
    errors are carried on the report instead.
    """
    pr = PackageReport(path=new.path, old_errors=list(old.errors), new_errors=list(new.errors))
    if old.errors or new.errors:
        logger.debug("%s: skipping comparison, package has errors", new.path)
        return pr
    pr.changes = diff_symbols(extract_symbols(old), extract_symbols(new))
    return pr


def diff_packages(
    old_pkgs: list[PackageSnapshot],
    new_pkgs: list[PackageSnapshot],
    module_path: str,
    *,
    should_compare: bool = True,
) -> list[PackageReport]:
    """Pair packages by path and build one report per package worth showing.

    Internal packages are skipped unless they fail to load. Without a base
    version (*should_compare* False) new packages are only checked for errors.
    """
    old_pkgs = sorted(old_pkgs, key=lambda p: p.path)
    new_pkgs = sorted(new_pkgs, key=lambda p: p.path)
    reports: list[PackageReport] = []
    i = j = 0
    while i < len(old_pkgs) or j < len(new_pkgs):
        if i < len(old_pkgs) and (j == len(new_pkgs) or old_pkgs[i].path < new_pkgs[j].path):
            old_pkg = old_pkgs[i]
            i += 1
            internal = is_internal(old_pkg.path, module_path)
            if internal and not old_pkg.errors:
                continue
            pr = PackageReport(path=old_pkg.path, old_errors=list(old_pkg.errors))
            if not internal:
                pr.changes = [Change("package removed", False)]
            reports.append(pr)
        elif j < len(new_pkgs) and (i == len(old_pkgs) or new_pkgs[j].path < old_pkgs[i].path):
            new_pkg = new_pkgs[j]
            j += 1
            internal = is_internal(new_pkg.path, module_path)
            if internal and not new_pkg.errors and not should_compare:
                continue
            pr = PackageReport(path=new_pkg.path, new_errors=list(new_pkg.errors))
            if not internal and should_compare:
                pr.changes = [Change("package added", True)]
            if pr.changes or pr.new_errors:
                reports.append(pr)
        else:
            old_pkg, new_pkg = old_pkgs[i], new_pkgs[j]
            i += 1
            j += 1
            internal = is_internal(new_pkg.path, module_path)
            if internal and not (old_pkg.errors or new_pkg.errors):
                continue
            if internal:
                reports.append(
                    PackageReport(
                        path=new_pkg.path,
                        old_errors=list(old_pkg.errors),
                        new_errors=list(new_pkg.errors),
                    )
                )
                continue
            reports.append(diff_package(old_pkg, new_pkg))
    return reports
