"""Go language support: load every package of a module into snapshots."""

from __future__ import annotations

import logging
import posixpath

import tree_sitter
import tree_sitter_go

from apicompat.config import LoadConfig
from apicompat.engine._types import PackageSnapshot
from apicompat.languages import get_parser, is_source_file
from apicompat.languages.go.build import ConstraintSyntaxError, match_file
from apicompat.languages.go.resolver import FileUnit, ModuleScope
from apicompat.modpath import package_path_for
from apicompat.sources import Source

logger = logging.getLogger(__name__)


def get_language() -> tree_sitter.Language:
    """Return the tree-sitter Language object for Go."""
    return tree_sitter.Language(tree_sitter_go.language())


def _ignored_dir(rel_dir: str, nested_modules: set[str]) -> bool:
    if not rel_dir:
        return False
    parts = rel_dir.split("/")
    for i, part in enumerate(parts):
        if part in ("testdata", "vendor") or part.startswith((".", "_")):
            return True
        if "/".join(parts[: i + 1]) in nested_modules:
            return True
    return False


def package_files(files: list[str]) -> dict[str, list[str]]:
    """Group the non-test Go files of a module by directory.

    Directories the go command ignores are skipped, as is anything inside a
    nested module (a subdirectory with its own go.mod).
    """
    nested = {posixpath.dirname(f) for f in files if posixpath.basename(f) == "go.mod"}
    nested.discard("")
    by_dir: dict[str, list[str]] = {}
    for f in files:
        base = posixpath.basename(f)
        if not is_source_file(base, "go") or base.startswith((".", "_")):
            continue
        rel_dir = posixpath.dirname(f)
        if _ignored_dir(rel_dir, nested):
            continue
        by_dir.setdefault(rel_dir, []).append(f)
    return {d: sorted(fs) for d, fs in sorted(by_dir.items())}


def load_module(
    source: Source,
    module_path: str,
    config: LoadConfig | None = None,
    *,
    declared_path: str = "",
) -> list[PackageSnapshot]:
    """Load every package of the module in *source*, sorted by import path.

    Packages are named under *module_path*. When the sources declare another
    path in their go.mod (*declared_path*), their own imports are mapped onto
    *module_path* so that both revisions of a module pair up by directory.

    Problems inside a package (syntax errors, undefined names, bad
    constants) are recorded on its snapshot rather than raised.
    """
    config = config or LoadConfig()
    parser = get_parser("go")
    module = ModuleScope(module_path, declared_path)
    for rel_dir, names in package_files(source.list_files()).items():
        path = package_path_for(module_path, rel_dir)
        units: list[FileUnit] = []
        constraint_errors: list[str] = []
        for name in names:
            text = source.read(name)
            if text is None:
                continue
            try:
                if not match_file(name, text, config):
                    continue
            except ConstraintSyntaxError as e:
                constraint_errors.append(f"{name}: {e}")
                continue
            unit = FileUnit.from_tree(name, parser.parse(text.encode("utf-8")))
            if unit.uses_cgo and not config.cgo:
                logger.debug("Skipping %s: cgo disabled", name)
                continue
            units.append(unit)
        if not units and not constraint_errors:
            continue
        pkg = module.add_package(path)
        pkg.errors.extend(constraint_errors)
        for unit in units:
            pkg.add_unit(unit)

    snapshots = [module.packages[p].snapshot() for p in sorted(module.packages)]
    logger.debug("Loaded %d packages of %s", len(snapshots), module_path)
    return snapshots
