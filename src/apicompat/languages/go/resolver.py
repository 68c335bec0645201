"""Package scopes: Go declarations to the engine's type model.

Loading runs in two phases. :meth:`PackageScope.add_unit` records every
declaration of every package in the module and creates an empty
:class:`Named` for each defined type. :meth:`PackageScope.snapshot` then
resolves type expressions, lazily and across packages, so that a type may
refer to any other type in the module regardless of declaration order.
"""

from __future__ import annotations

import contextlib
import logging
import re
from collections.abc import Iterator
from dataclasses import dataclass, field

import tree_sitter

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
    PackageSnapshot,
    Pointer,
    Signature,
    Slice,
    Struct,
    Symbol,
    TypeDesc,
    is_exported,
)
from apicompat.languages._utils import compact_text, first_error, named_children, node_text, position
from apicompat.languages.go.constants import (
    Const,
    ConstError,
    ConstEvaluator,
    NotConstant,
    assign,
    category,
    default_type,
    is_untyped,
    render,
    unquote_string,
)

logger = logging.getLogger(__name__)

INVALID = Opaque("invalid type")
UNRESOLVED_CONST = Opaque("untyped constant")

_BASIC_NAMES = (
    "bool", "string", "int", "int8", "int16", "int32", "int64", "uint", "uint8",
    "uint16", "uint32", "uint64", "uintptr", "float32", "float64", "complex64",
    "complex128", "error",
)

PREDECLARED_TYPES: dict[str, TypeDesc] = {name: Basic(name) for name in _BASIC_NAMES}
PREDECLARED_TYPES.update(
    {
        "byte": Basic("uint8"),
        "rune": Basic("int32"),
        "any": Interface(),
        "comparable": Opaque("comparable"),
    }
)

ERROR_METHOD = InterfaceMethod("Error", Signature((), (Basic("string"),)))

_BUILTIN_FUNCS = frozenset(
    {"append", "cap", "clear", "close", "complex", "copy", "delete", "imag", "len",
     "make", "max", "min", "new", "panic", "print", "println", "real", "recover"}
)

_MAJOR_RE = re.compile(r"v[0-9]+")


def guess_package_name(import_path: str) -> str:
    """Best guess at the package name of an import path outside the module."""
    elems = import_path.split("/")
    last = elems[-1]
    if _MAJOR_RE.fullmatch(last) and len(elems) > 1:
        last = elems[-2]
    if import_path.startswith("gopkg.in/"):
        last = last.split(".v", 1)[0]
    if last.startswith("go-"):
        last = last[3:]
    return last.replace("-", "_").replace(".", "_")


@dataclass
class FileUnit:
    """One parsed Go file."""

    name: str  # module-relative, slash-separated
    tree: tree_sitter.Tree
    package: str = ""
    package_node: tree_sitter.Node | None = None
    imports: dict[str, str] = field(default_factory=dict)  # explicit alias -> path
    unnamed_imports: list[str] = field(default_factory=list)
    dot_imports: list[str] = field(default_factory=list)
    import_nodes: dict[str, tree_sitter.Node] = field(default_factory=dict)

    @classmethod
    def from_tree(cls, name: str, tree: tree_sitter.Tree) -> FileUnit:
        unit = cls(name=name, tree=tree)
        for child in named_children(tree.root_node):
            if child.type == "package_clause":
                ident = named_children(child)
                if ident:
                    unit.package = node_text(ident[0])
                    unit.package_node = ident[0]
            elif child.type == "import_declaration":
                for spec in _import_specs(child):
                    unit._add_import(spec)
        return unit

    def _add_import(self, spec: tree_sitter.Node) -> None:
        path_node = spec.child_by_field_name("path")
        if path_node is None:
            return
        try:
            path = unquote_string(node_text(path_node))
        except ConstError:
            return
        self.import_nodes.setdefault(path, spec)
        name_node = spec.child_by_field_name("name")
        if name_node is None:
            self.unnamed_imports.append(path)
            return
        alias = node_text(name_node)
        if alias == ".":
            self.dot_imports.append(path)
        elif alias != "_":
            self.imports[alias] = path

    @property
    def uses_cgo(self) -> bool:
        return "C" in self.import_nodes


def _import_specs(node: tree_sitter.Node) -> Iterator[tree_sitter.Node]:
    for child in named_children(node):
        if child.type == "import_spec":
            yield child
        elif child.type == "import_spec_list":
            yield from (c for c in named_children(child) if c.type == "import_spec")


@dataclass(eq=False)
class _TypeDecl:
    name: str
    node: tree_sitter.Node  # type_spec or type_alias
    unit: FileUnit
    alias: bool
    named: Named | None = None
    target: TypeDesc | None = None
    state: int = 0  # 0 pending, 1 resolving, 2 resolved


@dataclass(eq=False)
class _ValueDecl:
    name: str
    kind: str  # "func", "var" or "const"
    unit: FileUnit
    node: tree_sitter.Node  # declaration or spec
    name_node: tree_sitter.Node
    index: int = 0
    type_node: tree_sitter.Node | None = None
    values: list[tree_sitter.Node] = field(default_factory=list)
    iota: int | None = None
    type: TypeDesc | None = None
    const: Const | None = None
    value_text: str | None = None
    state: int = 0


class ModuleScope:
    """Every package of one module at one revision.

    *declared_path* is the module path the sources were written against when
    it differs from *module_path* (a base revision before a major version
    bump); imports under it are read as imports under *module_path*.
    """

    def __init__(self, module_path: str, declared_path: str = "") -> None:
        self.module_path = module_path
        self.declared_path = declared_path or module_path
        self.packages: dict[str, PackageScope] = {}
        self._external: dict[tuple[str, str], Named] = {}

    def in_module(self, path: str) -> bool:
        return path == self.module_path or path.startswith(self.module_path + "/")

    def canonical(self, path: str) -> str:
        declared = self.declared_path
        if declared != self.module_path and (path == declared or path.startswith(declared + "/")):
            return self.module_path + path[len(declared) :]
        return path

    def add_package(self, path: str) -> PackageScope:
        pkg = self.packages.get(path)
        if pkg is None:
            pkg = self.packages[path] = PackageScope(self, path)
        return pkg

    def external(self, pkg_path: str, name: str) -> Named:
        """The shared opaque Named for a type declared outside the module."""
        key = (pkg_path, name)
        named = self._external.get(key)
        if named is None:
            named = Named(pkg=pkg_path, name=name, pkg_name=guess_package_name(pkg_path))
            self._external[key] = named
        return named


class _ConstContext:
    """Name resolution for constant expressions inside one file."""

    def __init__(self, scope: PackageScope, unit: FileUnit) -> None:
        self.scope = scope
        self.unit = unit

    def lookup_const(self, name: str) -> Const | None:
        decl = self.scope.values.get(name)
        if decl is None:
            if name in self.scope.types or name in PREDECLARED_TYPES or name in _BUILTIN_FUNCS:
                return None
            if not self.unit.dot_imports:
                raise ConstError(f"undefined: {name}")
            return None
        if decl.kind != "const":
            raise NotConstant(f"{name} ({decl.kind}) is not constant")
        return self.scope.const_value(decl)

    def lookup_qualified_const(self, qualifier: str, name: str) -> Const | None:
        path = self.scope.import_path(self.unit, qualifier)
        if path is None or not self.scope.module.in_module(path):
            return None
        other = self.scope.module.packages.get(path)
        if other is None:
            return None
        decl = other.values.get(name)
        if decl is None or decl.kind != "const":
            return None
        return other.const_value(decl)

    def conversion_target(self, node: tree_sitter.Node) -> tuple[TypeDesc, str] | None:
        if node.type == "parenthesized_expression" or node.type == "parenthesized_type":
            inner = named_children(node)
            return self.conversion_target(inner[0]) if len(inner) == 1 else None
        if node.type in ("identifier", "type_identifier"):
            name = node_text(node)
            if name not in self.scope.types and name not in PREDECLARED_TYPES:
                return None
        elif node.type == "selector_expression":
            operand = node.child_by_field_name("operand")
            fld = node.child_by_field_name("field")
            if operand is None or fld is None:
                return None
            path = self.scope.import_path(self.unit, node_text(operand))
            if path is None or not self.scope.module.in_module(path):
                return None
            other = self.scope.module.packages.get(path)
            if other is None or node_text(fld) not in other.types:
                return None
            t = other.type_by_name(node_text(fld))
            return _basic_target(t, other.underlying(t))
        elif node.type != "qualified_type":
            return None
        t = self.scope.resolve_type(node, self.unit)
        return _basic_target(t, self.scope.underlying(t))


def _basic_target(t: TypeDesc, under: TypeDesc) -> tuple[TypeDesc, str] | None:
    if isinstance(under, Basic) and category(under.name) is not None:
        return t, under.name
    return None


class PackageScope:
    """Declarations of one package and their resolution to type descriptions."""

    def __init__(self, module: ModuleScope, path: str) -> None:
        self.module = module
        self.path = path
        self.name = ""
        self.units: list[FileUnit] = []
        self.errors: list[str] = []
        self.types: dict[str, _TypeDecl] = {}
        self.values: dict[str, _ValueDecl] = {}
        self._methods: list[tuple[FileUnit, tree_sitter.Node]] = []
        self._tparams: list[frozenset[str]] = []

    def __repr__(self) -> str:
        return f"PackageScope({self.path!r})"

    # -- errors -----------------------------------------------------------

    def error(self, unit: FileUnit | None, node: tree_sitter.Node | None, message: str) -> None:
        if unit is not None and node is not None:
            line, col = position(node)
            message = f"{unit.name}:{line}:{col}: {message}"
        elif unit is not None:
            message = f"{unit.name}: {message}"
        if message not in self.errors:
            self.errors.append(message)

    # -- phase 1: declarations ------------------------------------------

    def add_unit(self, unit: FileUnit) -> None:
        bad = first_error(unit.tree.root_node)
        if bad is not None:
            detail = f"syntax error: missing {bad.type}" if bad.is_missing else "syntax error"
            self.error(unit, bad, detail)
        if unit.package_node is None:
            self.error(unit, unit.tree.root_node, "expected 'package', found EOF")
            return
        if not self.name:
            self.name = unit.package
        elif unit.package != self.name:
            first = self.units[0].name if self.units else "?"
            self.error(
                None,
                None,
                f"found packages {self.name} ({first.rsplit('/', 1)[-1]}) and "
                f"{unit.package} ({unit.name.rsplit('/', 1)[-1]}) in {self.path}",
            )
        self.units.append(unit)
        self._canonicalize_imports(unit)

        for child in named_children(unit.tree.root_node):
            if child.type == "type_declaration":
                for spec in named_children(child):
                    if spec.type in ("type_spec", "type_alias"):
                        self._declare_type(unit, spec)
            elif child.type == "function_declaration":
                self._declare_func(unit, child)
            elif child.type == "method_declaration":
                self._methods.append((unit, child))
            elif child.type == "var_declaration":
                self._declare_vars(unit, child)
            elif child.type == "const_declaration":
                self._declare_consts(unit, child)

    def _canonicalize_imports(self, unit: FileUnit) -> None:
        canonical = self.module.canonical
        unit.imports = {alias: canonical(p) for alias, p in unit.imports.items()}
        unit.unnamed_imports = [canonical(p) for p in unit.unnamed_imports]
        unit.dot_imports = [canonical(p) for p in unit.dot_imports]
        unit.import_nodes = {canonical(p): spec for p, spec in unit.import_nodes.items()}

    def _redeclared(self, unit: FileUnit, name_node: tree_sitter.Node, name: str) -> bool:
        if name in self.types or name in self.values:
            self.error(unit, name_node, f"{name} redeclared in this block")
            return True
        return False

    def _declare_type(self, unit: FileUnit, spec: tree_sitter.Node) -> None:
        name_node = spec.child_by_field_name("name")
        if name_node is None:
            return
        name = node_text(name_node)
        if name == "_" or self._redeclared(unit, name_node, name):
            return
        alias = spec.type == "type_alias"
        decl = _TypeDecl(name=name, node=spec, unit=unit, alias=alias)
        if not alias:
            decl.named = Named(pkg=self.path, name=name, pkg_name=self.name)
        self.types[name] = decl

    def _declare_func(self, unit: FileUnit, node: tree_sitter.Node) -> None:
        name_node = node.child_by_field_name("name")
        if name_node is None:
            return
        name = node_text(name_node)
        if name in ("_", "init") or self._redeclared(unit, name_node, name):
            return
        self.values[name] = _ValueDecl(name, "func", unit, node, name_node)

    def _declare_vars(self, unit: FileUnit, node: tree_sitter.Node) -> None:
        for spec in _specs(node, "var_spec"):
            type_node = spec.child_by_field_name("type")
            value_list = spec.child_by_field_name("value")
            values = named_children(value_list) if value_list is not None else []
            for i, name_node in enumerate(spec.children_by_field_name("name")):
                name = node_text(name_node)
                if name == "_" or self._redeclared(unit, name_node, name):
                    continue
                self.values[name] = _ValueDecl(
                    name, "var", unit, spec, name_node, index=i, type_node=type_node, values=values
                )

    def _declare_consts(self, unit: FileUnit, node: tree_sitter.Node) -> None:
        prev_type: tree_sitter.Node | None = None
        prev_values: list[tree_sitter.Node] = []
        for iota, spec in enumerate(_specs(node, "const_spec")):
            value_list = spec.child_by_field_name("value")
            if value_list is not None:
                prev_type = spec.child_by_field_name("type")
                prev_values = named_children(value_list)
            elif iota == 0:
                self.error(unit, spec, "missing init expr for const declaration")
            for i, name_node in enumerate(spec.children_by_field_name("name")):
                name = node_text(name_node)
                if name == "_" or self._redeclared(unit, name_node, name):
                    continue
                self.values[name] = _ValueDecl(
                    name,
                    "const",
                    unit,
                    spec,
                    name_node,
                    index=i,
                    type_node=prev_type,
                    values=prev_values,
                    iota=iota,
                )

    # -- lookup -----------------------------------------------------------

    def import_path(self, unit: FileUnit, qualifier: str) -> str | None:
        """Map a package qualifier used in *unit* to an import path."""
        if qualifier in unit.imports:
            return unit.imports[qualifier]
        for path in unit.unnamed_imports:
            if self.module.in_module(path):
                other = self.module.packages.get(path)
                if other is not None and other.name == qualifier:
                    return path
            elif guess_package_name(path) == qualifier:
                return path
        for path in unit.unnamed_imports:
            if not self.module.in_module(path) and qualifier in path.rsplit("/", 1)[-1]:
                return path
        return None

    def type_by_name(self, name: str) -> TypeDesc:
        decl = self.types[name]
        if decl.alias:
            return self._alias_target(decl)
        assert decl.named is not None
        return decl.named

    @contextlib.contextmanager
    def _type_params(self, node: tree_sitter.Node | None, extra: frozenset[str] = frozenset()) -> Iterator[None]:
        names = set(extra)
        tp = node.child_by_field_name("type_parameters") if node is not None else None
        if tp is not None:
            for decl in named_children(tp):
                names.update(node_text(n) for n in decl.children_by_field_name("name"))
        self._tparams.append(frozenset(names))
        try:
            yield
        finally:
            self._tparams.pop()

    # -- types ------------------------------------------------------------

    def resolve_type(self, node: tree_sitter.Node | None, unit: FileUnit) -> TypeDesc:
        """Translate a type expression node into a type description."""
        if node is None:
            return INVALID
        t = node.type
        if t in ("type_identifier", "identifier"):
            return self._type_name(node_text(node), node, unit)
        if t == "qualified_type":
            pkg_node = node.child_by_field_name("package")
            name_node = node.child_by_field_name("name")
            if pkg_node is None or name_node is None:
                return INVALID
            return self._qualified(node_text(pkg_node), node_text(name_node), node, unit)
        if t == "pointer_type":
            inner = named_children(node)
            return Pointer(self.resolve_type(inner[0] if inner else None, unit))
        if t == "array_type":
            return Array(
                self.resolve_type(node.child_by_field_name("element"), unit),
                self._array_length(node.child_by_field_name("length"), unit),
            )
        if t == "implicit_length_array_type":
            return Array(self.resolve_type(node.child_by_field_name("element"), unit), "...")
        if t == "slice_type":
            return Slice(self.resolve_type(node.child_by_field_name("element"), unit))
        if t == "map_type":
            return Map(
                self.resolve_type(node.child_by_field_name("key"), unit),
                self.resolve_type(node.child_by_field_name("value"), unit),
            )
        if t == "channel_type":
            return Chan(self.resolve_type(node.child_by_field_name("value"), unit), _chan_direction(node))
        if t == "function_type":
            return self.signature(node, unit)
        if t == "struct_type":
            return self._struct(node, unit)
        if t == "interface_type":
            return self._interface(node, unit)
        if t == "parenthesized_type":
            inner = named_children(node)
            return self.resolve_type(inner[0] if inner else None, unit)
        # Generic instantiations, constraint terms: compared by text.
        return Opaque(compact_text(node))

    def _type_name(self, name: str, node: tree_sitter.Node, unit: FileUnit) -> TypeDesc:
        if self._tparams and name in self._tparams[-1]:
            return Opaque(name)
        decl = self.types.get(name)
        if decl is not None:
            return self.type_by_name(name)
        if name in PREDECLARED_TYPES:
            return PREDECLARED_TYPES[name]
        if name in self.values:
            self.error(unit, node, f"{name} is not a type")
            return INVALID
        for path in unit.dot_imports:
            if self.module.in_module(path):
                other = self.module.packages.get(path)
                if other is not None and name in other.types:
                    return other.type_by_name(name)
            else:
                return self.module.external(path, name)
        self.error(unit, node, f"undefined: {name}")
        return INVALID

    def _qualified(self, qualifier: str, name: str, node: tree_sitter.Node, unit: FileUnit) -> TypeDesc:
        path = self.import_path(unit, qualifier)
        if path is None:
            self.error(unit, node, f"undefined: {qualifier}")
            return INVALID
        if not self.module.in_module(path):
            return self.module.external(path, name)
        other = self.module.packages.get(path)
        if other is None:
            return INVALID  # reported at the import
        if not is_exported(name):
            self.error(unit, node, f"name {name} not exported by package {other.name}")
            return INVALID
        if name not in other.types:
            self.error(unit, node, f"undefined: {qualifier}.{name}")
            return INVALID
        return other.type_by_name(name)

    def _alias_target(self, decl: _TypeDecl) -> TypeDesc:
        if decl.state == 2:
            assert decl.target is not None
            return decl.target
        if decl.state == 1:
            self.error(decl.unit, decl.node, f"invalid recursive type alias {decl.name}")
            return INVALID
        decl.state = 1
        with self._type_params(decl.node):
            decl.target = self.resolve_type(decl.node.child_by_field_name("type"), decl.unit)
        decl.state = 2
        return decl.target

    def _resolve_named(self, decl: _TypeDecl) -> None:
        assert decl.named is not None
        if decl.state == 2:
            return
        if decl.state == 1:
            self.error(decl.unit, decl.node, f"invalid recursive type {decl.name}")
            decl.named.underlying = INVALID
            return
        decl.state = 1
        with self._type_params(decl.node):
            t = self.resolve_type(decl.node.child_by_field_name("type"), decl.unit)
            under = self.underlying(t)
        if decl.named.underlying is None:
            decl.named.underlying = under
        decl.state = 2

    def underlying(self, t: TypeDesc) -> TypeDesc:
        """The structure behind *t*. Types from outside the module stay opaque."""
        if not isinstance(t, Named):
            return t
        if not self.module.in_module(t.pkg):
            return Opaque(f"{t.pkg_name}.{t.name}")
        other = self.module.packages.get(t.pkg)
        decl = other.types.get(t.name) if other is not None else None
        if decl is not None and decl.named is t:
            other._resolve_named(decl)
        return t.underlying if t.underlying is not None else INVALID

    def _array_length(self, node: tree_sitter.Node | None, unit: FileUnit) -> str:
        if node is None:
            return "..."
        try:
            c = ConstEvaluator(_ConstContext(self, unit)).eval(node)
        except ConstError:
            return compact_text(node)
        if c.kind != "int" or c.value < 0:
            self.error(unit, node, f"invalid array length {compact_text(node)}")
            return compact_text(node)
        return str(c.value)

    def _struct(self, node: tree_sitter.Node, unit: FileUnit) -> Struct:
        fields: list[Field] = []
        seen: set[str] = set()
        for decl_list in named_children(node):
            for fd in named_children(decl_list):
                if fd.type != "field_declaration":
                    continue
                type_node = fd.child_by_field_name("type")
                ftype = self.resolve_type(type_node, unit)
                names = [node_text(n) for n in fd.children_by_field_name("name")]
                embedded = not names
                if embedded:
                    if any(c.type == "*" for c in fd.children):
                        ftype = Pointer(ftype)
                    names = [_embedded_name(type_node)]
                for name in names:
                    if name != "_" and name in seen:
                        self.error(unit, fd, f"{name} redeclared")
                        continue
                    seen.add(name)
                    fields.append(Field(name, ftype, embedded))
        return Struct(tuple(fields))

    def _interface(self, node: tree_sitter.Node, unit: FileUnit) -> Interface:
        methods: dict[str, InterfaceMethod] = {}
        embedded: list[str] = []
        for elem in named_children(node):
            if elem.type in ("method_elem", "method_spec"):
                name_node = elem.child_by_field_name("name")
                if name_node is None:
                    continue
                name = node_text(name_node)
                if name in methods:
                    self.error(unit, name_node, f"duplicate method {name}")
                methods[name] = InterfaceMethod(name, self.signature(elem, unit))
                continue
            parts = named_children(elem) or [elem]
            if len(parts) == 1 and parts[0].type in ("type_identifier", "qualified_type", "identifier"):
                t = self.resolve_type(parts[0], unit)
                if t == Basic("error"):
                    methods.setdefault("Error", ERROR_METHOD)
                    continue
                under = self.underlying(t)
                if isinstance(under, Interface):
                    for m in under.methods:
                        methods.setdefault(m.name, m)
                    embedded.extend(e for e in under.embedded if e not in embedded)
                    continue
            text = compact_text(elem)
            if text not in embedded:
                embedded.append(text)
        ordered = tuple(sorted(methods.values(), key=lambda m: m.name))
        return Interface(ordered, tuple(embedded))

    def signature(self, node: tree_sitter.Node, unit: FileUnit) -> Signature:
        """Signature of a function declaration, method, function type or literal."""
        params, variadic = self._params(node.child_by_field_name("parameters"), unit)
        result = node.child_by_field_name("result")
        if result is None:
            results: list[TypeDesc] = []
        elif result.type == "parameter_list":
            results, _ = self._params(result, unit)
        else:
            results = [self.resolve_type(result, unit)]
        return Signature(tuple(params), tuple(results), variadic)

    def _params(self, node: tree_sitter.Node | None, unit: FileUnit) -> tuple[list[TypeDesc], bool]:
        out: list[TypeDesc] = []
        variadic = False
        if node is None:
            return out, variadic
        for p in named_children(node):
            if p.type == "parameter_declaration":
                t = self.resolve_type(p.child_by_field_name("type"), unit)
                out.extend([t] * max(1, len(p.children_by_field_name("name"))))
            elif p.type == "variadic_parameter_declaration":
                out.append(Slice(self.resolve_type(p.child_by_field_name("type"), unit)))
                variadic = True
        return out, variadic

    # -- methods ------------------------------------------------------------

    def _resolve_methods(self) -> None:
        for unit, node in self._methods:
            name_node = node.child_by_field_name("name")
            recv = node.child_by_field_name("receiver")
            if name_node is None or recv is None:
                continue
            params = [p for p in named_children(recv) if p.type == "parameter_declaration"]
            if len(params) != 1:
                self.error(unit, recv, "method has multiple receivers" if params else "method has no receiver")
                continue
            type_node = params[0].child_by_field_name("type")
            pointer = False
            if type_node is not None and type_node.type == "pointer_type":
                pointer = True
                inner = named_children(type_node)
                type_node = inner[0] if inner else None
            tparams: frozenset[str] = frozenset()
            if type_node is not None and type_node.type == "generic_type":
                args = type_node.child_by_field_name("type_arguments")
                if args is not None:
                    tparams = frozenset(node_text(a) for a in named_children(args))
                type_node = type_node.child_by_field_name("type")
            if type_node is None:
                continue
            base = node_text(type_node)
            named = self._receiver_named(unit, type_node, base)
            if named is None:
                continue
            mname = node_text(name_node)
            if mname == "_":
                continue
            if mname in named.methods:
                self.error(unit, name_node, f"method {base}.{mname} already declared")
                continue
            with self._type_params(None, tparams):
                sig = self.signature(node, unit)
            named.methods[mname] = Method(mname, sig, pointer)

    def _receiver_named(self, unit: FileUnit, node: tree_sitter.Node, base: str) -> Named | None:
        decl = self.types.get(base)
        if decl is None:
            if base in PREDECLARED_TYPES or node.type == "qualified_type":
                self.error(unit, node, f"cannot define new methods on non-local type {base}")
            else:
                self.error(unit, node, f"undefined: {base}")
            return None
        target = self.type_by_name(base)
        if not isinstance(target, Named) or target.pkg != self.path:
            self.error(unit, node, f"cannot define new methods on non-local type {base}")
            return None
        under = self.underlying(target)
        if isinstance(under, (Pointer, Interface)):
            self.error(unit, node, f"invalid receiver type {base}")
            return None
        return target

    # -- values -------------------------------------------------------------

    def const_value(self, decl: _ValueDecl) -> Const | None:
        """Evaluate a constant. Returns None when its value is not knowable here."""
        if decl.state == 2:
            return decl.const
        if decl.state == 1:
            self.error(decl.unit, decl.name_node, f"initialization cycle: {decl.name} refers to itself")
            return None
        decl.state = 1
        try:
            decl.const = self._eval_const(decl)
        finally:
            decl.state = 2
        return decl.const

    def _eval_const(self, decl: _ValueDecl) -> Const | None:
        if decl.index >= len(decl.values):
            if decl.values:
                self.error(decl.unit, decl.name_node, "missing init expr for const declaration")
            return None
        expr = decl.values[decl.index]
        declared: TypeDesc | None = None
        if decl.type_node is not None:
            declared = self.resolve_type(decl.type_node, decl.unit)
        try:
            c = ConstEvaluator(_ConstContext(self, decl.unit), decl.iota).eval(expr)
            if declared is not None:
                under = self.underlying(declared)
                if not isinstance(under, Basic) or category(under.name) is None:
                    if under is not INVALID and not isinstance(under, Opaque):
                        self.error(decl.unit, decl.type_node, f"invalid constant type {compact_text(decl.type_node)}")
                    return None
                c = assign(c, declared, under.name)
            return c
        except NotConstant as e:
            logger.debug("%s.%s: %s", self.path, decl.name, e)
            decl.value_text = compact_text(expr)
            return None
        except ConstError as e:
            self.error(decl.unit, expr, str(e))
            return None

    def var_type(self, decl: _ValueDecl) -> TypeDesc:
        if decl.state == 2:
            assert decl.type is not None
            return decl.type
        if decl.state == 1:
            self.error(decl.unit, decl.name_node, f"initialization cycle: {decl.name} refers to itself")
            return INVALID
        decl.state = 1
        try:
            if decl.type_node is not None:
                decl.type = self.resolve_type(decl.type_node, decl.unit)
            elif len(decl.values) == 1 and decl.index > 0:
                decl.type = self._infer(decl.values[0], decl.unit, decl.index)
            elif decl.index < len(decl.values):
                decl.type = self._infer(decl.values[decl.index], decl.unit)
            else:
                self.error(decl.unit, decl.name_node, f"missing init expr for {decl.name}")
                decl.type = INVALID
        finally:
            decl.state = 2
        return decl.type if decl.type is not None else INVALID

    def func_type(self, decl: _ValueDecl) -> Signature:
        if decl.type is None:
            with self._type_params(decl.node):
                decl.type = self.signature(decl.node, decl.unit)
        assert isinstance(decl.type, Signature)
        return decl.type

    def _value_type(self, decl: _ValueDecl) -> TypeDesc:
        if decl.kind == "func":
            return self.func_type(decl)
        if decl.kind == "var":
            return self.var_type(decl)
        c = self.const_value(decl)
        if c is None:
            return INVALID
        return Basic(default_type(c.basic)) if is_untyped(c.basic) else c.type

    def _infer(self, expr: tree_sitter.Node, unit: FileUnit, result_index: int = 0) -> TypeDesc:
        """Static type of an initializer expression, as far as it can be told from syntax."""
        t = expr.type
        if t == "parenthesized_expression":
            inner = named_children(expr)
            return self._infer(inner[0], unit, result_index) if len(inner) == 1 else INVALID
        if t == "nil":
            self.error(unit, expr, "use of untyped nil in variable declaration")
            return INVALID
        if t == "composite_literal":
            return self.resolve_type(expr.child_by_field_name("type"), unit)
        if t == "func_literal":
            return self.signature(expr, unit)
        if t in ("type_conversion_expression", "type_assertion_expression"):
            return self.resolve_type(expr.child_by_field_name("type"), unit)
        if t == "unary_expression":
            op = expr.child_by_field_name("operator")
            operand = expr.child_by_field_name("operand")
            if op is not None and operand is not None and node_text(op) == "&":
                return Pointer(self._infer(operand, unit))
        if t == "call_expression":
            call = self._infer_call(expr, unit, result_index)
            if call is not None:
                return call
        if t == "identifier":
            decl = self.values.get(node_text(expr))
            if decl is not None and decl.kind != "const":
                return self._value_type(decl)
        if t == "selector_expression":
            other_decl = self._qualified_value(expr, unit)
            if other_decl is not None:
                scope, decl = other_decl
                return scope._value_type(decl)

        try:
            c = ConstEvaluator(_ConstContext(self, unit)).eval(expr)
        except ConstError:
            pass
        else:
            return Basic(default_type(c.basic)) if is_untyped(c.basic) else c.type

        if t == "binary_expression":
            op = expr.child_by_field_name("operator")
            if op is not None and node_text(op) in ("==", "!=", "<", "<=", ">", ">=", "&&", "||"):
                return Basic("bool")
            left = self._infer(expr.child_by_field_name("left"), unit)
            if not isinstance(left, Opaque):
                return left
            return self._infer(expr.child_by_field_name("right"), unit)
        return Opaque(compact_text(expr))

    def _qualified_value(
        self, expr: tree_sitter.Node, unit: FileUnit
    ) -> tuple[PackageScope, _ValueDecl] | None:
        operand = expr.child_by_field_name("operand")
        fld = expr.child_by_field_name("field")
        if operand is None or fld is None or operand.type != "identifier":
            return None
        path = self.import_path(unit, node_text(operand))
        if path is None or not self.module.in_module(path):
            return None
        other = self.module.packages.get(path)
        if other is None:
            return None
        decl = other.values.get(node_text(fld))
        return (other, decl) if decl is not None else None

    def _infer_call(self, expr: tree_sitter.Node, unit: FileUnit, result_index: int) -> TypeDesc | None:
        func = expr.child_by_field_name("function")
        args_node = expr.child_by_field_name("arguments")
        args = named_children(args_node) if args_node is not None else []
        if func is None:
            return None
        if func.type == "identifier":
            name = node_text(func)
            if name == "new" and args:
                return Pointer(self.resolve_type(args[0], unit))
            if name == "make" and args:
                return self.resolve_type(args[0], unit)
            if name in ("len", "cap", "copy"):
                return Basic("int")
            if name == "append" and args:
                return self._infer(args[0], unit)
            if name in self.types or name in PREDECLARED_TYPES:
                return self.resolve_type(func, unit)
            decl = self.values.get(name)
            if decl is not None:
                return _call_result(self._value_type(decl), result_index)
            return None
        if func.type == "selector_expression":
            found = self._qualified_value(func, unit)
            if found is not None:
                scope, decl = found
                return _call_result(scope._value_type(decl), result_index)
            operand = func.child_by_field_name("operand")
            fld = func.child_by_field_name("field")
            if operand is not None and fld is not None and operand.type == "identifier":
                path = self.import_path(unit, node_text(operand))
                if path is not None and self.module.in_module(path):
                    other = self.module.packages.get(path)
                    if other is not None and node_text(fld) in other.types:
                        return other.type_by_name(node_text(fld))
            return None
        if func.type in ("parenthesized_expression", "parenthesized_type"):
            inner = named_children(func)
            if len(inner) == 1 and inner[0].type not in ("identifier", "selector_expression"):
                return self.resolve_type(inner[0], unit)
        return None

    # -- checks -------------------------------------------------------------

    def _check_imports(self) -> None:
        for unit in self.units:
            for path, spec in unit.import_nodes.items():
                if self.module.in_module(path) and path not in self.module.packages:
                    self.error(unit, spec, f"could not import {path} (no Go files in module package)")

    def _check_recursive_types(self) -> None:
        for decl in self.types.values():
            named = decl.named
            if named is None or named.underlying is None or named.underlying is INVALID:
                continue
            if _contains(named.underlying, named, set()):
                self.error(decl.unit, decl.node, f"invalid recursive type {decl.name}")

    # -- phase 2: snapshot --------------------------------------------------

    def snapshot(self) -> PackageSnapshot:
        """Resolve every declaration and return the package snapshot."""
        self._check_imports()
        symbols: dict[str, Symbol] = {}
        for name, decl in self.types.items():
            if decl.alias:
                symbols[name] = Symbol(self.path, name, "type", self._alias_target(decl), alias=True)
            else:
                self._resolve_named(decl)
                assert decl.named is not None
                symbols[name] = Symbol(self.path, name, "type", decl.named)
        self._resolve_methods()
        for name, decl in self.values.items():
            if decl.kind == "const":
                c = self.const_value(decl)
                if c is not None:
                    t = c.type
                    value = render(c)
                else:
                    t = self.resolve_type(decl.type_node, decl.unit) if decl.type_node else UNRESOLVED_CONST
                    value = decl.value_text or ""
                symbols[name] = Symbol(self.path, name, "const", t, value=value)
            else:
                symbols[name] = Symbol(self.path, name, decl.kind, self._value_type(decl))
        self._check_recursive_types()
        logger.debug("%s: %d declarations, %d errors", self.path, len(symbols), len(self.errors))
        return PackageSnapshot(path=self.path, name=self.name, symbols=symbols, errors=list(self.errors))


def _specs(node: tree_sitter.Node, spec_type: str) -> Iterator[tree_sitter.Node]:
    """Specs of a var/const declaration, grouped or not."""
    for child in named_children(node):
        if child.type == spec_type:
            yield child
        elif child.type.endswith("_spec_list"):
            yield from (c for c in named_children(child) if c.type == spec_type)


def _chan_direction(node: tree_sitter.Node) -> str:
    tokens = [c.type for c in node.children if not c.is_named]
    if tokens[:1] == ["<-"]:
        return "recv"
    if tokens[:2] == ["chan", "<-"]:
        return "send"
    return "both"


def _embedded_name(node: tree_sitter.Node | None) -> str:
    if node is None:
        return "_"
    if node.type == "qualified_type":
        name = node.child_by_field_name("name")
        return node_text(name) if name is not None else node_text(node)
    if node.type == "generic_type":
        return _embedded_name(node.child_by_field_name("type"))
    if node.type == "pointer_type":
        inner = named_children(node)
        return _embedded_name(inner[0] if inner else None)
    return node_text(node)


def _call_result(t: TypeDesc, index: int) -> TypeDesc | None:
    if isinstance(t, Signature) and index < len(t.results):
        return t.results[index]
    return None


def _contains(t: TypeDesc, target: Named, seen: set[int]) -> bool:
    """Return True if *t* holds a *target* value directly (not through a reference)."""
    if isinstance(t, Named):
        if t is target:
            return True
        if t.uid in seen or t.underlying is None:
            return False
        seen.add(t.uid)
        return _contains(t.underlying, target, seen)
    if isinstance(t, Struct):
        return any(_contains(f.type, target, seen) for f in t.fields)
    if isinstance(t, Array):
        return _contains(t.elem, target, seen)
    return False
